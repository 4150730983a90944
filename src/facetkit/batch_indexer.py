"""
Batch Indexer

Rebuilds the facet index page by page. Progress is persisted between steps
so a rebuild can be resumed by another process or request.
"""

import time
import sqlite3
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .config import FacetSettings
from .content import ContentStore
from .extractor import FacetExtractor
from .index import FacetIndex
from .storage import INDEX_REQUIRED_OPTION, SETTINGS_FINGERPRINT_OPTION, OptionStore


DEFAULT_JOB_ID = 'facets_batch_indexer'


@dataclass
class IndexerProgress:
    """Persisted cursor of a batch job."""
    page: int = 0
    per_page: int = 100
    kinds: List[str] = field(default_factory=list)
    object_ids: Optional[List[int]] = None
    complete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IndexerProgress':
        object_ids = data.get('object_ids')
        return cls(
            page=int(data.get('page', 0) or 0),
            per_page=int(data.get('per_page', 100) or 100),
            kinds=list(data.get('kinds') or []),
            object_ids=[int(i) for i in object_ids] if object_ids is not None else None,
            complete=bool(data.get('complete', False)),
        )


class BatchIndexer:
    """
    Resumable, paginated reindex of every matching content object.

    Objects are walked in ascending id order so pages stay stable while
    content changes underneath a long rebuild.
    """

    def __init__(self, extractor: FacetExtractor, index: FacetIndex, content: ContentStore,
                 options: OptionStore, settings: FacetSettings = None,
                 job_id: str = DEFAULT_JOB_ID, per_page: int = None,
                 kinds: List[str] = None, object_ids: List[int] = None,
                 default_per_page: int = 100):
        self.extractor = extractor
        self.index = index
        self.content = content
        self.options = options
        self.settings = settings
        self.job_id = job_id
        self.per_page = per_page
        self.default_per_page = default_per_page
        self.kinds = list(kinds) if kinds else None
        self.object_ids = [int(i) for i in object_ids] if object_ids is not None else None
        self.logger = logging.getLogger(__name__)

        stored = self.options.get(self.job_id)
        if stored:
            self.progress = IndexerProgress.from_dict(stored)
        else:
            self.progress = IndexerProgress(per_page=default_per_page)
        self._apply_arguments(self.progress)

    def _apply_arguments(self, progress: IndexerProgress):
        if self.per_page:
            progress.per_page = int(self.per_page)
        if self.kinds:
            progress.kinds = list(self.kinds)
        if self.object_ids is not None:
            progress.object_ids = list(self.object_ids)
        if not progress.kinds:
            progress.kinds = [kind.name for kind in self.content.get_kinds(public_only=True)]

    def start(self) -> Dict[str, Any]:
        """Discard any saved position and filters, then process the first page."""
        self.progress = IndexerProgress(per_page=self.default_per_page)
        self._apply_arguments(self.progress)
        return self.next()

    def next(self) -> Dict[str, Any]:
        """
        Process the next page.

        Returns:
            Dict with page, max_page, complete, duration, total (matching
            objects), indexed, changed, errors and rows (index size)
        """
        self.progress.page += 1

        start = time.time()
        object_ids, total, max_page = self.content.page_object_ids(
            kinds=self.progress.kinds,
            page=self.progress.page,
            per_page=self.progress.per_page,
            object_ids=self.progress.object_ids,
        )

        if total < 1:
            self.logger.info(f"No objects to index for {self.job_id}")
            self._finish()
            return {
                'page': 0,
                'max_page': 0,
                'complete': True,
                'duration': time.time() - start,
                'total': 0,
                'indexed': 0,
                'changed': 0,
                'errors': 0,
                'rows': self.index.stats()['total'],
            }

        indexed = 0
        changed = 0
        errors = 0

        for object_id in object_ids:
            try:
                diff = self.extractor.index_object(object_id)
                indexed += 1
                if not diff.is_empty:
                    changed += 1
            except sqlite3.Error as e:
                errors += 1
                self.logger.warning(f"Failed to index object {object_id}: {e}")

        results = {
            'page': self.progress.page,
            'max_page': max_page,
            'complete': self.progress.page >= max_page,
            'duration': time.time() - start,
            'total': total,
            'indexed': indexed,
            'changed': changed,
            'errors': errors,
            'rows': self.index.stats()['total'],
        }

        self.logger.info(
            f"Indexed page {results['page']}/{max_page} of {self.job_id}: "
            f"{indexed} objects, {changed} changed, {errors} errors"
        )

        if results['complete']:
            self._finish()
        else:
            self.options.set(self.job_id, self.progress.to_dict())

        return results

    def _finish(self):
        self.progress.complete = True
        self.options.delete(self.job_id)
        self.options.delete(INDEX_REQUIRED_OPTION)
        if self.settings is not None:
            self.options.set(SETTINGS_FINGERPRINT_OPTION, self.settings.fingerprint())

    def active(self) -> bool:
        """Is a rebuild parked part way through."""
        stored = self.options.get(self.job_id)
        return bool(stored) and int(stored.get('page', 0) or 0) > 0

    def get_progress(self) -> IndexerProgress:
        return self.progress

    def mark_index_required(self) -> bool:
        return self.options.set(INDEX_REQUIRED_OPTION, True)

    def index_required(self) -> bool:
        """
        Does the index need a rebuild.

        True while the flag is set, or when the settings changed since the
        last completed rebuild.
        """
        if self.options.get(INDEX_REQUIRED_OPTION):
            return True

        if self.settings is None:
            return False

        recorded = self.options.get(SETTINGS_FINGERPRINT_OPTION)
        return recorded is not None and recorded != self.settings.fingerprint()
