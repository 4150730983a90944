"""
Progress tracking for long reindex runs.
"""
import time
from typing import Optional, Dict, Any
from tqdm import tqdm


class ProgressTracker:
    """
    Context manager wrapping a tqdm bar with indexing statistics.

    Counts objects whose rows changed, objects that were already current,
    and objects that failed to index.
    """

    def __init__(self, total: Optional[int] = None, desc: str = "Indexing",
                 unit: str = "obj", disable: bool = False):
        self.total = total
        self.initial_desc = desc
        self.unit = unit
        self.disable = disable
        self._pbar = None

        self.stats = {
            'processed': 0,
            'changed': 0,
            'unchanged': 0,
            'errors': 0
        }
        self._start_time = None

    def __enter__(self):
        self._start_time = time.time()
        self._pbar = tqdm(total=self.total, desc=self.initial_desc, unit=self.unit,
                          disable=self.disable)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._pbar:
            self._pbar.close()

    def set_total(self, total: int):
        """Set the total once the first page has reported it."""
        self.total = total
        if self._pbar is not None:
            self._pbar.total = total
            self._pbar.refresh()

    def update(self, count: int = 1, changed: int = 0, errors: int = 0):
        """
        Record a processed page or item.

        Args:
            count: Number of objects processed
            changed: How many of them had rows inserted or deleted
            errors: How many of them failed
        """
        self.stats['processed'] += count
        self.stats['changed'] += changed
        self.stats['errors'] += errors
        self.stats['unchanged'] += max(count - changed - errors, 0)

        if not self._pbar:
            return

        self._pbar.update(count)
        self._pbar.set_postfix(changed=self.stats['changed'], errors=self.stats['errors'])

    def write(self, message: str):
        """Print a line without breaking the bar."""
        if self._pbar is not None and not self.disable:
            self._pbar.write(message)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        if self._start_time:
            stats['elapsed_seconds'] = time.time() - self._start_time
        return stats
