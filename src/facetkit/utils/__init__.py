"""
Utility classes shared across the facetkit package.

This module provides reusable components for:
- Retry handling with exponential backoff for search requests
- Database operation patterns
- Progress tracking with tqdm
"""

from .retry import (
    RetryConfig,
    retry_with_backoff,
    retry_on_search_failure
)

from .database import DatabaseOperationMixin

from .progress import ProgressTracker

__all__ = [
    'RetryConfig',
    'retry_with_backoff',
    'retry_on_search_failure',
    'DatabaseOperationMixin',
    'ProgressTracker'
]
