from __future__ import annotations
"""Storage usage statistics collected by walking a whole storage tree."""
from collections import deque
import logging
from typing import Callable, Optional

from .clients import ObjectLister
from .errors import AggregationError, StorageError, TraversalCancelledError
from .file_utils import get_file_extension
from .models import ListingResult, StorageStatistics

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


def collect_storage_statistics(
    client: ObjectLister,
    prefix: str = "",
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    cancel_requested: Optional[Callable[[], bool]] = None,
) -> StorageStatistics:
    """Count files, folders and bytes below ``prefix``.

    Directories are visited breadth first, one listing call at a time, and each
    prefix at most once. Truncated listings are followed page by page before
    moving on to the next directory.

    Raises:
        AggregationError: when any listing call fails; no partial result is
            returned.
        TraversalCancelledError: when ``cancel_requested`` returns True.
    """

    stats = StorageStatistics()
    queue: deque[str] = deque([prefix])
    visited: set[str] = set()

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)

        token: str | None = None
        while True:
            if cancel_requested and cancel_requested():
                raise TraversalCancelledError("Statistics collection cancelled")
            try:
                page = client.list_objects(current, "/", page_size, token)
            except StorageError as exc:
                raise AggregationError(current, exc) from exc
            _accumulate(stats, page, queue)
            if not page.is_truncated:
                break
            token = page.continuation_token

        LOGGER.debug(
            "Visited '%s' (%d file(s), %d folder(s) so far, %d pending)",
            current,
            stats.file_count,
            stats.folder_count,
            len(queue),
        )

    return stats


def _accumulate(stats: StorageStatistics, page: ListingResult, queue: deque[str]) -> None:
    for entry in page.entries:
        if entry.is_directory:
            stats.record_folder()
            queue.append(entry.key)
        else:
            stats.record_file(get_file_extension(entry.name), entry.size)
