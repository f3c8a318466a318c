from __future__ import annotations
"""Runs storage operations in the background and returns results via callbacks."""
import logging
import threading
from typing import Callable

from .controller import StorageController
from .errors import StorageError, TraversalCancelledError
from .models import StorageStatistics


DispatchFn = Callable[[Callable[[], None]], None]
ErrorFn = Callable[[str], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc)


class StoragePresenter:
    """Keeps network calls off the caller's thread.

    Every callback is routed through ``dispatch`` so a caller with its own event
    loop can marshal results back onto it.
    """

    def __init__(
        self,
        *,
        controller: StorageController | None = None,
        dispatch: DispatchFn | None = None,
    ) -> None:
        self._controller = controller or StorageController()
        self._dispatch = dispatch or (lambda func: func())

    def collect_statistics(
        self,
        *,
        storage_id: int,
        on_success: Callable[[StorageStatistics], None],
        on_error: ErrorFn,
        on_cancelled: ErrorFn | None = None,
        on_done: DoneFn | None = None,
        cancel_requested: Callable[[], bool] | None = None,
    ) -> None:
        LOGGER.debug("Collecting statistics for storage %d", storage_id)
        def task() -> None:
            try:
                stats = self._controller.collect_statistics(
                    storage_id,
                    cancel_requested=cancel_requested,
                )
            except TraversalCancelledError as exc:
                LOGGER.info("Statistics collection for storage %d cancelled", storage_id)
                handler = on_cancelled or on_error
                message = _format_error(exc)
                self._dispatch(lambda: handler(message))
            except StorageError as exc:
                LOGGER.exception("Statistics error for storage %d", storage_id)
                message = _format_error(exc)
                self._dispatch(lambda: on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected statistics error for storage %d", storage_id)
                message = _format_error(exc)
                self._dispatch(lambda: on_error(message))
            else:
                LOGGER.debug(
                    "Storage %d holds %d file(s) in %d folder(s)",
                    storage_id,
                    stats.file_count,
                    stats.folder_count,
                )
                self._dispatch(lambda: on_success(stats))
            finally:
                if on_done:
                    self._dispatch(on_done)

        threading.Thread(target=task, daemon=True).start()
