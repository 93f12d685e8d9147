"""
Thread navigation in playback order.

Threads are stepped through by ascending t_start, independent of their
chip (creation order). The navigator keeps no state of its own: every
call recomputes the order from the store's current threads and selection.
"""

import logging
from typing import Optional, List, Callable, Any

from .models import Thread

logger = logging.getLogger("review_core")

NOT_FOUND = -1


def sort_threads(threads: List[Thread]) -> List[Thread]:
    """Threads ordered by t_start; ties keep their input order"""
    return sorted(threads, key=lambda t: t.t_start)


def current_index(threads: List[Thread], selected_id: Optional[str]) -> int:
    """Index of the selected thread in t_start order, or NOT_FOUND"""
    if not selected_id:
        return NOT_FOUND
    for idx, thread in enumerate(sort_threads(threads)):
        if thread.id == selected_id:
            return idx
    return NOT_FOUND


class ThreadNavigator:
    """Previous/next stepping over the store's threads"""

    def __init__(self, store, on_seek: Optional[Callable[[float], Any]] = None):
        """
        Args:
            store: ReviewStore whose threads and selection are navigated
            on_seek: Called with the t_start of the newly selected thread
                (the video player's seek operation)
        """
        self.store = store
        self.on_seek = on_seek

    @property
    def sorted_threads(self) -> List[Thread]:
        return sort_threads(self.store.get_threads())

    @property
    def current_index(self) -> int:
        return current_index(self.store.get_threads(), self.store.selected_thread_id)

    @property
    def total_threads(self) -> int:
        return len(self.store.get_threads())

    @property
    def has_previous(self) -> bool:
        return self.current_index > 0

    @property
    def has_next(self) -> bool:
        idx = self.current_index
        return idx != NOT_FOUND and idx < self.total_threads - 1

    def _go_to(self, offset: int) -> Optional[float]:
        threads = self.sorted_threads
        target = threads[current_index(threads, self.store.selected_thread_id) + offset]
        self.store.select_thread(target.id)
        logger.debug(f"Navigated to thread {target.id} (chip {target.chip}) at {target.t_start}s")
        if self.on_seek is not None:
            self.on_seek(target.t_start)
        return target.t_start

    def go_to_previous(self) -> Optional[float]:
        """Select the previous thread and seek to it; returns its t_start or None"""
        if not self.has_previous:
            return None
        return self._go_to(-1)

    def go_to_next(self) -> Optional[float]:
        """Select the next thread and seek to it; returns its t_start or None"""
        if not self.has_next:
            return None
        return self._go_to(1)
