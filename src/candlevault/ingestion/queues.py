"""Closable FIFO queue used for stage handoffs."""

from __future__ import annotations

import queue
from typing import Any, Iterator

_CLOSED = object()


class ClosableQueue(queue.Queue):
    """A :class:`queue.Queue` that a single producer can close.

    Iterating the queue yields items in FIFO order and stops once the
    close marker is reached.  Only one consumer may iterate a queue.
    """

    def close(self) -> None:
        """Mark the end of the stream; blocks while a bounded queue is full."""
        self.put(_CLOSED)

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self.get()
            try:
                if item is _CLOSED:
                    return
                yield item
            finally:
                self.task_done()
