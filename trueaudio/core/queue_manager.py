"""
Pending queue for the batch scheduler.

Holds the ids of submitted items that have not started yet, in
submission order.
"""

import logging
from collections import deque
from typing import Deque, Hashable, List


class PendingQueue:
    """
    FIFO queue of item ids waiting to be analysed.

    Not thread-safe on its own; the scheduler guards it with its lock.
    """

    def __init__(self):
        """Initialize empty queue."""
        self.queue: Deque[Hashable] = deque()
        self.logger = logging.getLogger('queue')

    def add(self, item_id: Hashable) -> None:
        """Add id to end of queue."""
        self.queue.append(item_id)
        self.logger.debug(f"Queued: {item_id} (queue size: {len(self.queue)})")

    def take(self, count: int) -> List[Hashable]:
        """
        Pop up to ``count`` ids from the front of the queue (FIFO).

        Returns:
            The ids in submission order, possibly empty
        """
        taken = []
        while self.queue and len(taken) < count:
            taken.append(self.queue.popleft())
        if taken:
            self.logger.debug(f"Dequeued {len(taken)} item(s) (queue size: {len(self.queue)})")
        return taken

    def remove(self, item_id: Hashable) -> bool:
        """
        Remove a specific id from the queue.

        Returns:
            True if the id was found and removed, False otherwise
        """
        try:
            self.queue.remove(item_id)
            self.logger.debug(f"Removed from queue: {item_id} (queue size: {len(self.queue)})")
            return True
        except ValueError:
            return False

    def is_empty(self) -> bool:
        """Check if queue is empty."""
        return len(self.queue) == 0

    def size(self) -> int:
        """Get current queue size."""
        return len(self.queue)

    def clear(self) -> List[Hashable]:
        """Clear the queue, returning the dropped ids."""
        dropped = list(self.queue)
        self.queue.clear()
        self.logger.info(f"Cleared queue ({len(dropped)} items removed)")
        return dropped

    def list_ids(self) -> List[Hashable]:
        """Get all queued ids (in order)."""
        return list(self.queue)
