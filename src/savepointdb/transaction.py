"""
Transaction frames for the savepoint key-value database.
"""

import logging
from typing import Any, Optional, Tuple, TYPE_CHECKING

from .exceptions import StorageError

if TYPE_CHECKING:
    from .storage import StorageBackend


logger = logging.getLogger(__name__)


class Frame:
    """
    One level of the transaction chain.

    A frame owns its storage backend and at most one nested child frame.
    Every operation is forwarded to the child when there is one, so the
    innermost frame is the only one ever read or written. Frames do no
    locking of their own; the owning Database serializes access.
    """

    def __init__(self, storage: 'StorageBackend', child: Optional['Frame'] = None) -> None:
        self.storage = storage
        self.child = child

    def set(self, key: str, value: Any) -> None:
        """Set a key in the innermost frame. Backend failures are logged, not raised."""
        if self.child is not None:
            self.child.set(key, value)
            return

        try:
            self.storage.save(key, value)
        except StorageError as e:
            logger.warning("Ignoring failed save of key %r: %s", key, e)

    def get(self, key: str) -> Tuple[Optional[int], bool]:
        """Get an integer value from the innermost frame."""
        if self.child is not None:
            return self.child.get(key)

        try:
            value, found = self.storage.find(key)
        except StorageError as e:
            logger.warning("Treating failed lookup of key %r as missing: %s", key, e)
            return None, False

        # bool is an int subclass but never a stored integer
        if not found or not isinstance(value, int) or isinstance(value, bool):
            return None, False
        return value, True

    def unset(self, key: str) -> None:
        """Remove a key from the innermost frame. Backend failures are logged, not raised."""
        if self.child is not None:
            self.child.unset(key)
            return

        try:
            self.storage.delete(key)
        except StorageError as e:
            logger.warning("Ignoring failed delete of key %r: %s", key, e)

    def begin(self) -> None:
        """Open a new innermost frame holding a copy of the current innermost storage."""
        if self.child is not None:
            self.child.begin()
            return

        self.child = Frame(self.storage.clone())

    def innermost(self) -> 'Frame':
        """Return the deepest frame of the chain starting here."""
        frame = self
        while frame.child is not None:
            frame = frame.child
        return frame

    def discard_innermost(self) -> 'Frame':
        """
        Detach the deepest child frame and return it.

        Raises:
            ValueError: If this frame has no child
        """
        if self.child is None:
            raise ValueError("Frame has no nested transaction")

        parent = self
        frame = self.child
        while frame.child is not None:
            parent = frame
            frame = frame.child

        parent.child = None
        return frame

    def depth(self) -> int:
        """Number of frames nested below this one."""
        count = 0
        frame = self.child
        while frame is not None:
            count += 1
            frame = frame.child
        return count
