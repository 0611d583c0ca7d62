# flasharb/transaction.py
"""
All-or-nothing execution units.

State holders (the token ledger, pool reserves) write through a shared
Journal. While a Transaction is open every change is recorded as a delta, so a
failure anywhere inside the block reverses exactly the changes it made and
nothing else.
"""

import logging
import threading
from typing import List, MutableMapping, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class Journal:
    """
    Undo log with one frame per open transaction.

    Frames are per thread and record each change as a signed delta. A rollback
    applies the inverse of the calling thread's own changes, so writes other
    threads made to the same entries in the meantime survive it. Every
    read-modify-write goes through `lock`.
    """

    def __init__(self):
        self._local = threading.local()
        self.lock = threading.RLock()

    @property
    def _frames(self) -> List[List[Tuple[MutableMapping, object, int, bool]]]:
        frames = getattr(self._local, "frames", None)
        if frames is None:
            frames = self._local.frames = []
        return frames

    @property
    def depth(self) -> int:
        return len(self._frames)

    def add(self, table: MutableMapping, key, delta: int) -> int:
        """table[key] += delta (missing entries count as 0); returns the new value"""
        with self.lock:
            previous = table.get(key, _MISSING)
            created = previous is _MISSING
            value = (0 if created else previous) + delta
            frames = self._frames
            if frames:
                frames[-1].append((table, key, delta, created))
            table[key] = value
            return value

    def write(self, table: MutableMapping, key, value: int) -> None:
        """Set table[key] = value, journaled as the change from the current value"""
        with self.lock:
            self.add(table, key, value - table.get(key, 0))

    def begin(self) -> None:
        self._frames.append([])

    def commit(self) -> int:
        frames = self._frames
        frame = frames.pop()
        # nested commit: the outer unit may still roll these back
        if frames:
            frames[-1].extend(frame)
        return len(frame)

    def rollback(self) -> int:
        frame = self._frames.pop()
        with self.lock:
            for table, key, delta, created in reversed(frame):
                value = table.get(key, 0) - delta
                if created and value == 0:
                    table.pop(key, None)
                else:
                    table[key] = value
        return len(frame)


class Transaction:
    """
    Context manager wrapping a Journal frame.

    Any exception raised inside the block rolls back and propagates.
    `rollback_only=True` always rolls back, which turns the block into a dry run.
    """

    def __init__(self, journal: Journal, name: Optional[str] = None, rollback_only: bool = False):
        self.journal = journal
        self.name = name or "tx"
        self.rollback_only = rollback_only
        self.rolled_back = False

    def __enter__(self):
        self.journal.begin()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            reverted = self.journal.rollback()
            self.rolled_back = True
            logger.debug(f"[{self.name}] rolled back {reverted} writes ({exc_type.__name__}: {exc})")
            return False  # re-raise

        if self.rollback_only:
            reverted = self.journal.rollback()
            self.rolled_back = True
            logger.debug(f"[{self.name}] dry run discarded {reverted} writes")
            return False

        committed = self.journal.commit()
        logger.debug(f"[{self.name}] committed {committed} writes")
        return False
