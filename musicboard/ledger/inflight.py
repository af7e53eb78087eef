"""
musicboard/ledger/inflight.py
Client-side gate against duplicate applause submissions.
"""

import logging
from contextlib import contextmanager
from typing import FrozenSet, Iterator, Set

from musicboard.errors import ApplauseInFlightError

logger = logging.getLogger(__name__)


class InFlightSet:
    """
    Note ids with an applause submission outstanding.

    An id appears at most once. The claim is released when the `with` block
    exits, whether the submission succeeded or failed.
    """
    def __init__(self):
        self._ids: Set[int] = set()

    def __contains__(self, note_id: int) -> bool:
        return note_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> FrozenSet[int]:
        return frozenset(self._ids)

    @contextmanager
    def claim(self, note_id: int) -> Iterator[int]:
        if note_id in self._ids:
            raise ApplauseInFlightError(
                f"Applause for note {note_id} is already being submitted",
                details={"note_id": note_id},
            )
        self._ids.add(note_id)
        logger.debug(f"[InFlightSet] Claimed note {note_id}")
        try:
            yield note_id
        finally:
            self._ids.discard(note_id)
            logger.debug(f"[InFlightSet] Released note {note_id}")

    def clear(self) -> None:
        self._ids.clear()
