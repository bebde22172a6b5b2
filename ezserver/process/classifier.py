"""Classification of server console lines into lifecycle events."""

import re
from typing import Optional, Pattern, Sequence, Tuple

from ..constants import CHUNK_IO_STALL_PATTERN, READY_PATTERN, THREAD_POOL_STALL_PATTERN
from ..models import LineEvent, LineKind, StallReason


class LineClassifier:
    """Matches console lines against the ready and stall patterns."""

    def __init__(
        self,
        ready_pattern: str = READY_PATTERN,
        stall_patterns: Optional[Sequence[Tuple[StallReason, str]]] = None,
    ) -> None:
        if stall_patterns is None:
            stall_patterns = (
                (StallReason.CHUNK_IO, CHUNK_IO_STALL_PATTERN),
                (StallReason.THREAD_POOL, THREAD_POOL_STALL_PATTERN),
            )
        self._ready: Pattern[str] = re.compile(ready_pattern)
        self._stalls = [(reason, re.compile(pattern)) for reason, pattern in stall_patterns]

    def classify(self, line: str) -> LineEvent:
        if self._ready.search(line):
            return LineEvent(line, LineKind.READY)
        for reason, pattern in self._stalls:
            if pattern.search(line):
                return LineEvent(line, LineKind.STALLED, reason)
        return LineEvent(line, LineKind.UNCLASSIFIED)


_default_classifier = LineClassifier()


def classify_line(line: str) -> LineEvent:
    """Classify a line with the default patterns."""
    return _default_classifier.classify(line)
