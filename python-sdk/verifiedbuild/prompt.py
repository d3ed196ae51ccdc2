from __future__ import annotations

import sys
from typing import Protocol, TextIO


class Confirmer(Protocol):
    def confirm(self, message: str) -> bool: ...


class TerminalConfirmer:
    """Asks on the terminal and blocks until a line is read; only ``y``/``Y`` accepts."""

    def __init__(self, stream_in: TextIO | None = None, stream_out: TextIO | None = None):
        self.stream_in = stream_in
        self.stream_out = stream_out

    def confirm(self, message: str) -> bool:
        out = self.stream_out or sys.stdout
        out.write(message)
        out.flush()
        # consume the whole line so a later prompt does not see the newline
        answer = (self.stream_in or sys.stdin).readline()[:1]
        return answer in ("y", "Y")


class AlwaysConfirm:
    """Unattended mode: every question is answered yes."""

    def confirm(self, message: str) -> bool:
        return True
