"""Line parser for restore tool output.

Turns raw stdout/stderr lines into ``OutputEvent`` values: the log level
and message to record, plus a new progress value when a stdout line
signals that restoring advanced.  The parser holds the running progress
so it can be exercised without a real restore process.

Usage:
    parser = RestoreOutputParser()
    event = parser.parse_stdout("pg_restore: restoring data for table users")
    event.progress      # 15
    parser.parse_stderr("WARNING: no privileges were granted").level  # LogLevel.WARN
"""

import re

from pydantic import BaseModel

from db_restore.jobs.models import RESTORE_PROGRESS_CAP, LogLevel

# Progress after the first "restoring" line is INITIAL + STEP
INITIAL_PROGRESS = 10
PROGRESS_STEP = 5

_PROGRESS_MARKER_RE = re.compile(r"restoring")
_BENIGN_STDERR_RE = re.compile(r"NOTICE|WARNING")


class OutputEvent(BaseModel):
    """What to record for one line of tool output."""

    level: LogLevel
    message: str
    progress: int | None = None                     # set only when progress moved


class RestoreOutputParser:
    """Stateful parser for one restore run.

    Args:
        initial_progress: Progress base before the first marker line.
        step: Increment per marker line.
        cap: Progress never exceeds this value during the restore phase.
    """

    def __init__(
        self,
        initial_progress: int = INITIAL_PROGRESS,
        step: int = PROGRESS_STEP,
        cap: int = RESTORE_PROGRESS_CAP,
    ) -> None:
        self.progress = initial_progress
        self._step = step
        self._cap = cap

    def parse_stdout(self, line: str) -> OutputEvent | None:
        """Classify a stdout line; ``None`` for blank lines."""
        text = line.strip()
        if not text:
            return None

        event = OutputEvent(level=LogLevel.INFO, message=f"Restore output: {text}")
        if _PROGRESS_MARKER_RE.search(text):
            new_progress = min(self.progress + self._step, self._cap)
            if new_progress != self.progress:
                self.progress = new_progress
                event.progress = new_progress
        return event

    def parse_stderr(self, line: str) -> OutputEvent | None:
        """Classify a stderr line as notice (``warn``) or ``error``.

        Stderr lines never decide the outcome of a restore; only the
        process exit code does.
        """
        text = line.strip()
        if not text:
            return None

        if _BENIGN_STDERR_RE.search(text):
            return OutputEvent(level=LogLevel.WARN, message=f"Restore notice: {text}")
        return OutputEvent(level=LogLevel.ERROR, message=f"Restore error: {text}")
