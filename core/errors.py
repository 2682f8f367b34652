# core/errors.py


class PerfTimelineError(Exception):
    """Base class for every error raised while building a timeline."""


class PerfScriptParseError(PerfTimelineError, ValueError):
    """
    A header line could not be parsed (missing fields, bad pid or bad timestamp).
    The whole parse is abandoned; no partial frame list is returned.
    """
    def __init__(self, reason: str, line: str, line_number: int | None = None):
        self.reason = reason
        self.line = line
        self.line_number = line_number
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"{reason}{where}: [{line}]")


class PerfScriptReadError(PerfTimelineError, OSError):
    """Reading the capture failed. The original exception is kept as __cause__."""


class EmptyStackError(PerfTimelineError):
    """A frame without stack entries reached the aggregator under the 'error' policy."""
    def __init__(self, frame):
        self.frame = frame
        super().__init__(
            f"Frame for {frame.process_name} (pid {frame.pid}) at {frame.timestamp:.6f} has an empty stack"
        )


class ConfigError(PerfTimelineError, ValueError):
    pass
