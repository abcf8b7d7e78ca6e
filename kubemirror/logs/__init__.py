"""Container log streaming for kubemirror."""

from kubemirror.logs.multiplexer import LogLine, LogMultiplexer, LogOpenError, LogStream, MergedLogStream

__all__ = ["LogLine", "LogMultiplexer", "LogOpenError", "LogStream", "MergedLogStream"]
