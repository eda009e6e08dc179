"""Local command execution."""

from .runner import CommandRunner
from .sink import ConsoleSink, ListSink, OutputSink

__all__ = ["CommandRunner", "ConsoleSink", "ListSink", "OutputSink"]
