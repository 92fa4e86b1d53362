"""Reporting module - session summaries."""

from .json_reporter import JsonReporter

__all__ = ["JsonReporter"]
