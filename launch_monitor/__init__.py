"""launch-monitor - launch, monitor and rerun test executions on a test
launcher backend."""

__version__ = "0.1.0"
