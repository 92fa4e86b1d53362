"""Runner module - command-line execution flow."""

from .executor import ExecutionResult, RunExecutor

__all__ = [
    "ExecutionResult",
    "RunExecutor",
]
