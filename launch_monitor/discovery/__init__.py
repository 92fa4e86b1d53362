"""Discovery module - test tree and selection."""

from .selection import SelectionStore
from .tree import TestClass, TestMethod, TestTree

__all__ = [
    "SelectionStore",
    "TestClass",
    "TestMethod",
    "TestTree",
]
