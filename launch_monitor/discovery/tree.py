"""Test tree models returned by the backend discover endpoint.

The backend owns discovery; this module only decodes its JSON shape:

    {
        "testClasses": [
            {
                "uniqueId": "...",
                "fullyQualifiedName": "com.example.FooTest",
                "simpleName": "FooTest",
                "displayName": "FooTest",
                "testMethods": [
                    {"uniqueId": "...", "methodName": "bar",
                     "displayName": "bar()", "tags": ["fast"]}
                ]
            }
        ],
        "totalTests": 1,
        "discoveryTimestamp": "2024-01-01T10:00:00"
    }
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass
class TestMethod:
    """A single test method within a test class."""
    __test__ = False

    unique_id: str
    method_name: str = ""
    display_name: str = ""
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestMethod":
        return cls(
            unique_id=data["uniqueId"],
            method_name=data.get("methodName", ""),
            display_name=data.get("displayName") or data.get("methodName", ""),
            tags=list(data.get("tags") or []),
        )


@dataclass
class TestClass:
    """A test class and its methods."""
    __test__ = False

    unique_id: str
    fully_qualified_name: str = ""
    simple_name: str = ""
    display_name: str = ""
    test_methods: list[TestMethod] = field(default_factory=list)

    @property
    def method_ids(self) -> list[str]:
        return [m.unique_id for m in self.test_methods]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestClass":
        return cls(
            unique_id=data["uniqueId"],
            fully_qualified_name=data.get("fullyQualifiedName", ""),
            simple_name=data.get("simpleName", ""),
            display_name=data.get("displayName") or data.get("simpleName", ""),
            test_methods=[
                TestMethod.from_dict(m) for m in data.get("testMethods") or []
            ],
        )


@dataclass
class TestTree:
    """Hierarchical structure of discovered tests."""
    __test__ = False

    test_classes: list[TestClass] = field(default_factory=list)
    total_tests: int = 0
    discovery_timestamp: Optional[str] = None

    def iter_methods(self) -> Iterator[TestMethod]:
        for test_class in self.test_classes:
            yield from test_class.test_methods

    def find_class(self, unique_id: str) -> Optional[TestClass]:
        """Find a class by unique id or fully qualified name."""
        for test_class in self.test_classes:
            if unique_id in (test_class.unique_id, test_class.fully_qualified_name):
                return test_class
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestTree":
        test_classes = [TestClass.from_dict(c) for c in data.get("testClasses") or []]
        total = data.get("totalTests")
        if total is None:
            total = sum(len(c.test_methods) for c in test_classes)
        return cls(
            test_classes=test_classes,
            total_tests=int(total),
            discovery_timestamp=data.get("discoveryTimestamp"),
        )
