"""Selection bookkeeping for discovered tests.

Holds the method-level test identifiers picked for the next launch. Class
selection is derived: a class counts as selected only when it has methods
and every one of them is selected.
"""

from typing import Iterable, Iterator

from .tree import TestClass


class SelectionStore:
    """Ordered set of selected test identifiers."""

    def __init__(self, test_ids: Iterable[str] = ()):
        # dict keeps insertion order, values unused
        self._selected: dict[str, None] = dict.fromkeys(test_ids)
        self._expanded: set[str] = set()

    @property
    def test_ids(self) -> list[str]:
        """Selected identifiers in the order they were picked."""
        return list(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, test_id: object) -> bool:
        return test_id in self._selected

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._selected))

    def select(self, test_ids: Iterable[str]) -> None:
        for test_id in test_ids:
            self._selected.setdefault(test_id, None)

    def deselect(self, test_ids: Iterable[str]) -> None:
        for test_id in test_ids:
            self._selected.pop(test_id, None)

    def toggle_test(self, test_id: str) -> bool:
        """Flip a single test. Returns True if it is now selected."""
        if test_id in self._selected:
            del self._selected[test_id]
            return False
        self._selected[test_id] = None
        return True

    def is_class_selected(self, test_class: TestClass) -> bool:
        if not test_class.test_methods:
            return False
        return all(m.unique_id in self._selected for m in test_class.test_methods)

    def toggle_class(self, test_class: TestClass) -> bool:
        """Select every method of a class, or deselect them all if the
        class is already fully selected.

        Returns:
            True if the class is fully selected afterwards.
        """
        if self.is_class_selected(test_class):
            self.deselect(test_class.method_ids)
            return False
        self.select(test_class.method_ids)
        return self.is_class_selected(test_class)

    def toggle_expand(self, class_id: str) -> bool:
        if class_id in self._expanded:
            self._expanded.discard(class_id)
            return False
        self._expanded.add(class_id)
        return True

    def is_expanded(self, class_id: str) -> bool:
        return class_id in self._expanded

    def clear(self) -> None:
        self._selected.clear()

    def reset(self) -> None:
        """Forget selection and expansion, e.g. after re-discovery."""
        self._selected.clear()
        self._expanded.clear()
