"""
Tests for the internal helpers.

This module verifies:
- The Unset sentinel (singleton, falsy, sealed, usable in isinstance unions).
- coalesce() only replaces Unset.
- rename() in both call forms.
- mirror() exposes frozen views of private state.
- hasprefix() matching rules.
"""
import unittest
from types import MappingProxyType
from unittest import TestCase

from flagstaff.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the Unset sentinel.
    """

    def testSingleton(self) -> None:
        self.assertIs(UnsetType(), Unset)

    def testFalsyButNotNone(self) -> None:
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertEqual(repr(Unset), "Unset")

    def testUnionWithTypes(self) -> None:
        self.assertIsInstance(Unset, str | Unset)
        self.assertIsInstance("x", str | Unset)
        self.assertNotIsInstance(1, str | Unset)

    def testFinal(self) -> None:
        with self.assertRaises(TypeError):
            type("Sub", (UnsetType,), {})


class HelpersTest(TestCase):
    """
    Test suite for coalesce, rename, mirror and hasprefix.
    """

    def testCoalesce(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        self.assertEqual(coalesce(0, "fallback"), 0)
        self.assertIsNone(coalesce(None, "fallback"))

    def testRenameFunctionForm(self) -> None:
        def work():
            pass

        self.assertIs(rename(work, "job"), work)
        self.assertEqual((work.__name__, work.__qualname__), ("job", "job"))

    def testRenameDecoratorForm(self) -> None:
        @rename("job")
        def work():
            pass

        self.assertEqual(work.__name__, "job")

    def testRenameRejectsBadArguments(self) -> None:
        with self.assertRaises(TypeError):
            rename(42, "job")
        with self.assertRaises(TypeError):
            rename()

    def testMirrorFreezesContainers(self) -> None:
        class Holder:
            items = mirror("items")
            table = mirror("table")
            names = mirror("names")
            label = mirror("label")

            def __init__(self):
                self._items = [1, 2]
                self._table = {"a": 1}
                self._names = {"x"}
                self._label = "text"

        holder = Holder()
        self.assertEqual(holder.items, (1, 2))
        self.assertIsInstance(holder.table, MappingProxyType)
        self.assertEqual(holder.names, frozenset({"x"}))
        self.assertEqual(holder.label, "text")
        with self.assertRaises(AttributeError):
            holder.items = ()  # NOQA: read-only property

    def testHasPrefix(self) -> None:
        self.assertTrue(hasprefix("build", "bu"))
        self.assertTrue(hasprefix("build", ""))
        self.assertFalse(hasprefix("bu", "build"))
        self.assertFalse(hasprefix("Build", "bu"))


if __name__ == "__main__":
    unittest.main()
