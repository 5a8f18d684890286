import builtins
import importlib
import sys
import types
import unittest

from taut.intercept.identity import is_wrapped, unwrap
from taut.intercept.module_hook import ModuleLoadHook, install_import_hook
from taut.intercept.proxy import Interceptor
from taut.intercept.redirects import RedirectTable

from tests._taut_fakes import make_platform


class DictProvider:
    def __init__(self, modules):
        self.modules = modules
        self.requests = []

    def load(self, request):
        self.requests.append(request)
        return self.modules[request]


class ModuleLoadHookTests(unittest.TestCase):
    def setUp(self) -> None:
        self.platform = make_platform()
        self.other = types.ModuleType("path")
        self.provider = DictProvider({"electron": self.platform, "path": self.other, "electron/main": self.platform})
        self.hook = ModuleLoadHook(self.provider, Interceptor(RedirectTable()))

    def test_only_allow_listed_requests_are_wrapped(self) -> None:
        wrapped = self.hook.load("electron")
        self.assertTrue(is_wrapped(wrapped))
        self.assertIs(unwrap(wrapped), self.platform)
        self.assertEqual(object.__getattribute__(wrapped, "_taut_path"), "<electron>")
        self.assertIs(self.hook.load("path"), self.other)

    def test_patterns_match_whole_request(self) -> None:
        self.assertTrue(self.hook.matches("electron"))
        self.assertTrue(self.hook.matches("electron/main"))
        self.assertFalse(self.hook.matches("not-electron"))

    def test_already_wrapped_exports_are_not_rewrapped(self) -> None:
        wrapped = self.hook.load("electron")
        self.assertIs(self.hook.wrap_exports("electron", wrapped), wrapped)


class ImportHookTests(unittest.TestCase):
    def setUp(self) -> None:
        self.module = types.ModuleType("tautfake_platform")
        self.module.answer = 42
        sys.modules["tautfake_platform"] = self.module
        self.addCleanup(sys.modules.pop, "tautfake_platform", None)
        self.hook = ModuleLoadHook(
            DictProvider({}),
            Interceptor(RedirectTable()),
            patterns=(r"tautfake_.*",),
        )

    def test_install_wraps_imports_and_uninstall_restores(self) -> None:
        orig_import = builtins.__import__
        orig_import_module = importlib.import_module
        uninstall = install_import_hook(self.hook)
        try:
            self.assertIs(install_import_hook(self.hook), uninstall)
            via_import = __import__("tautfake_platform")
            via_importlib = importlib.import_module("tautfake_platform")
            self.assertTrue(is_wrapped(via_import))
            self.assertTrue(is_wrapped(via_importlib))
            self.assertEqual(via_import.answer, 42)
            self.assertIs(__import__("json"), sys.modules["json"])
        finally:
            uninstall()
        self.assertIs(builtins.__import__, orig_import)
        self.assertIs(importlib.import_module, orig_import_module)


if __name__ == "__main__":
    unittest.main()
