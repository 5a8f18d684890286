import tempfile
import unittest
from pathlib import Path

from taut.intercept.builtin import (
    PROJECT_URL,
    ControlSession,
    application_menu_template,
    install_application_menu,
    install_default_redirects,
)
from taut.intercept.identity import is_wrapped
from taut.intercept.module_hook import ModuleLoadHook
from taut.intercept.proxy import Interceptor
from taut.intercept.redirects import RedirectTable
from taut.kernel.paths import TautPaths

from tests._taut_fakes import FakeBrowserWindow, RecordingLogger, make_platform


class _Provider:
    def __init__(self, platform):
        self.platform = platform

    def load(self, request):
        return self.platform


class BuiltinRedirectTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.paths = TautPaths.from_root(self.root)
        self.paths.client_path.parent.mkdir(parents=True, exist_ok=True)
        self.paths.client_path.write_text("start_client()\n", encoding="utf-8")
        self.original_preload = self.root / "host-preload.js"
        self.original_preload.write_text("host preload body", encoding="utf-8")
        self.platform = make_platform()
        self.logger = RecordingLogger()
        self.session = ControlSession()

    def _electron(self, *, bypass: bool = False):
        table = RedirectTable()
        install_default_redirects(
            table, self.session, self.paths, safe_storage_bypass=bypass, logger=self.logger
        )
        hook = ModuleLoadHook(_Provider(self.platform), Interceptor(table, self.logger))
        return hook.load("electron")

    def test_window_construction_forces_devtools_and_nothing_else(self) -> None:
        electron = self._electron()
        options = {
            "width": 1280,
            "title": "Slack",
            "webPreferences": {"preload": str(self.original_preload), "contextIsolation": True},
        }
        window = electron.BrowserWindow(options)

        self.assertIsInstance(window, FakeBrowserWindow)
        self.assertFalse(is_wrapped(window))
        prefs = window.options["webPreferences"]
        self.assertIs(prefs["devTools"], True)
        self.assertEqual(prefs["preload"], str(self.paths.preload_path))
        self.assertIs(prefs["contextIsolation"], True)
        self.assertEqual(window.options["width"], 1280)
        self.assertEqual(window.options["title"], "Slack")
        self.assertEqual(set(window.options), set(options))
        self.assertEqual(window.getTitle(), "Slack")
        self.assertEqual(self.session.original_preload, "host preload body")
        self.assertIs(self.session.window, window)

    def test_client_injected_after_page_load(self) -> None:
        electron = self._electron()
        window = electron.BrowserWindow({"webPreferences": {}})
        self.assertEqual(window.webContents.executed, [])
        window.webContents.emit("did-finish-load")
        self.assertEqual(window.webContents.executed, ["start_client()\n"])

    def test_missing_client_is_logged_not_raised(self) -> None:
        self.paths.client_path.unlink()
        electron = self._electron()
        window = electron.BrowserWindow({})
        window.webContents.emit("did-finish-load")
        self.assertEqual(window.webContents.executed, [])
        self.assertIn("client.missing", self.logger.names())

    def test_window_without_options_gets_preferences(self) -> None:
        electron = self._electron()
        window = electron.BrowserWindow()
        self.assertEqual(
            window.options,
            {"webPreferences": {"devTools": True, "preload": str(self.paths.preload_path)}},
        )
        self.assertIsNone(self.session.original_preload)

    def test_unreadable_original_preload_is_logged(self) -> None:
        electron = self._electron()
        electron.BrowserWindow({"webPreferences": {"preload": str(self.root / "missing.js")}})
        self.assertIsNone(self.session.original_preload)
        self.assertIn("preload.read_failed", self.logger.names())

    def test_menu_lock_after_our_menu_is_installed(self) -> None:
        electron = self._electron()
        electron.Menu.setApplicationMenu("host menu")
        self.assertEqual(self.platform.Menu.applied, ["host menu"])

        self.assertTrue(install_application_menu(self.platform, self.session, self.logger))
        self.assertEqual(len(self.platform.Menu.applied), 2)
        electron.Menu.setApplicationMenu("host menu again")
        self.assertEqual(len(self.platform.Menu.applied), 2)
        self.assertEqual(self.platform.Menu.applied[-1]["template"][-2]["label"], "Taut")

    def test_safe_storage_bypass(self) -> None:
        electron = self._electron(bypass=True)
        self.assertIs(electron.safeStorage.isEncryptionAvailable(), True)
        self.assertEqual(electron.safeStorage.encryptString("token"), b"token")
        self.assertEqual(electron.safeStorage.decryptString(b"token"), "token")

    def test_safe_storage_untouched_without_bypass(self) -> None:
        electron = self._electron(bypass=False)
        self.assertIs(electron.safeStorage.isEncryptionAvailable(), False)
        self.assertEqual(electron.safeStorage.encryptString("token"), b"enc:token")


class ApplicationMenuTemplateTests(unittest.TestCase):
    def test_app_menu_only_on_darwin(self) -> None:
        platform = make_platform()
        self.assertEqual(application_menu_template(platform, darwin=True)[0], {"role": "appMenu"})
        self.assertEqual(application_menu_template(platform, darwin=False)[0], {"role": "fileMenu"})

    def test_about_opens_project_page(self) -> None:
        platform = make_platform()
        template = application_menu_template(platform, darwin=False)
        taut_menu = next(item for item in template if item.get("label") == "Taut")
        taut_menu["submenu"][0]["click"]()
        self.assertEqual(platform.shell.opened, [PROJECT_URL])


if __name__ == "__main__":
    unittest.main()
