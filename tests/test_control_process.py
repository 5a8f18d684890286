import tempfile
import unittest
from pathlib import Path

from taut.intercept.identity import is_wrapped
from taut.ipc.channel import GET_ORIGINAL_PRELOAD, START_PLUGINS, LocalChannel
from taut.kernel.paths import TautPaths
from taut.kernel.watch import PollingWatcher
from taut.main import ControlProcess

from tests._taut_fakes import RecordingLogger, make_platform


class ManualWatcher(PollingWatcher):
    def start(self) -> None:
        return None


class _Provider:
    def __init__(self, modules):
        self.modules = modules

    def load(self, request):
        return self.modules[request]


class ControlProcessTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.paths = TautPaths.from_root(Path(self._tmp.name))
        self.platform = make_platform()
        self.control_channel, self.ui_channel = LocalChannel.pair()
        self.logger = RecordingLogger()

    def _control(self) -> ControlProcess:
        control = ControlProcess(
            self.control_channel,
            paths=self.paths,
            provider=_Provider({"electron": self.platform, "fs": object()}),
            watcher=ManualWatcher(),
            logger=self.logger,
        )
        self.addCleanup(control.stop)
        return control

    def test_original_preload_served_after_window_creation(self) -> None:
        control = self._control()
        self.assertIsNone(self.ui_channel.invoke(GET_ORIGINAL_PRELOAD))
        preload = Path(self._tmp.name) / "host-preload.js"
        preload.write_text("host()", encoding="utf-8")
        electron = control.load("electron")
        self.assertTrue(is_wrapped(electron))
        electron.BrowserWindow({"webPreferences": {"preload": str(preload)}})
        self.assertEqual(self.ui_channel.invoke(GET_ORIGINAL_PRELOAD), "host()")
        self.assertFalse(is_wrapped(control.load("fs")))

    def test_start_plugins_request(self) -> None:
        self.paths.user_plugins_dir.mkdir(parents=True)
        (self.paths.user_plugins_dir / "Demo.py").write_text("x = 1\n", encoding="utf-8")
        self._control()
        loads = []
        self.ui_channel.on("taut:load-plugin", lambda name, code, config: loads.append((name, code, config)))
        self.assertEqual(self.ui_channel.invoke(START_PLUGINS), ["Demo"])
        self.assertEqual(loads, [("Demo", "x = 1\n", {"enabled": False})])

    def test_start_installs_menu_and_header_rewriter(self) -> None:
        control = self._control()
        control.start(self.platform)
        self.assertTrue(control.session.menu_installed)
        self.assertEqual(len(self.platform.Menu.applied), 1)
        web_request = self.platform.session.defaultSession.webRequest
        self.assertIsNotNone(web_request.before_send)
        self.assertIsNotNone(web_request.headers_received)
        control.load("electron").Menu.setApplicationMenu("host menu")
        self.assertEqual(len(self.platform.Menu.applied), 1)

    def test_intercept_settings_come_from_config(self) -> None:
        self.paths.config_path.write_text(
            '{"intercept": {"modules": ["fs"], "host_origin": "https://h.test", "safe_storage_bypass": true}}',
            encoding="utf-8",
        )
        control = self._control()
        self.assertTrue(is_wrapped(control.load("fs")))
        self.assertFalse(is_wrapped(control.load("electron")))
        self.assertEqual(control.header_rewriter.host_origin, "https://h.test")
        self.assertIn("<electron>.safeStorage.encryptString", control.table)


if __name__ == "__main__":
    unittest.main()
