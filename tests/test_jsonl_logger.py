import io
import json
import tempfile
import unittest
from pathlib import Path

from taut.kernel.logging import JsonlLogger, JsonlLoggerConfig, NullLogger


class JsonlLoggerTests(unittest.TestCase):
    def test_event_writes_sorted_json_line(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logs" / "main.jsonl"
            logger = JsonlLogger(JsonlLoggerConfig(path=path, rotate_max_bytes=1024 * 1024))
            logger.event(event="plugin.started", plugin="Demo", ts_utc="2026-01-01T00:00:00+00:00", count=2)
            lines = path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 1)
        payload = json.loads(lines[0])
        self.assertEqual(payload["event"], "plugin.started")
        self.assertEqual(payload["plugin"], "Demo")
        self.assertEqual(payload["level"], "info")
        self.assertEqual(payload["count"], 2)
        self.assertEqual(list(payload), sorted(payload))

    def test_exceptions_and_paths_are_serialized(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "main.jsonl"
            logger = JsonlLogger(JsonlLoggerConfig(path=path, rotate_max_bytes=4096))
            logger.event(event="x", error=ValueError("bad"), where=Path("/a/b"), obj=object())
            payload = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(payload["error"], "ValueError: bad")
        self.assertEqual(payload["where"], str(Path("/a/b")))
        self.assertTrue(payload["obj"].startswith("<object"))

    def test_rotation_archives_instead_of_deleting(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "main.jsonl"
            logger = JsonlLogger(JsonlLoggerConfig(path=path, rotate_max_bytes=1024))
            for index in range(40):
                logger.event(event="fill", index=index, padding="x" * 40)
            archived = list((Path(tmp) / "archive").glob("main.*.jsonl"))
            self.assertTrue(archived)
            self.assertTrue(path.exists())

    def test_echo_uses_prefix(self) -> None:
        stream = io.StringIO()
        logger = JsonlLogger(JsonlLoggerConfig(path=None, rotate_max_bytes=1024), stream=stream)
        logger.event(event="plugin.log", plugin="Demo", message="hello")
        self.assertEqual(stream.getvalue(), "[Taut] [Demo] plugin.log hello\n")

    def test_from_config_reads_logging_section(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            logger = JsonlLogger.from_config(
                {"logging": {"echo": False, "rotate_max_bytes": 2048}}, log_dir=Path(tmp), name="ui"
            )
            self.assertEqual(logger.path, str(Path(tmp) / "ui.jsonl"))

    def test_null_logger_accepts_events(self) -> None:
        self.assertIsNone(NullLogger().event(event="anything", level="error", extra=1))


if __name__ == "__main__":
    unittest.main()
