import unittest

from taut.intercept.cors import HeaderRewriter

from tests._taut_fakes import FakeWebRequest, RecordingLogger


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class HeaderRewriterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.rewriter = HeaderRewriter(clock=self.clock)

    def _send(self, request_id, headers):
        results = []
        self.rewriter.on_before_send_headers({"id": request_id, "requestHeaders": headers}, results.append)
        self.assertEqual(results, [{}])

    def _receive(self, request_id, frame_url, headers):
        results = []
        details = {"id": request_id, "responseHeaders": headers, "frame": {"url": frame_url} if frame_url else None}
        self.rewriter.on_headers_received(details, results.append)
        return results[0]["responseHeaders"]

    def test_host_frame_gets_permissive_headers(self) -> None:
        self._send(
            1,
            {
                "Origin": "https://app.slack.com",
                "Access-Control-Request-Method": "PUT",
                "Access-Control-Request-Headers": "x-token",
            },
        )
        headers = self._receive(
            1,
            "https://app.slack.com/client/T1",
            {"Content-Type": ["application/json"], "access-control-allow-origin": ["https://x.test"], "X-Frame-Options": ["DENY"]},
        )
        self.assertEqual(headers["Access-Control-Allow-Origin"], ["https://app.slack.com"])
        self.assertEqual(headers["Access-Control-Allow-Methods"], ["PUT"])
        self.assertEqual(headers["Access-Control-Allow-Headers"], ["x-token"])
        self.assertEqual(headers["Access-Control-Expose-Headers"], ["Content-Type"])
        self.assertEqual(headers["Vary"], ["Origin"])
        self.assertNotIn("access-control-allow-origin", headers)
        self.assertNotIn("X-Frame-Options", headers)
        self.assertEqual(self.rewriter.pending(), 0)

    def test_unknown_request_falls_back_to_host_origin(self) -> None:
        headers = self._receive(9, "https://app.slack.com/", {})
        self.assertEqual(headers["Access-Control-Allow-Origin"], ["https://app.slack.com"])
        self.assertNotIn("Access-Control-Allow-Methods", headers)

    def test_foreign_frames_and_frameless_requests_untouched(self) -> None:
        original = {"X-Frame-Options": ["DENY"]}
        self.assertEqual(self._receive(2, "https://embed.example.com/", dict(original)), original)
        self.assertEqual(self._receive(3, None, dict(original)), original)

    def test_stale_request_entries_are_pruned(self) -> None:
        self._send(1, {"Origin": "https://a.test"})
        self.clock.now = 301.0
        self._send(2, {"Origin": "https://b.test"})
        self.assertEqual(self.rewriter.pending(), 1)

    def test_rewrite_failure_is_logged_and_answered(self) -> None:
        logger = RecordingLogger()
        rewriter = HeaderRewriter(logger=logger)
        results = []
        rewriter.on_headers_received({"id": 1, "responseHeaders": 5, "frame": {"url": "https://app.slack.com"}}, results.append)
        self.assertEqual(results, [{}])
        self.assertIn("cors.rewrite_failed", logger.names())

    def test_install_registers_both_listeners(self) -> None:
        web_request = FakeWebRequest()
        self.rewriter.install(web_request)
        self.assertEqual(web_request.before_send, self.rewriter.on_before_send_headers)
        self.assertEqual(web_request.headers_received, self.rewriter.on_headers_received)


if __name__ == "__main__":
    unittest.main()
