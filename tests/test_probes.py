"""Tests for the TCP and HTTP probes against local listeners."""

import os
import socket
import threading
import unittest
from http.server import BaseHTTPRequestHandler, HTTPServer
from unittest import mock

from tcping import errors
from tcping.errors import NameResolutionError, format_error
from tcping.models import Option, Protocol, Target
from tcping.probes import HTTPProbe, TCPProbe, certificate_summary

_NO_PROXY_ENV = {"NO_PROXY": "*", "no_proxy": "*"}


def _free_port() -> int:
    """Return a port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class _Handler(BaseHTTPRequestHandler):
    seen_agents = []

    def do_GET(self):
        self.seen_agents.append(self.headers.get("User-Agent"))
        if self.path == "/moved":
            self.send_response(301)
            self.send_header("Location", "/")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        body = b"hello"
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


class TestTCPProbe(unittest.TestCase):
    """Verify TCP connects, refusals and resolution failures."""

    def setUp(self):
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(8)
        self.port = self.server.getsockname()[1]

    def tearDown(self):
        self.server.close()

    def test_connect_success(self):
        """Connecting to a listening port should report connected."""
        stats = TCPProbe("127.0.0.1", self.port, Option(timeout=2)).ping(threading.Event())
        self.assertTrue(stats.connected, stats.error)
        self.assertIsNone(stats.error)
        self.assertEqual(stats.address, f"127.0.0.1:{self.port}")
        self.assertEqual(stats.dns_duration, 0.0)
        self.assertGreaterEqual(stats.duration, 0.0)

    def test_custom_resolver_is_used(self):
        calls = []

        def resolver(host, timeout):
            calls.append((host, timeout))
            return ["127.0.0.1"]

        stats = TCPProbe("service.test", self.port, Option(timeout=2, resolver=resolver)).ping(threading.Event())
        self.assertTrue(stats.connected, stats.error)
        self.assertEqual(calls, [("service.test", 2)])
        self.assertEqual(stats.address, f"127.0.0.1:{self.port}")

    def test_connection_refused(self):
        """A closed port should fail with the refused category."""
        stats = TCPProbe("127.0.0.1", _free_port(), Option(timeout=2)).ping(threading.Event())
        self.assertFalse(stats.connected)
        self.assertEqual(format_error(stats.error), errors.CONNECTION_REFUSED)
        self.assertGreaterEqual(stats.duration, 0.0)

    def test_resolution_failure(self):
        def resolver(host, timeout):
            raise NameResolutionError(host, "no such host")

        stats = TCPProbe("nope.invalid", self.port, Option(resolver=resolver)).ping(threading.Event())
        self.assertFalse(stats.connected)
        self.assertEqual(format_error(stats.error), errors.NAME_RESOLUTION)
        self.assertEqual(stats.address, "nope.invalid")

    def test_cancelled_before_start(self):
        cancel = threading.Event()
        cancel.set()
        stats = TCPProbe("127.0.0.1", self.port, Option()).ping(cancel)
        self.assertFalse(stats.connected)
        self.assertTrue(errors.is_cancelled(stats.error))


class TestHTTPProbe(unittest.TestCase):
    """Verify HTTP requests against a local server."""

    @classmethod
    def setUpClass(cls):
        cls.httpd = HTTPServer(("127.0.0.1", 0), _Handler)
        cls.port = cls.httpd.server_address[1]
        cls.thread = threading.Thread(target=cls.httpd.serve_forever, daemon=True)
        cls.thread.start()

    @classmethod
    def tearDownClass(cls):
        cls.httpd.shutdown()
        cls.httpd.server_close()

    def setUp(self):
        _Handler.seen_agents.clear()
        patcher = mock.patch.dict(os.environ, _NO_PROXY_ENV)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _target(self, path="/"):
        return Target(protocol=Protocol.HTTP, host="127.0.0.1", port=self.port, path=path)

    def test_get_reports_status_and_bytes(self):
        """A 200 response should report status, body size and the user agent."""
        probe = HTTPProbe("get", self._target(), Option(timeout=2, user_agent="tcping-test"))
        stats = probe.ping(threading.Event())
        self.assertTrue(stats.connected, stats.error)
        self.assertEqual(stats.meta["status"], 200)
        self.assertEqual(stats.meta["bytes"], 5)
        self.assertNotIn("http", stats.meta)
        self.assertEqual(stats.address, f"127.0.0.1:{self.port}")
        self.assertEqual(_Handler.seen_agents, ["tcping-test"])

    def test_redirect_is_not_followed(self):
        stats = HTTPProbe("GET", self._target("/moved"), Option(timeout=2)).ping(threading.Event())
        self.assertTrue(stats.connected, stats.error)
        self.assertEqual(stats.meta["status"], 301)

    def test_meta_adds_protocol_and_server(self):
        stats = HTTPProbe("GET", self._target(), Option(timeout=2), with_meta=True).ping(threading.Event())
        self.assertEqual(stats.meta["http"], "HTTP/1.0")
        self.assertIn("BaseHTTP", stats.meta["server"])

    def test_refused(self):
        target = Target(protocol=Protocol.HTTP, host="127.0.0.1", port=_free_port(), path="/")
        stats = HTTPProbe("GET", target, Option(timeout=2)).ping(threading.Event())
        self.assertFalse(stats.connected)
        self.assertEqual(format_error(stats.error), errors.CONNECTION_REFUSED)

    def test_read_timeout(self):
        """A server that never answers should time out within the option timeout."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as silent:
            silent.bind(("127.0.0.1", 0))
            silent.listen(1)
            target = Target(protocol=Protocol.HTTP, host="127.0.0.1", port=silent.getsockname()[1], path="/")
            stats = HTTPProbe("GET", target, Option(timeout=0.2)).ping(threading.Event())
        self.assertFalse(stats.connected)
        self.assertEqual(format_error(stats.error), errors.TIMED_OUT)
        self.assertLess(stats.duration, 5)


class TestCertificateSummary(unittest.TestCase):
    def test_from_peer_cert(self):
        cert = {
            "version": 3,
            "subjectAltName": (("DNS", "example.com"), ("IP Address", "10.0.0.1"), ("DNS", "*.example.com")),
            "notBefore": "Jan 15 00:00:00 2024 GMT",
            "notAfter": "Feb 14 23:59:59 2025 GMT",
        }
        summary = certificate_summary("example.com", cert)
        self.assertEqual(summary.dns_names, ["example.com", "*.example.com"])
        self.assertEqual(summary.not_before, "2024-01-15")
        self.assertEqual(summary.not_after, "2025-02-14")
        self.assertEqual(summary.version, 3)

    def test_empty_cert(self):
        summary = certificate_summary("10.0.0.1", {})
        self.assertEqual(str(summary), "server_name=10.0.0.1 version=0 dns_names= (~)")


if __name__ == "__main__":
    unittest.main()
