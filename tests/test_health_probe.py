from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from uptime_monitor.errors import ConfigurationError
from uptime_monitor.models import HealthStatus
from uptime_monitor.probe.health_probe import (
    HealthProbe,
    build_check_url,
    classify_status_code,
)


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/redirect":
            self.send_response(302)
            self.send_header("Location", "/health")
            self.end_headers()
            return

        if self.path == "/slow":
            time.sleep(1.5)

        routes = {
            "/health": (200, "ok"),
            "/slow": (200, "late"),
            "/forbidden": (403, "Forbidden"),
            "/bad_gateway": (502, "Bad Gateway"),
        }
        status, body = routes.get(self.path.split("?", 1)[0], (404, "Not Found"))
        body_bytes = body.encode("utf-8")
        try:
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(body_bytes)))
            self.end_headers()
            self.wfile.write(body_bytes)
        except (BrokenPipeError, ConnectionResetError):
            return


@pytest.fixture(scope="module")
def local_server_base_url() -> str:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.daemon_threads = True
    host, port = httpd.server_address
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        httpd.server_close()


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_build_check_url_joins_with_single_slash() -> None:
    assert build_check_url("https://app.example.com/", "/health") == "https://app.example.com/health"
    assert build_check_url("https://app.example.com", "health") == "https://app.example.com/health"
    assert build_check_url("https://app.example.com", None) == "https://app.example.com/"


def test_build_check_url_without_url_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        build_check_url(None, "/health")
    with pytest.raises(ConfigurationError):
        build_check_url("   ", "/health")


def test_classify_status_code_boundaries() -> None:
    assert classify_status_code(200) == HealthStatus.UP
    assert classify_status_code(399) == HealthStatus.UP
    assert classify_status_code(400) == HealthStatus.WARNING
    assert classify_status_code(499) == HealthStatus.WARNING
    assert classify_status_code(500) == HealthStatus.DOWN
    assert classify_status_code(503) == HealthStatus.DOWN


@pytest.mark.asyncio
async def test_probe_success(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/health", timeout_seconds=5)
    assert outcome.status == HealthStatus.UP
    assert outcome.ok is True
    assert outcome.status_code == 200
    assert outcome.error is None
    assert outcome.response_time_ms >= 0


@pytest.mark.asyncio
async def test_probe_follows_redirects(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/redirect", timeout_seconds=5)
    assert outcome.status == HealthStatus.UP
    assert outcome.status_code == 200
    assert outcome.url and outcome.url.endswith("/health")


@pytest.mark.asyncio
async def test_probe_client_error_is_warning(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/forbidden", timeout_seconds=5)
    assert outcome.status == HealthStatus.WARNING
    assert outcome.status_code == 403
    assert outcome.error == "HTTP 403"


@pytest.mark.asyncio
async def test_probe_server_error_is_down(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/bad_gateway", timeout_seconds=5)
    assert outcome.status == HealthStatus.DOWN
    assert outcome.status_code == 502


@pytest.mark.asyncio
async def test_probe_timeout_is_down(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/slow", timeout_seconds=0.2)
    assert outcome.status == HealthStatus.DOWN
    assert outcome.status_code is None
    assert outcome.error and "Timeout" in outcome.error


@pytest.mark.asyncio
async def test_probe_connection_refused_is_down() -> None:
    port = _unused_port()
    async with HealthProbe() as probe:
        outcome = await probe.probe(f"http://127.0.0.1:{port}", "/health", timeout_seconds=2)
    assert outcome.status == HealthStatus.DOWN
    assert outcome.error and "ConnectError" in outcome.error


@pytest.mark.asyncio
async def test_probe_drops_query_string_from_reported_url(local_server_base_url: str) -> None:
    async with HealthProbe() as probe:
        outcome = await probe.probe(local_server_base_url, "/health?token=secret", timeout_seconds=5)
    assert outcome.status == HealthStatus.UP
    assert "secret" not in (outcome.url or "")
