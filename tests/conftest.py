import sys
from contextlib import ExitStack
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from qwenweb.chat_gateway import upstream as upstream_module  # noqa: E402
from qwenweb.chat_gateway.app import create_app  # noqa: E402
from qwenweb.chat_gateway.config import GatewayConfig  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x01\x02\xff"


@pytest.fixture
def public_dir(tmp_path):
    """A small public tree next to a secret file that must never be served."""

    root = tmp_path / "public"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<h1>hello</h1>", encoding="utf-8")
    (root / "css" / "site.css").write_text("body { color: red; }", encoding="utf-8")
    (root / "logo.png").write_bytes(PNG_BYTES)
    (tmp_path / "secret.txt").write_text("top secret", encoding="utf-8")
    (tmp_path / "public_evil").mkdir()
    (tmp_path / "public_evil" / "x.txt").write_text("sibling", encoding="utf-8")
    return root


@pytest.fixture
def gateway_config(public_dir, tmp_path):
    return GatewayConfig(
        public_dir=str(public_dir),
        api_key="test-key",
        log_path=str(tmp_path / "logs" / "requests.jsonl"),
    )


@pytest.fixture
def make_client(gateway_config):
    """Build started clients; lifespan shutdown runs when the test ends."""

    with ExitStack() as stack:

        def _make(**overrides):
            cfg = replace(gateway_config, **overrides) if overrides else gateway_config
            return stack.enter_context(TestClient(create_app(cfg)))

        yield _make


@pytest.fixture
def client(make_client):
    return make_client()


class FakeUpstreamResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


@pytest.fixture
def fake_upstream(monkeypatch):
    """Replace the network call with a canned reply; returns the captured request."""

    def _install(status_code=200, body=None, exc=None):
        captured = {"calls": 0}

        async def fake_post(self, url, json=None, headers=None):  # noqa: A002
            captured["calls"] += 1
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            if exc is not None:
                raise exc
            return FakeUpstreamResponse(status_code, body)

        monkeypatch.setattr(upstream_module.httpx.AsyncClient, "post", fake_post)
        return captured

    return _install


