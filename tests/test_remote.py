from __future__ import annotations

import json

import numpy as np
import pytest
import requests

import bgmatte.remote as remote_mod
from bgmatte.buffer import PixelBuffer
from bgmatte.codec import encode_png
from bgmatte.errors import RemoteRemovalError
from bgmatte.remote import RemoteRemover


class _Resp:
    def __init__(self, status_code: int, content: bytes = b"", payload=None):
        self.status_code = status_code
        self.content = content
        self._payload = payload
        self.text = json.dumps(payload) if payload is not None else content.decode("utf-8", "replace")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _remover() -> RemoteRemover:
    return RemoteRemover(api_url="https://bg.example/v1/removebg", api_key="k-123", timeout_s=5.0)


def test_success_decodes_png(monkeypatch):
    png = encode_png(PixelBuffer.from_rgb(np.full((3, 4, 3), 9, dtype=np.uint8), alpha=100))
    seen = {}

    def fake_post(url, headers=None, files=None, data=None, timeout=None):
        seen.update(url=url, headers=headers, files=files, data=data, timeout=timeout)
        return _Resp(200, content=png)

    monkeypatch.setattr(remote_mod.requests, "post", fake_post)
    out = _remover().remove(b"jpeg-bytes")

    assert (out.width, out.height) == (4, 3)
    assert (out.alpha == 100).all()
    assert seen["headers"] == {"X-Api-Key": "k-123"}
    assert seen["files"]["image_file"][1] == b"jpeg-bytes"
    assert seen["data"] == {"size": "auto"}
    assert seen["timeout"] == 5.0


@pytest.mark.parametrize(
    "payload, body, expected",
    [
        ({"errors": [{"title": "Insufficient credits"}]}, b"", "Insufficient credits"),
        ({"error": {"message": "bad key"}}, b"", "bad key"),
        ({"error": "rate limited"}, b"", "rate limited"),
        (None, b"Service Unavailable", "Service Unavailable"),
        (None, b"", "API request failed with status 503"),
    ],
)
def test_error_message_extraction(monkeypatch, payload, body, expected):
    monkeypatch.setattr(remote_mod.requests, "post", lambda *a, **k: _Resp(503, content=body, payload=payload))
    with pytest.raises(RemoteRemovalError) as excinfo:
        _remover().remove(b"x")
    assert str(excinfo.value) == expected


def test_network_error(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(remote_mod.requests, "post", fake_post)
    with pytest.raises(RemoteRemovalError, match="Network error"):
        _remover().remove(b"x")


def test_malformed_body(monkeypatch):
    monkeypatch.setattr(remote_mod.requests, "post", lambda *a, **k: _Resp(200, content=b"<html>oops</html>"))
    with pytest.raises(RemoteRemovalError, match="Malformed response"):
        _remover().remove(b"x")


def test_missing_key_fails_without_request(monkeypatch):
    def fake_post(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(remote_mod.requests, "post", fake_post)
    with pytest.raises(RemoteRemovalError):
        RemoteRemover(api_url="https://bg.example", api_key="").remove(b"x")


def test_from_env(monkeypatch):
    monkeypatch.delenv("BG_REMOVAL_API_URL", raising=False)
    monkeypatch.delenv("BG_REMOVAL_API_KEY", raising=False)
    assert RemoteRemover.from_env() is None

    monkeypatch.setenv("BG_REMOVAL_API_URL", "https://bg.example")
    assert RemoteRemover.from_env() is None

    monkeypatch.setenv("BG_REMOVAL_API_KEY", "secret")
    monkeypatch.setenv("BG_REMOVAL_TIMEOUT_S", "12.5")
    r = RemoteRemover.from_env()
    assert r is not None
    assert r.api_key == "secret"
    assert r.timeout_s == 12.5

    monkeypatch.setenv("BG_REMOVAL_TIMEOUT_S", "soon")
    assert RemoteRemover.from_env().timeout_s == 30.0
