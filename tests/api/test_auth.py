"""Tests for trigger-secret and session authentication helpers."""

import pytest
from starlette.requests import Request

from feedsync_api.auth import (
    SESSION_COOKIE,
    SessionAuthenticator,
    TokenSessionAuthenticator,
    caller_ip,
    verify_trigger_secret,
)


def _request(headers=None, client=("10.0.0.9", 5000)):
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw, "client": client})


class TestTriggerSecret:

    @pytest.mark.parametrize(
        "headers",
        [{"X-Sync-Secret": "s3cret"}, {"Authorization": "Bearer s3cret"}],
    )
    def test_accepted(self, headers):
        assert verify_trigger_secret(_request(headers), "s3cret")

    @pytest.mark.parametrize(
        "headers",
        [{}, {"X-Sync-Secret": "wrong"}, {"Authorization": "Basic s3cret"}],
    )
    def test_rejected(self, headers):
        assert not verify_trigger_secret(_request(headers), "s3cret")

    def test_unconfigured_secret_rejects_everything(self):
        assert not verify_trigger_secret(_request({"X-Sync-Secret": ""}), None)


class TestTokenSessionAuthenticator:

    def test_cookie_or_header(self):
        auth = TokenSessionAuthenticator(["ui-token"])
        by_cookie = auth.authenticate(_request({"Cookie": f"{SESSION_COOKIE}=ui-token"}))
        by_header = auth.authenticate(_request({"X-Session-Token": "ui-token"}))

        assert by_cookie == by_header
        assert by_cookie.startswith("session:")
        assert "ui-token" not in by_cookie

    def test_unknown_token(self):
        auth = TokenSessionAuthenticator(["ui-token"])
        assert auth.authenticate(_request({"X-Session-Token": "other"})) is None
        assert auth.authenticate(_request()) is None

    def test_satisfies_protocol(self):
        assert isinstance(TokenSessionAuthenticator([]), SessionAuthenticator)


class TestCallerIp:

    def test_first_forwarded_address(self):
        assert caller_ip(_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})) == "203.0.113.5"

    def test_real_ip(self):
        assert caller_ip(_request({"X-Real-IP": "198.51.100.7"})) == "198.51.100.7"

    def test_socket_peer(self):
        assert caller_ip(_request()) == "10.0.0.9"

    def test_no_identity(self):
        assert caller_ip(_request(client=None)) is None
