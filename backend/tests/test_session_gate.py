"""
NoteForge Backend - Session Gate Tests
=======================================
"""

import pytest

from noteforge.services.session_gate import SessionGate, extract_bearer_token

from conftest import TEST_JWT_SECRET, TEST_USER_ID, make_token


@pytest.fixture
def gate():
    return SessionGate(jwt_secret=TEST_JWT_SECRET)


class TestResolve:
    def test_valid_token(self, gate):
        session = gate.resolve(make_token())
        assert session.user_id == TEST_USER_ID
        assert session.email == "writer@example.com"

    def test_expired_token(self, gate):
        assert gate.resolve(make_token(expires_in=-60)) is None

    def test_wrong_secret(self, gate):
        assert gate.resolve(make_token(secret="someone-else")) is None

    def test_wrong_audience(self, gate):
        assert gate.resolve(make_token(audience="anon")) is None

    def test_missing_subject(self, gate):
        assert gate.resolve(make_token(sub=None)) is None

    def test_garbage(self, gate):
        assert gate.resolve("not.a.jwt") is None
        assert gate.resolve(None) is None

    def test_no_secret_rejects_everything(self):
        assert SessionGate(jwt_secret="").resolve(make_token()) is None


class TestResolveRequest:
    def test_bearer_header_wins(self, gate):
        session = gate.resolve_request(f"Bearer {make_token()}", {"sb-access-token": "junk"})
        assert session is not None

    def test_cookie_fallback(self, gate):
        session = gate.resolve_request(None, {"sb-access-token": make_token()})
        assert session.user_id == TEST_USER_ID

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer a b"])
    def test_malformed_header(self, header):
        assert extract_bearer_token(header) is None
