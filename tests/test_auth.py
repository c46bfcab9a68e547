"""Tests for admin sign-in and the audit user provider."""

import hashlib
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, text

from allotment_admin import auth as auth_module
from allotment_admin.auth import SESSION_KEY, AuthManager, password_matches


class PageStopped(Exception):
    pass


def hashed(password, salt):
    return hashlib.sha256((password + salt).encode()).hexdigest()


@pytest.fixture
def fake_st(monkeypatch):
    fake = SimpleNamespace(
        session_state={},
        warning=MagicMock(),
        stop=MagicMock(side_effect=PageStopped),
    )
    monkeypatch.setattr(auth_module, "st", fake)
    return fake


@pytest.fixture
def users_engine(tmp_path, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'users.db'}")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, username TEXT, password_hash TEXT, "
            "password_salt TEXT, full_name TEXT, role TEXT, is_active INTEGER)"
        ))
        conn.execute(
            text("INSERT INTO users VALUES (:id, :username, :hash, :salt, :full_name, 'admin', :active)"),
            [
                {"id": 7, "username": "dana", "hash": hashed("s3cret", "abc"), "salt": "abc",
                 "full_name": "Dana Admin", "active": 1},
                {"id": 8, "username": "former", "hash": hashed("s3cret", "xyz"), "salt": "xyz",
                 "full_name": None, "active": 0},
            ],
        )
    monkeypatch.setattr(auth_module, "get_db_engine", lambda: engine)
    yield engine
    engine.dispose()


class TestPasswordMatches:

    def test_salted_hash(self):
        assert password_matches("s3cret", hashed("s3cret", "abc"), "abc")
        assert not password_matches("wrong", hashed("s3cret", "abc"), "abc")

    @pytest.mark.parametrize("stored_hash, salt", [(None, "abc"), ("", "abc"), ("deadbeef", None)])
    def test_missing_credentials_never_match(self, stored_hash, salt):
        assert not password_matches("s3cret", stored_hash, salt)


class TestAuthenticate:

    def test_valid_admin(self, users_engine):
        ok, admin = AuthManager().authenticate("dana", "s3cret")

        assert ok is True
        assert admin["id"] == "7"
        assert admin["full_name"] == "Dana Admin"
        assert isinstance(admin["login_time"], datetime)

    @pytest.mark.parametrize("username, password", [("dana", "wrong"), ("nobody", "s3cret")])
    def test_bad_credentials(self, users_engine, username, password):
        ok, result = AuthManager().authenticate(username, password)

        assert ok is False
        assert result["error"] == "Invalid username or password"

    def test_inactive_account(self, users_engine):
        ok, result = AuthManager().authenticate("former", "s3cret")

        assert ok is False
        assert "inactive" in result["error"]

    def test_database_failure(self, monkeypatch):
        def broken():
            raise ValueError("Missing required database configuration (host)")

        monkeypatch.setattr(auth_module, "get_db_engine", broken)

        ok, result = AuthManager().authenticate("dana", "s3cret")

        assert ok is False
        assert result["error"] == "Authentication failed. Please try again."


class TestSession:

    def admin(self, login_time=None):
        return {"id": "7", "username": "dana", "role": "admin", "full_name": "Dana Admin",
                "login_time": login_time or datetime.now()}

    def test_login_makes_the_admin_the_audit_user(self, fake_st):
        auth = AuthManager()

        auth.login(self.admin())

        assert auth.check_session()
        assert auth.require_auth()["username"] == "dana"
        assert auth.get_current_user_id() == "7"

    def test_expired_session_is_logged_out(self, fake_st):
        auth = AuthManager()
        auth.login(self.admin(login_time=datetime.now() - auth.session_timeout - timedelta(minutes=1)))
        fake_st.session_state["calendar_admin"] = object()

        assert auth.current_admin() is None
        assert fake_st.session_state == {}

    def test_logout_drops_the_session_coordinator(self, fake_st):
        auth = AuthManager()
        auth.login(self.admin())
        fake_st.session_state["calendar_admin"] = object()
        fake_st.session_state["unrelated"] = 1

        auth.logout()

        assert SESSION_KEY not in fake_st.session_state
        assert "calendar_admin" not in fake_st.session_state
        assert fake_st.session_state["unrelated"] == 1
        assert auth.get_current_user_id() is None

    def test_require_auth_stops_the_page(self, fake_st):
        with pytest.raises(PageStopped):
            AuthManager().require_auth()

        fake_st.warning.assert_called_once()
