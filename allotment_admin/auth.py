# allotment_admin/auth.py
"""
Admin sign-in for the allotment console.

Credentials are checked against the shared `users` table; the signed-in
admin lives under one key in `st.session_state`. The admin's id is the
audit user written into every override.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import streamlit as st
from sqlalchemy import text

from .config import config
from .db import get_db_engine

logger = logging.getLogger(__name__)

SESSION_KEY = 'admin_user'
# Dropped with the admin on logout so the next admin starts clean
SESSION_SCOPED_KEYS = (SESSION_KEY, 'calendar_admin')

ADMIN_LOOKUP = text("""
    SELECT id, username, password_hash, password_salt, full_name, role, is_active
    FROM users
    WHERE username = :username
""")


def password_matches(password: str, stored_hash: Optional[str], salt: Optional[str]) -> bool:
    """Salted SHA-256, as stored by the user management app"""
    if not stored_hash or not salt:
        return False
    candidate = hashlib.sha256((password + salt).encode()).hexdigest()
    return secrets.compare_digest(candidate, stored_hash)


class AuthManager:
    """Signs admins in and out; supplies the audit user id"""

    def __init__(self):
        self.session_timeout = timedelta(hours=config.get_app_setting('SESSION_TIMEOUT_HOURS', 8))

    def authenticate(self, username: str, password: str) -> Tuple[bool, Dict[str, Any]]:
        try:
            with get_db_engine().connect() as conn:
                row = conn.execute(ADMIN_LOOKUP, {'username': username}).fetchone()
        except Exception as e:
            logger.error(f"Admin lookup failed for {username}: {e}")
            return False, {"error": "Authentication failed. Please try again."}

        if row is None or not password_matches(password, row.password_hash, row.password_salt):
            return False, {"error": "Invalid username or password"}
        if not row.is_active:
            return False, {"error": "Account is inactive. Please contact administrator."}

        return True, {
            'id': str(row.id),
            'username': row.username,
            'role': row.role,
            'full_name': row.full_name or row.username,
            'login_time': datetime.now(),
        }

    def current_admin(self) -> Optional[Dict[str, Any]]:
        """Signed-in admin, or None when nobody is signed in or the session expired"""
        admin = st.session_state.get(SESSION_KEY)
        if not admin:
            return None

        if datetime.now() - admin['login_time'] > self.session_timeout:
            logger.info(f"Session expired for {admin['username']}")
            self.logout()
            return None
        return admin

    def check_session(self) -> bool:
        return self.current_admin() is not None

    def login(self, admin: Dict[str, Any]) -> None:
        st.session_state[SESSION_KEY] = admin
        logger.info(f"Admin {admin['username']} (ID: {admin['id']}) logged in")

    def logout(self) -> None:
        admin = st.session_state.get(SESSION_KEY) or {}
        for key in SESSION_SCOPED_KEYS:
            st.session_state.pop(key, None)
        logger.info(f"Admin {admin.get('username', 'unknown')} logged out")

    def require_auth(self) -> Dict[str, Any]:
        """Stop the page run unless an admin is signed in"""
        admin = self.current_admin()
        if admin is None:
            st.warning("⚠️ Please login to access this page")
            st.stop()
        return admin

    def get_current_user_id(self) -> Optional[str]:
        """Audit user for override_by; None when the session is gone"""
        admin = st.session_state.get(SESSION_KEY)
        if not admin:
            logger.error("No signed-in admin for audit fields")
            return None
        return admin['id']
