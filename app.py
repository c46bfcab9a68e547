"""
Allotment Admin Console - Main Entry Point
Sign-in, then a hand-off to the allotments page
"""
import logging

import streamlit as st

from allotment_admin.auth import AuthManager
from allotment_admin.config import config

logging.basicConfig(
    level=config.get_app_setting('LOG_LEVEL', 'INFO'),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Allotment Admin Console",
    page_icon="📅",
    layout="centered"
)

auth = AuthManager()

ALLOTMENTS_PAGE = "pages/1_📅_Calendar_Allotments.py"


def render_login():
    st.title("📅 Allotment Admin")
    st.caption("PLD/SDV and vacation quotas by division and calendar")

    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", type="primary", use_container_width=True)

    if not submitted:
        return
    if not (username and password):
        st.warning("⚠️ Please enter username and password")
        return

    ok, result = auth.authenticate(username.strip(), password)
    if ok:
        auth.login(result)
        st.rerun()
    else:
        st.error(f"❌ {result['error']}")


def render_landing(admin):
    with st.sidebar:
        st.markdown(f"### 👤 {admin['full_name']}")
        st.caption(f"Role: {admin['role']}")
        if st.button("🚪 Logout", use_container_width=True):
            auth.logout()
            st.rerun()

    st.title(f"👋 Welcome, {admin['full_name']}")
    st.write(
        "Overrides are written straight to the allotment tables and record "
        "your user id together with the reason you give."
    )
    if st.button("📅 Open Calendar Allotments", type="primary"):
        st.switch_page(ALLOTMENTS_PAGE)

    st.caption(f"v1.0.0 | {'☁️ Cloud' if config.is_cloud else '💻 Local'}")


def main():
    admin = auth.current_admin()
    if admin is None:
        render_login()
    else:
        render_landing(admin)


if __name__ == "__main__":
    main()
