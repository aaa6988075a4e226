"""
Sign-in and password reset - the only public views
"""
import streamlit as st

from patra.errors import PatraError
from patra.security.access_guard import FORGOT_PASSWORD_ROUTE, SIGN_IN_ROUTE, landing_route


def render_login(services):
    st.markdown("## 🔐 Sign in")

    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted and email and password:
        try:
            identity = services.authority.sign_in(email, password)
        except PatraError as e:
            st.error(f"Sign-in failed: {e}")
        else:
            st.session_state.route = landing_route(identity.role)
            st.rerun()

    if st.button("Forgot password?"):
        st.session_state.route = FORGOT_PASSWORD_ROUTE
        st.rerun()


def render_forgot_password(services):
    """Three steps: request code, verify code, set new password"""
    st.markdown("## 🔑 Reset password")
    step = st.session_state.setdefault("reset_step", "request")
    client = services.client

    try:
        if step == "request":
            email = st.text_input("Email")
            if st.button("Send code", type="primary") and email:
                client.forgot_password(email)
                st.session_state.reset_email = email
                st.session_state.reset_step = "verify"
                st.rerun()

        elif step == "verify":
            code = st.text_input("Code from email")
            if st.button("Verify", type="primary") and code:
                client.verify_otp(st.session_state.reset_email, code)
                st.session_state.reset_code = code
                st.session_state.reset_step = "reset"
                st.rerun()

        else:
            new_password = st.text_input("New password", type="password")
            if st.button("Set password", type="primary") and new_password:
                client.reset_password(
                    st.session_state.reset_email, st.session_state.reset_code, new_password
                )
                st.success("Password updated. Sign in with your new password.")
                st.session_state.reset_step = "request"
    except PatraError as e:
        st.error(str(e))

    if st.button("Back to sign in"):
        st.session_state.reset_step = "request"
        st.session_state.route = SIGN_IN_ROUTE
        st.rerun()
