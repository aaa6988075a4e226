"""
Patra Routing Console - Streamlit entry
Route gate runs on every rerun; views render only when it allows
"""
import logging
from datetime import datetime

import streamlit as st

from patra.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ═══════════════════════════════════════════════════════════════
# PAGE CONFIG (MUST BE FIRST)
# ═══════════════════════════════════════════════════════════════
st.set_page_config(
    page_title="Patra Routing Console",
    layout="wide",
    initial_sidebar_state="collapsed"
)

from patra.security.access_guard import (  # noqa: E402
    DENIAL_REMOTE_UNREACHABLE,
    DENIAL_ROLE_MISMATCH,
    DENIAL_SESSION_EXPIRED,
    FORGOT_PASSWORD_ROUTE,
    HEAD_DASHBOARD,
    INWARD_DASHBOARD,
    OUTWARD_DASHBOARD,
    SIGN_IN_ROUTE,
)
from patra.core.letter_actions import VERIFY_TASK, start_session_verification  # noqa: E402
from ui.letters import render_notices  # noqa: E402
from ui.services import get_services  # noqa: E402

SESSION_OWNER = "session"

services = get_services()

# ═══════════════════════════════════════════════════════════════
# SESSION STATE (MINIMAL)
# ═══════════════════════════════════════════════════════════════
if "route" not in st.session_state:
    st.session_state.route = SIGN_IN_ROUTE
    st.session_state.active_route = None

# ═══════════════════════════════════════════════════════════════
# ROUTE GATE (EVERY RERUN)
# ═══════════════════════════════════════════════════════════════
decision = services.access.navigate(st.session_state.route)

if decision.redirect_to:
    if decision.reason == DENIAL_ROLE_MISMATCH:
        st.session_state.gate_message = "Your role changed; you were moved to your dashboard."
    elif decision.reason == DENIAL_SESSION_EXPIRED:
        st.session_state.gate_message = "Your session expired. Please sign in again."
    elif decision.reason == DENIAL_REMOTE_UNREACHABLE:
        st.session_state.gate_message = "Could not reach the server to confirm your session."
    st.session_state.route = decision.redirect_to
    st.rerun()

route = st.session_state.route

# Polling belongs to the view that started it
if st.session_state.active_route != route:
    if st.session_state.active_route:
        services.scheduler.cancel_owner(st.session_state.active_route)
    st.session_state.active_route = route

if decision.role is None:
    services.scheduler.cancel_owner(SESSION_OWNER)
elif not services.scheduler.is_scheduled(SESSION_OWNER, VERIFY_TASK):
    start_session_verification(services.authority, services.scheduler, SESSION_OWNER)

# ═══════════════════════════════════════════════════════════════
# HEADER
# ═══════════════════════════════════════════════════════════════
st.title("📜 Patra Routing Console")

message = st.session_state.pop("gate_message", None)
if message:
    st.warning(message)

render_notices(services.notifier)

if decision.reauth_due:
    st.warning("Your session is about to expire. Sign in again to keep working without interruption.")
    if st.button("Sign in again"):
        services.scheduler.cancel_all()
        services.reconciler.shutdown(wait=False)
        services.authority.clear()
        st.session_state.pop("loaded_routes", None)
        st.session_state.route = SIGN_IN_ROUTE
        st.rerun()

if decision.role is not None:
    with st.sidebar:
        identity = services.authority.current_identity()
        if identity is not None:
            st.write(f"**{identity.email}**")
            st.caption(f"{identity.role} {identity.station_name or ''}")
        if st.button("Sign out"):
            services.scheduler.cancel_all()
            services.reconciler.shutdown(wait=False)
            services.authority.clear()
            st.session_state.pop("loaded_routes", None)
            st.session_state.route = SIGN_IN_ROUTE
            st.rerun()

# ═══════════════════════════════════════════════════════════════
# VIEWS (LAZY)
# ═══════════════════════════════════════════════════════════════
if route == SIGN_IN_ROUTE:
    from ui.login import render_login
    render_login(services)

elif route == FORGOT_PASSWORD_ROUTE:
    from ui.login import render_forgot_password
    render_forgot_password(services)

elif route.startswith(INWARD_DASHBOARD):
    from ui.inward import render_inward
    render_inward(services)

elif route.startswith(HEAD_DASHBOARD):
    from ui.head import render_head
    render_head(services)

elif route.startswith(OUTWARD_DASHBOARD):
    from ui.outward import render_outward
    render_outward(services, decision.role)

else:
    st.info("Nothing to show here")

# ═══════════════════════════════════════════════════════════════
# FOOTER
# ═══════════════════════════════════════════════════════════════
st.divider()
st.caption(f"Last updated: {datetime.now().strftime('%H:%M:%S')}")
