"""
Head Dashboard - signature queue
"""
import streamlit as st

from patra.core.letter import sign_status
from patra.security.access_guard import HEAD_DASHBOARD
from patra.security.roles import HEAD
from ui.letters import (
    ensure_loaded,
    render_attachments,
    render_letter_table,
    render_refresh,
    run_action,
)
from ui.outward import render_letter_controls


def render_head(services):
    st.markdown("## ✍️ Head Dashboard")

    ensure_loaded(services, HEAD_DASHBOARD)
    queue = services.reconciler.letters(lambda letter: sign_status(letter) is not None)
    awaiting = [letter for letter in queue if sign_status(letter) == "pending"]
    completed = [letter for letter in queue if sign_status(letter) == "completed"]

    col1, col2, col3 = st.columns(3)
    col1.metric("In Queue", len(queue))
    col2.metric("Awaiting Signature", len(awaiting))
    col3.metric("Signed", len(completed))
    render_refresh(services)

    st.divider()

    tab_pending, tab_done = st.tabs(["⏳ Awaiting signature", "✅ Signed"])

    with tab_pending:
        if not awaiting:
            st.info("No letters waiting for signature")
        for letter in awaiting[:20]:
            with st.expander(f"📄 {letter.reference_number} {letter.subject or ''}"):
                render_attachments(services, letter)
                if letter.covering_letter is None:
                    st.caption("A covering letter must be attached before signing")
                elif st.button(
                    "Sign",
                    key=f"sign_{letter.id}",
                    type="primary",
                    disabled=services.reconciler.is_pending(letter.id),
                ):
                    run_action(services, services.actions.sign, letter.id)
                    st.rerun()

    with tab_done:
        render_letter_table(completed)
        for letter in completed[:20]:
            with st.expander(f"📄 {letter.reference_number}"):
                # Reports and case closure stay with the head once signed
                render_letter_controls(services, letter, HEAD)
