"""
Inward Dashboard - intake desk
Every letter is visible here; unforwarded letters are owned by this desk
"""
import streamlit as st

from patra.core.lifecycle import LetterAction, allowed_actions
from patra.security.access_guard import INWARD_DASHBOARD
from patra.security.roles import ALL_ROLES, HEAD, INWARD_USER
from ui.letters import (
    STATUS_LABELS,
    ensure_loaded,
    render_attachments,
    render_counts,
    render_download,
    render_history,
    render_letter_table,
    render_refresh,
    run_action,
)

FORWARD_TARGETS = sorted(ALL_ROLES - {INWARD_USER, HEAD})


def render_inward(services):
    st.markdown("## 📥 Inward Dashboard")

    ensure_loaded(services, INWARD_DASHBOARD)
    letters = services.reconciler.letters()
    render_counts(letters)
    render_refresh(services)

    st.divider()

    status = st.selectbox("Status", ["all"] + list(STATUS_LABELS), format_func=lambda s: STATUS_LABELS.get(s, "All"))
    if status != "all":
        letters = [letter for letter in letters if letter.letter_status.value == status]

    render_letter_table(letters)

    st.markdown("### 📨 Route Letters")
    mine = [letter for letter in letters if letter.owner == INWARD_USER and not letter.is_closed]
    if not mine:
        st.info("Nothing waiting at the inward desk")

    for letter in mine[:20]:  # Limit to 20
        with st.expander(f"📄 {letter.reference_number} {letter.subject or ''}"):
            render_letter_controls(services, letter)


def render_letter_controls(services, letter):
    actions = allowed_actions(letter)
    pending = services.reconciler.is_pending(letter.id)

    col1, col2 = st.columns([3, 1])
    with col1:
        if LetterAction.FORWARD in actions:
            target = st.selectbox("Forward to", FORWARD_TARGETS, key=f"target_{letter.id}")
            if st.button("Forward", key=f"forward_{letter.id}", disabled=pending):
                run_action(services, services.actions.forward, letter.id, target)
                st.rerun()

    with col2:
        if LetterAction.SEND_TO_HEAD in actions:
            if st.button("Send to Head", key=f"hod_{letter.id}", disabled=pending):
                run_action(services, services.actions.send_to_head, letter.id)
                st.rerun()
        if LetterAction.APPROVE in actions:
            if st.button("Approve", key=f"approve_{letter.id}", disabled=pending):
                run_action(services, services.actions.approve, letter.id)
                st.rerun()
        if LetterAction.REJECT in actions:
            if st.button("Reject", key=f"reject_{letter.id}", disabled=pending):
                run_action(services, services.actions.reject, letter.id)
                st.rerun()

    st.divider()
    render_attachments(services, letter)
    render_download(services, letter)
    render_history(services, letter)
