"""
Outward Dashboard - station and branch desks
Shows letters currently forwarded to the signed-in role
"""
import streamlit as st

from patra.core.attachments import PendingUpload
from patra.core.lifecycle import LetterAction, allowed_actions
from patra.security.access_guard import OUTWARD_DASHBOARD
from patra.security.roles import ALL_ROLES, HEAD
from ui.letters import (
    ensure_loaded,
    render_attachments,
    render_counts,
    render_download,
    render_history,
    render_letter_table,
    render_refresh,
    run_action,
)


def render_outward(services, role):
    st.markdown("## 📤 Outward Dashboard")
    st.caption(f"Desk: {role}")

    ensure_loaded(services, OUTWARD_DASHBOARD)
    letters = services.reconciler.letters(lambda letter: letter.owner == role)
    render_counts(letters)
    render_refresh(services)

    st.divider()
    render_letter_table(letters)

    for letter in letters[:20]:
        with st.expander(f"📄 {letter.reference_number} {letter.subject or ''}"):
            render_letter_controls(services, letter, role)


def render_letter_controls(services, letter, role):
    actions = allowed_actions(letter)
    pending = services.reconciler.is_pending(letter.id)

    if LetterAction.FORWARD in actions:
        targets = sorted(ALL_ROLES - {role, HEAD})
        target = st.selectbox("Forward to", targets, key=f"target_{letter.id}")
        if st.button("Forward", key=f"forward_{letter.id}", disabled=pending):
            run_action(services, services.actions.forward, letter.id, target)
            st.rerun()

    if LetterAction.SEND_TO_HEAD in actions:
        if st.button("Send to Head", key=f"hod_{letter.id}", disabled=pending):
            run_action(services, services.actions.send_to_head, letter.id)
            st.rerun()

    st.divider()
    render_attachments(services, letter)

    if LetterAction.UPLOAD_REPORT in actions:
        files = st.file_uploader(
            "Upload report", accept_multiple_files=True, key=f"reports_{letter.id}"
        )
        if files and st.button("Upload", key=f"upload_{letter.id}", disabled=pending):
            uploads = [PendingUpload(f.name, f.getvalue(), f.type or "") for f in files]
            run_action(services, services.actions.upload_report, letter.id, uploads)
            st.rerun()

    if LetterAction.CLOSE_CASE in actions:
        if st.button("🔒 Close case", key=f"close_{letter.id}", disabled=pending):
            run_action(services, services.actions.close_case, letter.id)
            st.rerun()

    render_download(services, letter)
    render_history(services, letter)
