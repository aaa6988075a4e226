"""
Shared letter widgets - table, counts, notices, attachment panel
Every view renders letters from the reconciler, never from raw payloads
"""
import pandas as pd
import streamlit as st

from patra.core.attachments import PendingUpload
from patra.core.letter import status_counts, sign_status
from patra.errors import SESSION_ERRORS, PatraError
from patra.notifications.templates import NoticeSeverity
from patra.security.access_guard import SIGN_IN_ROUTE

STATUS_LABELS = {
    "pending": "⏳ Pending",
    "approved": "✅ Approved",
    "rejected": "❌ Rejected",
    "sent_to_head": "📨 Sent to Head",
    "case_closed": "🔒 Case Closed",
}


def render_notices(notifier):
    """Show every queued outcome exactly once"""
    for notice in notifier.drain():
        if notice.severity is NoticeSeverity.SUCCESS:
            st.success(notice.message)
        elif notice.severity is NoticeSeverity.ERROR:
            st.error(notice.message)
        elif notice.severity is NoticeSeverity.WARNING:
            st.warning(notice.message)
        else:
            st.info(notice.message)


def letters_frame(letters):
    return pd.DataFrame([
        {
            "Reference": letter.reference_number,
            "Subject": letter.subject or "",
            "Status": STATUS_LABELS.get(letter.letter_status.value, letter.letter_status.value),
            "With": letter.owner,
            "Signature": sign_status(letter) or "",
            "Reports": len(letter.report_files),
            "Created": letter.created_at.strftime("%Y-%m-%d %H:%M") if letter.created_at else "",
        }
        for letter in letters
    ])


def render_counts(letters):
    counts = status_counts(letters)
    cols = st.columns(5)
    cols[0].metric("Total", len(letters))
    cols[1].metric("Pending", counts["pending"])
    cols[2].metric("With Head", counts["sent_to_head"])
    cols[3].metric("Signed", counts["signed"])
    cols[4].metric("Closed", counts["case_closed"])


def render_letter_table(letters):
    if not letters:
        st.info("No letters to display")
        return
    st.dataframe(letters_frame(letters), use_container_width=True, hide_index=True)


def run_action(services, fn, *args):
    """Run a letter intent; a lost session sends the user back to sign-in"""
    try:
        return fn(*args)
    except SESSION_ERRORS:
        services.authority.clear()
        services.scheduler.cancel_all()
        services.reconciler.shutdown(wait=False)
        st.session_state.route = SIGN_IN_ROUTE
        st.rerun()


def ensure_loaded(services, route, filters=None):
    """First visit loads synchronously; polling keeps it fresh afterwards"""
    loaded = st.session_state.setdefault("loaded_routes", set())
    if route not in loaded:
        run_action(services, services.actions.load, filters)
        loaded.add(route)
    if not services.scheduler.is_scheduled(route, "letters"):
        services.actions.start_polling(services.scheduler, route, filters)
    if services.reconciler.last_read_error is not None:
        st.caption("⚠️ Showing last known data")


def render_refresh(services, filters=None):
    if st.button("🔄 Refresh"):
        run_action(services, services.actions.load, filters)
        st.rerun()


def render_attachments(services, letter):
    """Covering letter and reports for one letter"""
    covering = letter.covering_letter
    key = letter.id

    st.markdown("**Covering letter**")
    if covering is None:
        if letter.is_closed:
            st.caption("No covering letter")
        else:
            upload = st.file_uploader(
                "Upload covering letter (PDF/Word)",
                type=["pdf", "doc", "docx"],
                key=f"covering_{key}",
            )
            if upload is not None and st.button("Attach", key=f"attach_{key}"):
                pending = PendingUpload(upload.name, upload.getvalue(), upload.type or "")
                run_action(services, services.actions.attach_covering_letter, letter.id, pending)
                st.rerun()
    else:
        url = covering.preferred_url()
        label = "✍️ Signed" if covering.is_signed else "📝 Unsigned"
        st.write(f"{label} {covering.reference_number or ''}")
        if url:
            st.markdown(f"[Open covering letter]({url})")
        if not covering.is_signed and not letter.is_closed:
            if st.button("Remove covering letter", key=f"remove_{key}"):
                run_action(services, services.actions.remove_covering_letter, letter.id)
                st.rerun()

    st.markdown("**Reports**")
    if letter.report_files:
        for report in letter.report_files:
            uploaded = report.uploaded_at.strftime("%Y-%m-%d %H:%M") if report.uploaded_at else ""
            if report.storage_url:
                st.markdown(f"- [{report.original_name}]({report.storage_url}) {uploaded}")
            else:
                st.markdown(f"- {report.original_name} {uploaded}")
    else:
        st.caption("No reports yet")


def render_download(services, letter):
    if st.button("⬇️ Prepare merged PDF", key=f"merge_{letter.id}"):
        try:
            data = b"".join(run_action(services, services.actions.download_merged, letter.id))
        except PatraError as e:
            st.error(f"Download failed: {e}")
            return
        st.download_button(
            "Download",
            data=data,
            file_name=f"{letter.reference_number or letter.id}.pdf",
            mime="application/pdf",
            key=f"download_{letter.id}",
        )


def render_history(services, letter):
    events = services.actions.history(letter.id)
    with st.expander(f"🕘 History ({len(events)})"):
        if not events:
            st.caption("No recorded transitions")
            return
        st.dataframe(
            pd.DataFrame([
                {
                    "When": event.get("timestamp", ""),
                    "Action": event.get("intent", ""),
                    "By": event.get("role", ""),
                    "Status": event.get("new_status") or "",
                    "Forwarded to": event.get("forward_to") or "",
                }
                for event in events
            ]),
            use_container_width=True,
            hide_index=True,
        )
