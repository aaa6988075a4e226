"""
Per-browser-session wiring of the patra engine.
Built once per Streamlit session over its own credential store.
"""
from collections.abc import MutableMapping
from dataclasses import dataclass

import streamlit as st

from patra.async_engine.scheduler import TaskScheduler
from patra.config import AUDIT_LOG_FILE
from patra.core.letter_actions import LetterActions
from patra.core.reconciliation import Reconciler
from patra.integrations.patra_api import PatraApiClient
from patra.notifications.notifier import Notifier
from patra.security.access_guard import AccessController
from patra.security.session_authority import SessionAuthority
from patra.storage.session_store import open_session_store


@dataclass
class Services:
    client: PatraApiClient
    authority: SessionAuthority
    access: AccessController
    notifier: Notifier
    reconciler: Reconciler
    actions: LetterActions
    scheduler: TaskScheduler


def build_services(store: MutableMapping) -> Services:
    client = PatraApiClient()
    authority = SessionAuthority(client, store)
    client.credential_provider = lambda: authority.credential

    notifier = Notifier()
    reconciler = Reconciler(
        notifier,
        audit_path=AUDIT_LOG_FILE,
        on_session_error=lambda error: authority.clear(),
    )
    return Services(
        client=client,
        authority=authority,
        access=AccessController(authority),
        notifier=notifier,
        reconciler=reconciler,
        actions=LetterActions(authority, reconciler, client),
        scheduler=TaskScheduler(),
    )


def get_services() -> Services:
    # The authority needs a plain store: st.session_state does not resolve
    # from the polling threads.
    if "session_store" not in st.session_state:
        st.session_state.session_store = open_session_store()
    if "services" not in st.session_state:
        st.session_state.services = build_services(st.session_state.session_store)
    return st.session_state.services
