# patra/storage/event_store.py

import json
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List

from patra.config import AUDIT_LOG_FILE

_event_lock = threading.Lock()


def _current_utc_time() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def append_event(event: Dict, path: str = AUDIT_LOG_FILE) -> Dict:
    """
    Append an immutable record of a committed letter transition.
    """
    event_record = {
        "event_id": str(uuid.uuid4()),
        "timestamp": _current_utc_time(),
        **event
    }

    with _event_lock:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event_record, ensure_ascii=False) + "\n")

    return event_record


def load_all_events(path: str = AUDIT_LOG_FILE) -> List[Dict]:
    """
    Load all audit records, oldest first.
    """
    events = []

    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    events.append(json.loads(line))
    except FileNotFoundError:
        pass  # No events yet

    return events


def load_letter_history(letter_id: str, path: str = AUDIT_LOG_FILE) -> List[Dict]:
    return [e for e in load_all_events(path) if e.get("letter_id") == letter_id]
