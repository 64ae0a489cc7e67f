"""Local proof ledger with hash chaining."""

import hashlib
import json
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from clausebase_api.models import LedgerEvent


class LedgerService:
    """Tamper-evident append-only ledger with one hash chain per stream."""

    def __init__(self, db: Session):
        """Initialize ledger service."""
        self.db = db

    def _hash_event(self, event_data: dict) -> str:
        """Compute hash of event data."""
        # Create deterministic JSON representation
        event_str = json.dumps(event_data, sort_keys=True)
        return hashlib.sha256(event_str.encode()).hexdigest()

    def _get_last_event_hash(self, stream: str) -> Optional[str]:
        """Get hash of last event in stream."""
        last_event = (
            self.db.query(LedgerEvent)
            .filter(LedgerEvent.stream == stream)
            .order_by(LedgerEvent.id.desc())
            .first()
        )
        return last_event.event_hash if last_event else None

    def _event_data(self, stream, event_type, payload, previous_hash, timestamp) -> dict:
        return {
            "stream": stream,
            "event_type": event_type,
            "payload": payload,
            "previous_hash": previous_hash,
            "timestamp": timestamp,
        }

    def append_event(self, stream: str, event_type: str, payload: dict) -> LedgerEvent:
        """Append event to ledger with hash chaining."""
        previous_hash = self._get_last_event_hash(stream)
        timestamp = datetime.utcnow().isoformat()

        event_hash = self._hash_event(
            self._event_data(stream, event_type, payload, previous_hash, timestamp)
        )

        ledger_event = LedgerEvent(
            event_hash=event_hash,
            previous_event_hash=previous_hash,
            stream=stream,
            event_type=event_type,
            payload_json=payload,
            event_timestamp=timestamp,
        )

        self.db.add(ledger_event)
        self.db.flush()

        return ledger_event

    def find_event(self, event_hash: str) -> Optional[LedgerEvent]:
        """Look up an event by its hash."""
        return self.db.query(LedgerEvent).filter(LedgerEvent.event_hash == event_hash).first()

    def verify_chain(self, stream: str) -> tuple[bool, Optional[str]]:
        """Verify hash chain integrity for a stream."""
        events = (
            self.db.query(LedgerEvent)
            .filter(LedgerEvent.stream == stream)
            .order_by(LedgerEvent.id.asc())
            .all()
        )

        previous_hash = None
        for event in events:
            if event.previous_event_hash != previous_hash:
                return False, f"Event {event.id} does not link to previous event"

            computed_hash = self._hash_event(
                self._event_data(
                    event.stream,
                    event.event_type,
                    event.payload_json,
                    event.previous_event_hash,
                    event.event_timestamp,
                )
            )
            if computed_hash != event.event_hash:
                return False, f"Event {event.id} hash mismatch"

            previous_hash = event.event_hash

        return True, None
