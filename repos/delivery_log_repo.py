from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from config.settings import settings
from models.schema import COL_DELIVERIES
from utils.clock import utc_now_iso


@dataclass
class DeliveryRecord:
    sid: str
    message_type: str  # sms | mms | voice
    recipient: str
    status: str
    sent_at: str
    org_id: Optional[str] = None
    error_code: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeliveryRecord":
        return cls(
            sid=str(d.get("sid") or ""),
            message_type=str(d.get("message_type") or ""),
            recipient=str(d.get("recipient") or ""),
            status=str(d.get("status") or ""),
            sent_at=str(d.get("sent_at") or ""),
            org_id=d.get("org_id"),
            error_code=d.get("error_code"),
            updated_at=d.get("updated_at"),
        )


class InMemoryDeliveryLogRepository:
    backend = "memory"

    def __init__(self):
        self._records: Dict[str, DeliveryRecord] = {}
        self._lock = threading.Lock()

    def record_send(self, record: DeliveryRecord) -> None:
        with self._lock:
            self._records[record.sid] = record

    def update_status(self, sid: str, status: Optional[str], error_code: Optional[str] = None) -> bool:
        with self._lock:
            rec = self._records.get(sid)
            if rec is None:
                return False
            if status:
                rec.status = status
            if error_code:
                rec.error_code = error_code
            rec.updated_at = utc_now_iso()
            return True

    def get(self, sid: str) -> Optional[DeliveryRecord]:
        with self._lock:
            return self._records.get(sid)

    def list_since(self, since_iso: str = "") -> List[DeliveryRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.sent_at and r.sent_at >= since_iso]


class FirestoreDeliveryLogRepository:
    backend = "firestore"

    def __init__(self, db=None):
        if db is None:
            from storage.firestore_client import get_firestore_client

            db = get_firestore_client()
        self.db = db

    def _doc(self, sid: str):
        return self.db.collection(COL_DELIVERIES).document(sid)

    def record_send(self, record: DeliveryRecord) -> None:
        self._doc(record.sid).set(record.to_dict(), merge=False)

    def update_status(self, sid: str, status: Optional[str], error_code: Optional[str] = None) -> bool:
        # Callbacks can race the send write; merge so either order converges.
        data: Dict[str, Any] = {"sid": sid, "updated_at": utc_now_iso()}
        if status:
            data["status"] = status
        if error_code:
            data["error_code"] = error_code
        self._doc(sid).set(data, merge=True)
        return True

    def get(self, sid: str) -> Optional[DeliveryRecord]:
        snap = self._doc(sid).get()
        if not snap.exists:
            return None
        return DeliveryRecord.from_dict({**(snap.to_dict() or {}), "sid": sid})

    def list_since(self, since_iso: str = "") -> List[DeliveryRecord]:
        query = self.db.collection(COL_DELIVERIES).where("sent_at", ">=", since_iso)
        return [DeliveryRecord.from_dict({**(s.to_dict() or {}), "sid": s.id}) for s in query.stream()]


def get_delivery_log_repository():
    backend = (settings.DELIVERY_LOG_BACKEND or "memory").strip().lower()
    if backend == "firestore":
        return FirestoreDeliveryLogRepository()
    if backend != "memory":
        raise RuntimeError(f"Unknown DELIVERY_LOG_BACKEND: {backend}")
    return InMemoryDeliveryLogRepository()
