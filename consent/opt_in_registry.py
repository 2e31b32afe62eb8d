from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from utils.clock import utc_now_iso


@dataclass(frozen=True)
class OptInRecord:
    phone_e164: str
    opted_in: bool
    updated_at: str
    updated_by: Optional[str] = None


class OptInRegistry:
    """
    Process-local consent map keyed by E.164 number.
    - Unknown numbers are treated as not opted in.
    - Callers must normalize numbers before lookup.
    """

    def __init__(self):
        self._records: Dict[str, OptInRecord] = {}
        self._lock = threading.Lock()

    def get(self, phone_e164: str) -> Optional[OptInRecord]:
        with self._lock:
            return self._records.get(phone_e164)

    def is_opted_in(self, phone_e164: str) -> bool:
        rec = self.get(phone_e164)
        return bool(rec and rec.opted_in)

    def set_opt_in(self, phone_e164: str, opted_in: bool, updated_by: Optional[str] = None) -> OptInRecord:
        rec = OptInRecord(
            phone_e164=phone_e164,
            opted_in=bool(opted_in),
            updated_at=utc_now_iso(),
            updated_by=updated_by,
        )
        with self._lock:
            self._records[phone_e164] = rec
        return rec

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
