from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Set, Tuple

from repos.delivery_log_repo import DeliveryRecord
from utils.clock import utc_day_key


def compute_daily_metrics(records: Iterable[DeliveryRecord]) -> List[Dict[str, Any]]:
    """
    Per (UTC day, message type) delivery counts.
    Records without sent_at are skipped. delivery_rate_pct is None when nothing was sent.
    """
    totals: Dict[Tuple[str, str], Dict[str, int]] = defaultdict(lambda: {"total": 0, "delivered": 0, "failed": 0})
    recipients: Dict[Tuple[str, str], Set[str]] = defaultdict(set)

    for r in records:
        if not r.sent_at:
            continue
        key = (utc_day_key(r.sent_at), r.message_type)
        bucket = totals[key]
        bucket["total"] += 1
        if r.status == "delivered":
            bucket["delivered"] += 1
        elif r.status == "failed":
            bucket["failed"] += 1
        if r.recipient:
            recipients[key].add(r.recipient)

    rows: List[Dict[str, Any]] = []
    for (day, mtype), b in sorted(totals.items()):
        total = b["total"]
        rows.append({
            "delivery_date": day,
            "message_type": mtype,
            "total_sent": total,
            "delivered_count": b["delivered"],
            "failed_count": b["failed"],
            "unique_recipients": len(recipients[(day, mtype)]),
            "delivery_rate_pct": round(100.0 * b["delivered"] / total, 2) if total else None,
        })
    return rows
