# Centralized collection names to prevent drift.

COL_SYSTEM = "system"
DOC_HEALTHZ = "healthz"

COL_DELIVERIES = "deliveries"  # deliveries/{message_or_call_sid}
