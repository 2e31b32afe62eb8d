from __future__ import annotations


class NotificationError(Exception):
    """Request-level failure reported back to the caller as ``{"success": False}``."""


class InvalidRequest(NotificationError):
    pass


class OptInRequired(NotificationError):
    pass


class RateLimitExceeded(NotificationError):
    pass


class ConfigurationError(NotificationError):
    pass
