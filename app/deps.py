from __future__ import annotations

import threading

from fastapi import Request

from extension.handlers import TwilioNotificationExtension

_init_lock = threading.Lock()


def get_extension(request: Request) -> TwilioNotificationExtension:
    # Built on first use so importing the app never touches Firestore.
    ext = getattr(request.app.state, "extension", None)
    if ext is None:
        with _init_lock:
            ext = getattr(request.app.state, "extension", None)
            if ext is None:
                ext = TwilioNotificationExtension()
                request.app.state.extension = ext
    return ext
