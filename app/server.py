from __future__ import annotations

import uvicorn

from config.settings import settings


def main() -> None:
    uvicorn.run(
        "app.api_service:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=max(1, settings.WEB_CONCURRENCY),
        proxy_headers=True,
        log_config=None,  # keep the JSON root handler from setup_logging
    )


if __name__ == "__main__":
    main()
