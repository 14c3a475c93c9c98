"""Allow `python -m saveai.infrastructure` to run the API with uvicorn."""

from __future__ import annotations

import uvicorn

from config import get_settings

from .bootstrap import LOG_INFO


def main() -> None:
    settings = get_settings()
    LOG_INFO("Starting server", host=settings.host, port=settings.port, workers=settings.workers)
    # Import string so uvicorn can spawn workers, each building its own app.
    uvicorn.run("main:app", host=settings.host, port=settings.port, workers=settings.workers)


if __name__ == "__main__":
    main()
