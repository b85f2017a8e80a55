"""Serve the TeamTrack Core API with uvicorn.

Usage: ``python -m teamtrack_core`` or the ``teamtrack-core`` script.
"""
import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "teamtrack_core.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
