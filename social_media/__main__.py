"""Run the API with uvicorn: ``python -m social_media``."""

import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run(
        "social_media.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
