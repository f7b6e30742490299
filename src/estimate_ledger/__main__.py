"""Run the estimate ledger API with uvicorn: python -m estimate_ledger."""

import logging

import uvicorn

from estimate_ledger.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "estimate_ledger.api.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
