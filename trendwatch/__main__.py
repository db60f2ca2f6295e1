"""Service entry point: ``python -m trendwatch``."""

import logging

import uvicorn

from trendwatch.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def main() -> None:
    api = settings.api
    logger.info("Starting trendwatch on %s:%d", api.host, api.port)
    # log_config=None keeps the basicConfig handlers for uvicorn's loggers too
    uvicorn.run("trendwatch.api.main:app", host=api.host, port=api.port, log_config=None)


if __name__ == "__main__":
    main()
