"""Server entrypoint: ``storefront-serve`` or ``python -m storefront.serve``."""

from __future__ import annotations

import logging

import uvicorn

from storefront.api import create_app
from storefront.config import get_settings

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=_LOG_FORMAT)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
