# main.py – Point d'entrée du service de parses
# -----------------------------------------------------------------------------
#  • Configure le logging, construit l'app FastAPI et la sert avec uvicorn.
#  • La synchro FFLogs démarre dans le lifespan de l'app ; sans identifiants
#    FFLogs elle reste désactivée (les lookups répondent "none").
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

import uvicorn

from rpf.config import settings
from rpf.logging_config import setup_logging

setup_logging(level=settings.LOG_LEVEL)
log = logging.getLogger(__name__)


def main() -> None:
    from rpf.web.app import create_app

    app = create_app()
    log.info("listening at %s:%s", settings.WEB_HOST, settings.WEB_PORT)
    uvicorn.run(app, host=settings.WEB_HOST, port=settings.WEB_PORT, log_config=None)


if __name__ == "__main__":
    main()
