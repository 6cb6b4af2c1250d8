"""
commitboard.api.__main__ — Entry point for ``python -m commitboard.api``
=========================================================================

Configures logging, then serves :data:`commitboard.api.main.app` with
uvicorn.  ``HOST``/``PORT`` override the bind address.
"""

from __future__ import annotations

import logging
import os

import uvicorn

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("commitboard")


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting Commitboard API on %s:%d…", host, port)
    uvicorn.run("commitboard.api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
