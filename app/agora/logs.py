from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

LOG_FORMAT = "%(asctime)s [%(levelname)s]: %(message)s"

_HANDLER_MARK = "_agora_handler"


def configure_logging(app: Flask) -> None:
    """
    Console logging always; a file handler too when LOG_FILE is set.
    Idempotent so repeated create_app() calls (tests) don't stack handlers.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if getattr(h, _HANDLER_MARK, False):
            root.removeHandler(h)
            h.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    setattr(console, _HANDLER_MARK, True)
    root.addHandler(console)

    log_file = (app.config.get("LOG_FILE") or "").strip()
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        root.addHandler(file_handler)

    app.logger.setLevel(level)
