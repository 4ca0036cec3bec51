"""Configuração centralizada de logging do Atlas ETL (CLI)."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional


LOG_FORMAT_ENV = "ATLAS_ETL_LOG_FORMAT"
LOG_LEVEL_ENV = "ATLAS_ETL_LOG_LEVEL"


class JSONFormatter(logging.Formatter):
    """Um objeto JSON por linha: timestamp, level, logger, message (e exception)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level_override: Optional[str] = None) -> None:
    """
    Configura o logger raiz.

    Args:
        level_override: tem precedência sobre ATLAS_ETL_LOG_LEVEL.

    Variáveis de ambiente:
        ATLAS_ETL_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: WARNING)
        ATLAS_ETL_LOG_FORMAT: "json" para JSON lines; qualquer outro valor, texto
    """
    level_name = (level_override or os.getenv(LOG_LEVEL_ENV, "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if os.getenv(LOG_FORMAT_ENV, "text").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)
