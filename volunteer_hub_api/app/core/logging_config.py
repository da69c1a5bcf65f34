"""
Logging setup for the API process.

Records go to the console and, when ``LOG_FILE`` is set, to that file
as well.  Modules log through ``logging.getLogger(__name__)``, so the
logger name tells which service or backend wrote a record.  Cache hits
and misses are logged at DEBUG; ``urllib3``, which ``requests`` uses
underneath the remote backend, is held at WARNING so that DEBUG output
stays about this service.
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ("urllib3",)


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    target: Optional[logging.Logger] = None,
) -> None:
    """Attach handlers to ``target`` (the root logger by default).

    Does nothing when ``target`` already has handlers, so calling
    ``create_app`` again, or running under pytest, keeps the existing
    configuration.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"``; unknown names mean ``INFO``.
    logfile : Optional[str]
        File to append records to.  Missing parent directories are
        created.
    target : Optional[logging.Logger]
        Logger to configure.
    """
    logger = target or logging.getLogger()
    if logger.handlers:
        return

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
