"""
Central Logging
===============
Logs: <LOG_DIR>/
- all.log, errors.log
- mcp.log, sessions.log, surfaces.log, api.log
"""
import logging
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Config
FMT = "%(asctime)s|%(levelname)-8s|%(name)-22s|%(message)s"
FMT_DETAIL = "%(asctime)s|%(levelname)-8s|%(name)-22s|%(filename)s:%(lineno)d|%(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES, BACKUP = 10 * 1024 * 1024, 5

CATEGORIES = [
    ("mcp", "mcp.log"), ("sessions", "sessions.log"),
    ("surfaces", "surfaces.log"), ("api", "api.log"),
]

# State
_init = {"central": False, "log_dir": None}


class ColorFormatter(logging.Formatter):
    """Formatter with ANSI colors for console."""
    C = {10: '\033[36m', 20: '\033[32m', 30: '\033[33m', 40: '\033[31m', 50: '\033[35m'}
    R = '\033[0m'

    def format(self, r):
        return f"{self.C.get(r.levelno, '')}{super().format(r)}{self.R}"


@lru_cache(maxsize=16)
def _handler(path: str, level: int = logging.DEBUG) -> RotatingFileHandler:
    """Cached rotating file handler factory."""
    h = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP, encoding='utf-8')
    h.setLevel(level)
    h.setFormatter(logging.Formatter(FMT_DETAIL, DATE_FMT))
    return h


def setup_central_logging(
    log_dir: Optional[Path] = None,
    console_level: int | str = logging.INFO,
    enable_console: bool = True,
) -> None:
    """Initialize central logging. Call once at startup.

    Without ``log_dir`` only the console handler is installed.
    """
    if _init["central"]:
        return

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    if enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(console_level)
        console.setFormatter(ColorFormatter(FMT, DATE_FMT))
        root.addHandler(console)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(str(log_dir / "all.log")))
        root.addHandler(_handler(str(log_dir / "errors.log"), logging.ERROR))

        for name, file in CATEGORIES:
            logger = logging.getLogger(f"popui.{name}")
            logger.addHandler(_handler(str(log_dir / file)))
            logger.propagate = True

        lg = logging.getLogger("uvicorn.access")
        lg.handlers.clear()
        lg.addHandler(_handler(str(log_dir / "access.log")))
        lg.propagate = True
        _init["log_dir"] = log_dir

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _init["central"] = True
    root.info(f"PopUI logging initialized | {_init['log_dir'] or 'console only'}")

