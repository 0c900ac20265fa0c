# repguard/core/logs.py
import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"

# Gürültülü kütüphaneler
_QUIET_LOGGERS = ("apscheduler", "httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Root logger'ı tek bir stream handler ile kurar.
    Tekrar çağrılırsa eski handler'lar temizlenir (reload/test güvenli).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
