import functools
import logging
import os
import time
from typing import Optional

# Niveau de log
LOG_LEVELS = {"NONE": 0, "BASIC": 1, "DETAILED": 2}
LOG_LEVEL = LOG_LEVELS.get(os.environ.get("GRIDNAV_LOG_LEVEL", "BASIC").upper(), 1)

_ROOT_LOGGER_NAME = "gridnav"
_ROOT_LOGGER: Optional[logging.Logger] = None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the shared ``gridnav`` logger, or one of its children.

    The root logger gets a single stream handler the first time it is
    requested; children propagate to it.
    """

    global _ROOT_LOGGER
    if _ROOT_LOGGER is None:
        logger = logging.getLogger(_ROOT_LOGGER_NAME)
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("[%(name)s] %(levelname)s %(message)s"))
            logger.addHandler(handler)
        logger.setLevel(logging.WARNING)
        logger.propagate = True
        _ROOT_LOGGER = logger

    if not name:
        return _ROOT_LOGGER
    return _ROOT_LOGGER.getChild(name)


def log_calls(func):
    """Décorateur pour logger les appels de fonctions et mesurer leur temps d'exécution."""
    call_logger = get_logger("calls")

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if LOG_LEVEL == 0 or not call_logger.isEnabledFor(logging.DEBUG):
            return func(*args, **kwargs)

        call_logger.debug("Appel %s args=%s kwargs=%s", func.__qualname__, args[1:], kwargs)
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            call_logger.debug("Echec %s: %r", func.__qualname__, exc)
            raise
        elapsed = time.perf_counter() - start_time

        if LOG_LEVEL >= 2:
            call_logger.debug("Retour %s: %r", func.__qualname__, result)
        call_logger.debug("Temps d'exécution %s: %.6f s", func.__qualname__, elapsed)
        return result

    return wrapper


__all__ = ["LOG_LEVEL", "LOG_LEVELS", "get_logger", "log_calls"]
