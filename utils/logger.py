# utils/logger.py
import logging
import sys
from pathlib import Path

FORMAT = "%(asctime)s | %(levelname)7s | %(name)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name=__name__, level=logging.DEBUG, logfile=None):
    """
    Loggers are namespaced under "tockgen" so the CLI can attach a file
    handler once for the whole tool.
    """
    logger = logging.getLogger(f"tockgen.{name}")
    if logger.handlers:
        return logger  # already configured

    logger.setLevel(level)
    logger.propagate = False
    fmt = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    if logfile:
        attach_logfile(logger, logfile)

    return logger


def _file_handler(logfile):
    log_dir = Path(logfile).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(logfile)
    fh.setFormatter(logging.Formatter(fmt=FORMAT, datefmt=DATEFMT))
    return fh


def attach_logfile(logger, logfile):
    fh = _file_handler(logfile)
    logger.addHandler(fh)
    return fh


# file handler installed by the last configure() call, shared by all loggers
_configured = None


def _tockgen_loggers():
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("tockgen.") and isinstance(logger, logging.Logger):
            yield logger


def configure(level=None, logfile=None):
    """
    Apply a level and/or a log file to every tockgen logger created so far.
    Called by the command line entry point after all modules are imported.

    The log file of a previous call is detached and closed first, so repeated
    runs in one process never write to an old file or write a record twice.
    """
    global _configured
    previous, _configured = _configured, None
    if logfile:
        _configured = _file_handler(logfile)

    for logger in _tockgen_loggers():
        if level is not None:
            logger.setLevel(level)
        if previous is not None:
            logger.removeHandler(previous)
        if _configured is not None:
            logger.addHandler(_configured)

    if previous is not None:
        previous.close()
    return _configured
