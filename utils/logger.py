import logging
import os
import sys
from datetime import datetime
from colorama import init, Fore, Style

# Initialize colorama
init(autoreset=True)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

class CustomFormatter(logging.Formatter):
    """
    Custom formatter with color coding for different levels/tags.
    tags: ERROR, NETWORK, DISCORD, DATABASE, RAID
    """

    COLORS = {
        'TRACE': Fore.WHITE + Style.DIM,
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
        'NETWORK': Fore.BLUE,
        'DISCORD': Fore.MAGENTA,
        'DATABASE': Fore.CYAN,
        'RAID': Fore.RED + Style.BRIGHT
    }

    def format(self, record: logging.LogRecord) -> str:
        tag = getattr(record, 'tag', record.levelname)
        color = self.COLORS.get(tag, Fore.WHITE)

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        # Structure: [TIMESTAMP] [TAG] Message
        log_fmt = f"{Style.DIM}[{timestamp}]{Style.RESET_ALL} {color}[{tag}]{Style.RESET_ALL} %(message)s"
        return logging.Formatter(log_fmt).format(record)


class TaggedLogger(logging.LoggerAdapter):
    """Logger adapter exposing the tag helpers used across the bot (log.discord(...), log.database(...))."""

    def process(self, msg, kwargs):
        # exc_info may be an exception instance; logging wants a tuple or bool
        exc = kwargs.get('exc_info')
        if isinstance(exc, BaseException):
            kwargs['exc_info'] = (type(exc), exc, exc.__traceback__)
        return msg, kwargs

    def _tagged(self, level: int, tag: str, msg: str, **kwargs):
        extra = dict(kwargs.pop('extra', None) or {})
        extra['tag'] = tag
        self.log(level, msg, extra=extra, **kwargs)

    def trace(self, msg: str, **kwargs):
        self._tagged(TRACE, 'TRACE', msg, **kwargs)

    def network(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'NETWORK', msg, **kwargs)

    def discord(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'DISCORD', msg, **kwargs)

    def database(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'DATABASE', msg, **kwargs)

    def raid(self, msg: str, **kwargs):
        self._tagged(logging.WARNING, 'RAID', msg, **kwargs)


def setup_logger(name: str = "Bot") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    # Console handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomFormatter())

    if not logger.handlers:
        logger.addHandler(handler)

    return logger

# Global logger instance
logger = setup_logger("Friday")

def get_logger(name: str = None) -> TaggedLogger:
    """Return the shared tagged logger, or a child of it when a name is given."""
    base = logger.getChild(name) if name else logger
    return TaggedLogger(base, {})
