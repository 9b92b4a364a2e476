"""
Logging setup for LDAP Lookup.

Lookups log through per-module loggers under ``ldap_lookup``. This module wires
those loggers to the console and, when a log directory is given, to a file
rotated at midnight. Bind passwords travel through configuration objects and
ldap3 results, so every handler scrubs credentials before a record is written.
"""

import os
import re
import logging
import logging.handlers
from typing import Dict, Any, List, Optional

LOG_FILE_NAME = 'ldap_lookup.log'

FILE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'

MASK = '****'


class SensitiveDataFilter(logging.Filter):
    """Mask credential values in log messages and their arguments."""

    SENSITIVE_KEYWORDS = [
        'bind_password', 'password', 'secret', 'credential', 'pass', 'pwd', 'token',
    ]

    def __init__(self, name: str = ''):
        super().__init__(name)
        keywords = '|'.join(self.SENSITIVE_KEYWORDS)
        # password=hunter2, LDAP_PASSWORD = hunter2
        self._assignment = re.compile(rf'((?:{keywords})\s*=\s*)[^\s,}}\]]+', re.IGNORECASE)
        # {'password': 'hunter2'} and {"password": "hunter2"}
        self._quoted = re.compile(rf'([\'"](?:{keywords})[\'"]\s*:\s*[\'"])[^\'"]*([\'"])', re.IGNORECASE)

    def scrub(self, text: str) -> str:
        text = self._assignment.sub(rf'\g<1>{MASK}', text)
        return self._quoted.sub(rf'\g<1>{MASK}\g<2>', text)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.scrub(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(self.scrub(arg) if isinstance(arg, str) else arg for arg in record.args)
        return True


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    return handler


class LoggingManager:
    """
    Owns the root logger configuration for the command line tool.

    Recognized keys: ``level`` (default WARNING), ``log_dir``,
    ``retention_days`` (default 7), ``console_output`` (default True) and
    ``ldap3_level`` (default WARNING).
    """

    def __init__(self):
        self.configured = False
        self.log_file = None

    def _file_handler(self, log_dir: str, retention_days: int) -> logging.Handler:
        os.makedirs(log_dir, exist_ok=True)
        self.log_file = os.path.join(log_dir, LOG_FILE_NAME)
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=self.log_file,
            when='midnight',
            backupCount=retention_days,
            encoding='utf-8'
        )
        handler.suffix = '%Y-%m-%d'
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        return handler

    def setup_logging(self, config: Optional[Dict[str, Any]] = None, force: bool = False) -> None:
        """
        Configure the root logger.

        Args:
            config: Logging settings (see class docstring)
            force: Replace an earlier configuration
        """
        if self.configured and not force:
            return

        settings = config or {}
        level_name = str(settings.get('level') or 'WARNING').upper()
        log_dir = settings.get('log_dir')

        handlers: List[logging.Handler] = []
        self.log_file = None
        if log_dir:
            handlers.append(self._file_handler(log_dir, int(settings.get('retention_days', 7))))
        if settings.get('console_output', True):
            handlers.append(_console_handler())

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(getattr(logging, level_name, logging.WARNING))

        sensitive_filter = SensitiveDataFilter()
        for handler in handlers:
            handler.addFilter(sensitive_filter)
            root_logger.addHandler(handler)

        ldap3_level = str(settings.get('ldap3_level') or 'WARNING').upper()
        logging.getLogger('ldap3').setLevel(getattr(logging, ldap3_level, logging.WARNING))

        self.configured = True
        logging.getLogger(__name__).debug(f"Logging configured: level={level_name}, file={self.log_file}")


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(config: Optional[Dict[str, Any]] = None, force: bool = False) -> None:
    _logging_manager.setup_logging(config, force=force)


def enable_trace(target: logging.Logger) -> None:
    """
    Make INFO lines from ``target`` visible.

    Handlers set up by the host application (or by setup_logging) are kept;
    when nothing would emit the records, a scrubbed console handler is
    attached to ``target`` itself.
    """
    if target.getEffectiveLevel() > logging.INFO:
        target.setLevel(logging.INFO)
    if not target.hasHandlers():
        handler = _console_handler()
        handler.addFilter(SensitiveDataFilter())
        target.addHandler(handler)
