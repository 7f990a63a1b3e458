"""
Centralized Logging Configuration
=================================

Provides a unified logging setup for the gateway with colored console
output, an optional rotating log file, request id tagging and suppression
of high-frequency health polling noise.
"""

import logging
import os
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from colorama import Fore, Style, init

init(autoreset=True)

APP_LOGGER_NAME = "Nevra"


class RequestIdFilter(logging.Filter):
    """Attach the current Flask request id (if any) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, 'request_id'):
            return True
        try:
            from flask import g, has_request_context
            record.request_id = getattr(g, 'request_id', None) if has_request_context() else None
        except RuntimeError:
            record.request_id = None
        return True


class WerkzeugEndpointFilter(logging.Filter):
    """Suppress werkzeug access logs for health polling and static assets."""

    _suppressed_endpoints = (
        'GET /api/health ',
        'GET / HTTP',
        'GET /favicon',
        'OPTIONS /api/',
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(endpoint in message for endpoint in self._suppressed_endpoints)


class ColoredSmartFormatter(logging.Formatter):
    """Formatter with color coding per level and per service."""

    def __init__(self, include_function: bool = False, use_colors: bool = True):
        self.include_function = include_function
        self.use_colors = use_colors
        super().__init__()

        self.level_colors = {
            logging.DEBUG: Fore.CYAN,
            logging.INFO: Fore.GREEN,
            logging.WARNING: Fore.YELLOW,
            logging.ERROR: Fore.RED,
            logging.CRITICAL: Fore.RED + Style.BRIGHT
        }

        self.service_colors = {
            'factory': Fore.BLUE,
            'dispatcher': Fore.MAGENTA,
            'adapters': Fore.CYAN,
            'planning': Fore.YELLOW,
            'route': Fore.GREEN,
        }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, '%H:%M:%S')
        level = record.levelname
        name = self._clean_logger_name(record.name)
        message = record.getMessage()
        request_id = getattr(record, 'request_id', None)
        if request_id:
            message = f"[{request_id[:8]}] {message}"

        if self.use_colors:
            level_color = self.level_colors.get(record.levelno, "")
            colored_level = f"{level_color}{level:8}{Style.RESET_ALL}"
            colored_name = f"{self._get_service_color(name)}{name:20}{Style.RESET_ALL}"
        else:
            colored_level = f"{level:8}"
            colored_name = f"{name:20}"

        line = f"[{timestamp}] {colored_level} {colored_name} {message}"
        if self.include_function and record.levelno >= logging.WARNING:
            location = f"[{record.funcName}:{record.lineno}]"
            if self.use_colors:
                location = f"{Fore.WHITE}{Style.DIM}{location}{Style.RESET_ALL}"
            line = f"[{timestamp}] {colored_level} {colored_name} {location} {message}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _clean_logger_name(self, name: str) -> str:
        """Shorten logger names for readability."""
        replacements = {
            f'{APP_LOGGER_NAME}.': '',
            'nevra.services.gateway.': 'gw.',
            'nevra.services.': 'svc.',
            'nevra.routes.api.': 'route.',
            'nevra.utils.': 'util.',
            'nevra.': '',
        }
        for old, new in replacements.items():
            if name.startswith(old):
                name = new + name[len(old):]
                break

        if len(name) > 20:
            name = name[:17] + "..."
        return name

    def _get_service_color(self, service_name: str) -> str:
        name_lower = service_name.lower()
        for service, color in self.service_colors.items():
            if service in name_lower:
                return color
        return Fore.WHITE


class LoggingConfig:
    """Centralized logging configuration for the application."""

    def __init__(
        self,
        app_name: str = APP_LOGGER_NAME,
        log_level: Optional[Union[str, int]] = None,
        log_dir: Optional[Union[str, Path]] = None,
        log_to_file: bool = False,
    ):
        self.app_name = app_name
        self.log_level = self._get_log_level(log_level)
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_to_file = log_to_file and self.log_dir is not None
        self.is_development = os.environ.get('FLASK_ENV', 'development') == 'development'

        self._configure_warnings()

    def setup_logging(self) -> logging.Logger:
        """Setup centralized logging configuration.

        Only handlers this class attached earlier are replaced, so pytest's
        caplog handler survives repeated app creation.
        """
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if getattr(handler, "_nevra", False):
                root_logger.removeHandler(handler)
        root_logger.setLevel(self.log_level)

        req_filter = RequestIdFilter()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(ColoredSmartFormatter(include_function=self.is_development))
        console_handler.addFilter(req_filter)
        console_handler._nevra = True  # type: ignore[attr-defined]
        root_logger.addHandler(console_handler)

        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_dir / "nevra.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(ColoredSmartFormatter(include_function=True, use_colors=False))
            file_handler.addFilter(req_filter)
            file_handler._nevra = True  # type: ignore[attr-defined]
            root_logger.addHandler(file_handler)

        self._configure_specific_loggers()

        app_logger = logging.getLogger(self.app_name)
        app_logger.info(f"Logging configured - Level: {logging.getLevelName(self.log_level)}")
        return app_logger

    @staticmethod
    def _get_log_level(level: Optional[Union[str, int]]) -> int:
        if isinstance(level, int):
            return level
        level_str = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
        return getattr(logging, level_str, logging.INFO)

    def _configure_warnings(self):
        warnings.filterwarnings('ignore', category=DeprecationWarning, module='aiohttp')
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.ERROR)

    def _configure_specific_loggers(self):
        if not self.is_development:
            logging.getLogger('werkzeug').setLevel(logging.WARNING)
            logging.getLogger('flask.app').setLevel(logging.WARNING)

        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('aiohttp.access').setLevel(logging.WARNING)

        werkzeug_logger = logging.getLogger('werkzeug')
        if not any(isinstance(f, WerkzeugEndpointFilter) for f in werkzeug_logger.filters):
            werkzeug_logger.addFilter(WerkzeugEndpointFilter())


def setup_application_logging(
    log_level: Optional[Union[str, int]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    log_to_file: bool = False,
) -> logging.Logger:
    """Setup application logging - call this once at startup."""
    return LoggingConfig(log_level=log_level, log_dir=log_dir, log_to_file=log_to_file).setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
