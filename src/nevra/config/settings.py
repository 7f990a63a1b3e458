"""
Application Configuration
========================

Configuration settings for different environments.

Provider tuning keys (``<PROVIDER>_MAX_TOKENS_BUILDER``,
``<PROVIDER>_TIMEOUT_MS``, ``<PROVIDER>_MODEL``) are not listed here; the
provider registry reads them from the merged app config / environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from nevra.constants import DEFAULT_PLANNING_TIMEOUT_SECONDS, DEFAULT_PROVIDER


# Load .env before the classes below read the environment (existing variables win)
ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / '.env'
load_dotenv(ENV_FILE, override=False)


def _float_env(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Base configuration class."""

    # Basic Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    JSON_SORT_KEYS = False

    BASE_DIR = Path(__file__).resolve().parent.parent.parent  # This should be /src

    # Upstream providers
    OPENROUTER_API_KEY = os.environ.get('OPENROUTER_API_KEY', '')
    OPENROUTER_BASE_URL = os.environ.get('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
    OPENROUTER_SITE_URL = os.environ.get('OPENROUTER_SITE_URL', 'https://nevra.local')
    OPENROUTER_SITE_NAME = os.environ.get('OPENROUTER_SITE_NAME', 'Nevra')
    PUTER_API_BASE = os.environ.get('PUTER_API_BASE', 'https://api.puter.com/v1')
    DEFAULT_PROVIDER = os.environ.get('DEFAULT_PROVIDER', DEFAULT_PROVIDER)

    # Planning
    PLANNING_TIMEOUT_SECONDS = _float_env('PLANNING_TIMEOUT_SECONDS', DEFAULT_PLANNING_TIMEOUT_SECONDS)

    # CORS (comma separated origins, '*' for any)
    CORS_ORIGIN = os.environ.get('CORS_ORIGIN', '*')

    # Request bodies carry base64 images
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', str(25 * 1024 * 1024)))

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', str(BASE_DIR.parent / 'logs'))
    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'false').lower() == 'true'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False

    # Development logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    # Never talk to real providers from tests
    OPENROUTER_API_KEY = 'test-key'
    OPENROUTER_BASE_URL = 'http://upstream.invalid/api/v1'
    PUTER_API_BASE = 'http://puter.invalid/v1'
    DEFAULT_PROVIDER = 'deepseek'
    LOG_TO_FILE = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False

    def __init__(self):
        super().__init__()
        # Production secret should be set via environment variable
        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable is required for production")
        self.SECRET_KEY = os.environ.get('SECRET_KEY')


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
