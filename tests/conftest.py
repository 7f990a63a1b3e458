import sys
from pathlib import Path

# Ensure the application package under src/ is importable when running tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / 'src'
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

TESTS_PATH = Path(__file__).resolve().parent
if str(TESTS_PATH) not in sys.path:
    sys.path.insert(0, str(TESTS_PATH))

import pytest

from fakes import ScriptedAdapter, client_for
from nevra.factory import create_app
from nevra.services.gateway import ProviderRegistry, RequestDispatcher


@pytest.fixture
def settings():
    return {'OPENROUTER_API_KEY': 'test-key'}


@pytest.fixture
def registry(settings):
    return ProviderRegistry.from_config(settings)


@pytest.fixture
def adapter():
    return ScriptedAdapter()


@pytest.fixture
def dispatcher(registry, adapter):
    return RequestDispatcher(registry, client_for(adapter))


@pytest.fixture
def app(adapter):
    """Create application for the tests, wired to the scripted adapter."""
    app = create_app('testing', client=client_for(adapter))
    app.config.update({'TESTING': True})
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()
