# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so app.py uses TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from museum_app.importer import init_importer  # noqa: E402
from museum_app.models import db  # noqa: E402
from museum_app.utils.logging_config import setup_logging  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    # TestingConfig uses an in-memory SQLite database shared through a static
    # pool, so tables are rebuilt around every test.
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "MONITORING_ENABLED": False,
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "LOG_LEVEL": "DEBUG",
            "IMPORTER_ENABLED": False,
            "IMPORTER_ADAPTERS": (),
            "IMPORTER_WORKER_ENABLED": False,
            "IMPORTER_ENRICHMENT_ENABLED": False,
            "IMPORTER_SCHEDULE_ENABLED": False,
            "IMPORTER_API_TOKEN": None,
            "PINATA_JWT": None,
            "IMPORTER_QUEUE_BATCH_LIMIT": 50,
            "IMPORTER_ARTIST_NAME_MAX_ATTEMPTS": 5,
            "IMPORTER_STALE_CLAIM_SECONDS": 900,
            "IMPORTER_RATE_LIMIT_BASE_DELAY": 0.0,
        }
    )
    setup_logging(flask_app)
    init_importer(flask_app)

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
