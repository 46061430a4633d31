"""Unit tests for the Application Core."""

import pytest

from paperboy.core.app import ApplicationCore
from paperboy.core.config_manager import ConfigManager
from paperboy.core.dispatcher import ManualDispatcher
from paperboy.core.task_executor import TaskExecutor
from paperboy.utils.exceptions import ApplicationError


@pytest.fixture
def app_core(temp_config_file):
    """Create an ApplicationCore instance for testing."""
    app = ApplicationCore(config_path=temp_config_file, dispatcher=ManualDispatcher())
    app.initialize()
    yield app
    app.shutdown()


def test_app_core_initialization(temp_config_file):
    """Test that the ApplicationCore initializes correctly."""
    app = ApplicationCore(config_path=temp_config_file, dispatcher=ManualDispatcher())
    app.initialize()

    assert app.is_initialized()
    assert app.get_manager("config_manager") is not None
    assert app.get_manager("logging_manager") is not None
    assert app.get_manager("task_executor") is not None

    app.shutdown()
    assert not app.is_initialized()
    assert app.get_manager("config_manager") is None


def test_app_core_get_manager(app_core):
    """Test retrieving managers from ApplicationCore."""
    assert app_core.get_manager("nonexistent") is None
    assert isinstance(app_core.get_manager_typed("config_manager", ConfigManager), ConfigManager)
    assert app_core.get_manager_typed("config_manager", TaskExecutor) is None


def test_app_core_status(app_core):
    """Test getting status from ApplicationCore."""
    status = app_core.status()

    assert status["name"] == "ApplicationCore"
    assert status["initialized"] is True
    assert set(status["managers"]) == {"config_manager", "logging_manager", "task_executor"}
    assert status["router"] == {"posted": 0, "delivered": 0, "dropped": 0}


def test_app_core_uses_qt_dispatcher_by_default(temp_config_file, qapp):
    """Without an explicit dispatcher the Qt one is used."""
    from paperboy.core.dispatcher import QtDispatcher

    app = ApplicationCore(config_path=temp_config_file)
    app.initialize()
    try:
        assert isinstance(app.dispatcher, QtDispatcher)
    finally:
        app.shutdown()


def test_app_core_round_trip_through_executor(app_core):
    """Work submitted through the core comes back on the dispatcher."""
    received = []
    executor = app_core.get_manager("task_executor")

    executor.submit(lambda: "ok", lambda outcome: received.append(outcome.value))

    assert app_core.dispatcher.run_until(lambda: received == ["ok"], timeout=2.0)


def test_services_are_shared(app_core):
    """Service accessors return one instance per core."""
    assert app_core.discovery_service() is app_core.discovery_service()
    assert app_core.zip_lookup() is app_core.zip_lookup()
    assert app_core.remote_fetcher() is app_core.remote_fetcher()


def test_services_require_initialization(temp_config_file):
    """Services are not available before initialize."""
    app = ApplicationCore(config_path=temp_config_file, dispatcher=ManualDispatcher())
    with pytest.raises(ApplicationError):
        app.discovery_service()


def test_invalid_config_fails_initialization(tmp_path):
    """A broken configuration file aborts startup."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("ui:\n  debounce_ms: -1\n")

    app = ApplicationCore(config_path=str(config_file), dispatcher=ManualDispatcher())
    with pytest.raises(ApplicationError):
        app.initialize()
    assert not app.is_initialized()
