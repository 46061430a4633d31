"""Unit tests for the exceptions module."""

from paperboy.utils.exceptions import (
    ApplicationError,
    ConfigurationError,
    DispatcherError,
    HelperLaunchError,
    ManagerError,
    ManagerInitializationError,
    ManagerShutdownError,
    NetworkError,
    PaperboyError,
    TaskExecutorError,
)


def test_paperboy_error():
    """Test the base PaperboyError class."""
    error = PaperboyError("Test error message")
    assert str(error) == "Test error message"
    assert error.message == "Test error message"
    assert error.details == {}

    details = {"key": "value", "number": 123}
    error = PaperboyError("Test with details", details=details, extra="x")
    assert error.details == {"key": "value", "number": 123, "extra": "x"}


def test_manager_error():
    """Test the ManagerError class."""
    error = ManagerError("Manager error message")
    assert str(error) == "Manager error message"
    assert "manager_name" not in error.details

    error = ManagerError("Manager error with name", manager_name="TestManager")
    assert error.details["manager_name"] == "TestManager"
    assert str(error) == "Manager error with name (Manager: TestManager)"


def test_manager_lifecycle_errors():
    """Initialization and shutdown errors are manager errors."""
    assert isinstance(ManagerInitializationError("x", manager_name="m"), ManagerError)
    assert isinstance(ManagerShutdownError("x", manager_name="m"), ManagerError)


def test_configuration_error():
    """Test the ConfigurationError class."""
    error = ConfigurationError("Bad value", config_key="ui.debounce_ms")
    assert error.config_key == "ui.debounce_ms"
    assert error.details["config_key"] == "ui.debounce_ms"


def test_task_executor_error():
    """Test the TaskExecutorError class."""
    error = TaskExecutorError("Not accepting", task_id="abc")
    assert error.manager_name == "task_executor"
    assert str(error) == "Not accepting (Task: abc)"

    assert str(TaskExecutorError("Stopped")) == "Stopped (Manager: task_executor)"


def test_helper_launch_error():
    """Test the HelperLaunchError class."""
    error = HelperLaunchError("rssFinder not found", helper="rssFinder", argv=("rssFinder", "--query", "Boston"))
    assert error.helper == "rssFinder"
    assert error.details["argv"] == ["rssFinder", "--query", "Boston"]
    assert isinstance(error, PaperboyError)


def test_network_error():
    """Test the NetworkError class."""
    error = NetworkError("Unexpected status 404", url="https://x.example", status_code=404)
    assert error.url == "https://x.example"
    assert error.status_code == 404
    assert error.details == {"url": "https://x.example", "status_code": 404}


def test_other_errors_share_the_base():
    """Every error derives from PaperboyError."""
    for error_class in (ApplicationError, DispatcherError):
        assert issubclass(error_class, PaperboyError)
