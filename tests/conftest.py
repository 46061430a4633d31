"""Pytest configuration and fixtures for Paperboy tests."""

import os
import tempfile
import time
from typing import Callable, Generator, Optional
from unittest.mock import MagicMock

import pytest
import yaml
from PySide6.QtCore import QCoreApplication

from paperboy.core.config_manager import ConfigManager
from paperboy.core.dispatcher import ManualDispatcher
from paperboy.core.result_router import ResultRouter
from paperboy.core.task_executor import TaskExecutor


@pytest.fixture
def temp_config_file() -> Generator[str, None, None]:
    """Create a temporary configuration file for testing."""
    test_config = {
        "app": {"name": "Paperboy Test", "version": "0.1.0", "environment": "testing"},
        "logging": {
            "level": "DEBUG",
            "file": {"enabled": False},
            "console": {"enabled": True, "level": "DEBUG"},
        },
        "thread_pool": {"thread_name_prefix": "test-worker", "join_timeout": 1.0},
        "ui": {"debounce_ms": 20, "slow_lookup_ms": 200},
        "helper": {"name": "rssFinder", "install_bindir": "/opt/paperboy/bin"},
    }

    with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False, mode="w") as tmp:
        yaml.dump(test_config, tmp)
        tmp_path = tmp.name

    yield tmp_path

    try:
        os.unlink(tmp_path)
    except (IOError, OSError):
        pass


@pytest.fixture
def config_manager(temp_config_file: str) -> Generator[ConfigManager, None, None]:
    """Create a ConfigManager instance for testing."""
    manager = ConfigManager(config_path=temp_config_file)
    manager.initialize()
    yield manager
    manager.shutdown()


@pytest.fixture
def logger_manager() -> MagicMock:
    """Create a logger manager that hands out mock loggers."""
    manager = MagicMock()
    manager.get_logger.return_value = MagicMock()
    return manager


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    """The Qt application shared by every test that needs an event loop."""
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def dispatcher() -> ManualDispatcher:
    """A dispatcher drained explicitly by the test thread."""
    return ManualDispatcher()


@pytest.fixture
def router(dispatcher: ManualDispatcher, logger_manager: MagicMock) -> ResultRouter:
    """A result router posting to the manual dispatcher."""
    return ResultRouter(dispatcher, logger_manager)


@pytest.fixture
def executor(config_manager: ConfigManager, logger_manager: MagicMock,
             router: ResultRouter) -> Generator[TaskExecutor, None, None]:
    """An initialized task executor."""
    task_executor = TaskExecutor(config_manager, logger_manager, router)
    task_executor.initialize()
    yield task_executor
    task_executor.shutdown()


@pytest.fixture
def pump(qapp: QCoreApplication, dispatcher: ManualDispatcher) -> Callable[..., bool]:
    """Process Qt events and drain the dispatcher until a condition holds."""

    def _pump(condition: Optional[Callable[[], bool]] = None, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            qapp.processEvents()
            dispatcher.run_pending()
            if condition is not None and condition():
                return True
            if time.monotonic() >= deadline:
                return condition is None
            time.sleep(0.005)

    return _pump
