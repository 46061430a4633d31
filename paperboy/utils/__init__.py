"""Utility functions and classes for Paperboy."""

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
