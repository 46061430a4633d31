from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class PaperboyError(Exception):
    """Base exception for all Paperboy errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            details: Structured error information
            **kwargs: Additional error information merged into ``details``
        """
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.details.update({k: v for k, v in kwargs.items() if v is not None})
        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message}"


class ManagerError(PaperboyError):
    """Base exception for manager-related errors."""

    def __init__(self, message: str, manager_name: Optional[str] = None, **kwargs: Any) -> None:
        """
        Initialize manager error.

        Args:
            message: Error message
            manager_name: Name of the affected manager
            **kwargs: Additional error information
        """
        super().__init__(message, manager_name=manager_name, **kwargs)
        self.manager_name = manager_name

    def __str__(self) -> str:
        """String representation."""
        if self.manager_name:
            return f"{self.message} (Manager: {self.manager_name})"
        return super().__str__()


class ManagerInitializationError(ManagerError):
    """Exception raised when a manager fails to initialize."""

    pass


class ManagerShutdownError(ManagerError):
    """Exception raised when a manager fails to shut down cleanly."""

    pass


class ConfigurationError(PaperboyError):
    """Exception raised for configuration-related errors."""

    def __init__(
            self, message: str, *, config_key: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: A descriptive error message.
            config_key: The configuration key that caused the error.
            **kwargs: Additional error information.
        """
        super().__init__(message, config_key=config_key, **kwargs)
        self.config_key = config_key


class TaskExecutorError(ManagerError):
    """Error raised by the task executor itself, never by submitted work."""

    def __init__(self, message: str, task_id: Optional[str] = None, **kwargs: Any) -> None:
        """
        Initialize task executor error.

        Args:
            message: Error message
            task_id: Identifier of the affected task
            **kwargs: Additional error information
        """
        super().__init__(message, manager_name="task_executor", task_id=task_id, **kwargs)
        self.task_id = task_id

    def __str__(self) -> str:
        """String representation."""
        if self.task_id:
            return f"{self.message} (Task: {self.task_id})"
        return super().__str__()


class DispatcherError(PaperboyError):
    """Error raised when a closure cannot be posted to the UI thread."""

    pass


class HelperLaunchError(PaperboyError):
    """Raised when an external helper process cannot be started at all."""

    def __init__(
            self,
            message: str,
            *,
            helper: Optional[str] = None,
            argv: Optional[Sequence[str]] = None,
            **kwargs: Any,
    ) -> None:
        """Initialize a HelperLaunchError.

        Args:
            message: A descriptive error message.
            helper: Logical name of the helper executable.
            argv: The argument vector that failed to launch.
            **kwargs: Additional error information.
        """
        super().__init__(message, helper=helper, argv=list(argv) if argv else None, **kwargs)
        self.helper = helper


class NetworkError(PaperboyError):
    """Exception raised when remote bytes cannot be fetched."""

    def __init__(
            self,
            message: str,
            *,
            url: Optional[str] = None,
            status_code: Optional[int] = None,
            **kwargs: Any,
    ) -> None:
        """Initialize a NetworkError.

        Args:
            message: A descriptive error message.
            url: The URL being fetched.
            status_code: The HTTP status code, if a response was received.
            **kwargs: Additional error information.
        """
        super().__init__(message, url=url, status_code=status_code, **kwargs)
        self.url = url
        self.status_code = status_code


class ApplicationError(PaperboyError):
    """Exception raised when the application core cannot start or stop."""

    pass
