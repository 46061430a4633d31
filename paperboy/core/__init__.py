"""Core package containing the managers and the UI-thread coordination primitives."""

from paperboy.core.app import ApplicationCore
from paperboy.core.base import BaseManager, PaperboyManager
from paperboy.core.config_manager import ConfigManager
from paperboy.core.debouncer import Debouncer
from paperboy.core.dispatcher import Dispatcher, ManualDispatcher, QtDispatcher
from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.logging_manager import LoggingManager
from paperboy.core.process_locator import ExternalProcessLocator, PathSearch
from paperboy.core.result_router import ResultRouter
from paperboy.core.subprocess_runner import SubprocessResult, SubprocessRunner
from paperboy.core.task_executor import TaskExecutor, TaskHandle, TaskOutcome, TaskStatus
