from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, List, Optional, Type, TypeVar

from paperboy.core.base import BaseManager
from paperboy.core.dispatcher import Dispatcher, QtDispatcher
from paperboy.core.result_router import ResultRouter
from paperboy.utils.exceptions import ApplicationError

T = TypeVar('T')


class ApplicationCore:
    """The application core.

    Creates the managers in dependency order, hands out the shared
    services built on top of them and shuts everything down in reverse.
    """

    def __init__(self, config_path: Optional[str] = None, dispatcher: Optional[Dispatcher] = None) -> None:
        """Initialize the application core.

        Args:
            config_path: Optional path to configuration file
            dispatcher: UI-thread dispatcher; a ``QtDispatcher`` is created when omitted
        """
        self._config_path = config_path
        self._dispatcher = dispatcher
        self._managers: Dict[str, BaseManager] = {}
        self._init_order: List[str] = []
        self._services: Dict[str, Any] = {}
        self._router: Optional[ResultRouter] = None
        self._initialized = False
        self._logger: Optional[logging.Logger] = None

    def initialize(self) -> None:
        """Initialize the application core.

        Raises:
            ApplicationError: If initialization fails
        """
        try:
            self._init_config_manager()
            self._init_logging_manager()
            self._init_dispatcher()
            self._init_task_executor()

            self._initialized = True

            if self._logger:
                self._logger.info('Paperboy initialization complete')

        except Exception as e:
            if self._logger:
                self._logger.error(f'Failed to initialize Paperboy: {str(e)}', exc_info=True)
            else:
                print(f'Failed to initialize Paperboy: {str(e)}')
                traceback.print_exc()

            self._shutdown_managers()
            raise ApplicationError(f'Failed to initialize application: {str(e)}') from e

    def _register(self, name: str, manager: BaseManager) -> None:
        manager.initialize()
        self._managers[name] = manager
        self._init_order.append(name)

    def _init_config_manager(self) -> None:
        """Initialize the configuration manager."""
        from paperboy.core.config_manager import ConfigManager

        self._register('config_manager', ConfigManager(config_path=self._config_path))

    def _init_logging_manager(self) -> None:
        """Initialize the logging manager."""
        from paperboy.core.logging_manager import LoggingManager

        logging_manager = LoggingManager(self.get_manager('config_manager'))
        self._register('logging_manager', logging_manager)
        self._logger = logging_manager.get_logger('app_core')

    def _init_dispatcher(self) -> None:
        """Create the dispatcher and the result router in front of it."""
        if self._dispatcher is None:
            self._dispatcher = QtDispatcher()
        self._router = ResultRouter(self._dispatcher, self.get_manager('logging_manager'))

    def _init_task_executor(self) -> None:
        """Initialize the task executor."""
        from paperboy.core.task_executor import TaskExecutor

        task_executor = TaskExecutor(
            self.get_manager('config_manager'),
            self.get_manager('logging_manager'),
            self._router,
        )
        self._register('task_executor', task_executor)

    def get_manager(self, name: str) -> Optional[BaseManager]:
        """Get a manager by name.

        Args:
            name: Manager name

        Returns:
            The manager, or None if it does not exist
        """
        return self._managers.get(name)

    def get_manager_typed(self, name: str, manager_type: Type[T]) -> Optional[T]:
        """Get a manager by name, checking its type.

        Args:
            name: Manager name
            manager_type: Expected manager class

        Returns:
            The manager, or None if it does not exist or has another type
        """
        manager = self._managers.get(name)
        if isinstance(manager, manager_type):
            return manager
        return None

    @property
    def dispatcher(self) -> Optional[Dispatcher]:
        return self._dispatcher

    @property
    def router(self) -> Optional[ResultRouter]:
        return self._router

    def is_initialized(self) -> bool:
        """Check whether the core finished initializing."""
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ApplicationError('Application core not initialized')

    def discovery_service(self) -> Any:
        """Shared ``FeedDiscoveryService`` built from configuration."""
        self._require_initialized()
        if 'feed_discovery' not in self._services:
            from paperboy.services.feed_discovery import FeedDiscoveryService

            self._services['feed_discovery'] = FeedDiscoveryService.from_config(
                self.get_manager('config_manager'), self.get_manager('logging_manager')
            )
        return self._services['feed_discovery']

    def zip_lookup(self) -> Any:
        """Shared ZIP lookup built from configuration."""
        self._require_initialized()
        if 'zip_lookup' not in self._services:
            from paperboy.services.zip_lookup import StaticZipLookup

            self._services['zip_lookup'] = StaticZipLookup.from_config(self.get_manager('config_manager'))
        return self._services['zip_lookup']

    def remote_fetcher(self) -> Any:
        """Shared ``RemoteBytesFetcher`` built from configuration."""
        self._require_initialized()
        if 'remote_bytes' not in self._services:
            from paperboy.services.remote_bytes import RemoteBytesFetcher

            self._services['remote_bytes'] = RemoteBytesFetcher.from_config(
                self.get_manager('config_manager'), self.get_manager('logging_manager')
            )
        return self._services['remote_bytes']

    def shutdown(self) -> None:
        """Shutdown the application core.

        Shuts down all managers in reverse initialization order.

        Raises:
            ApplicationError: If shutdown fails
        """
        if not self._initialized:
            return

        try:
            if self._logger:
                self._logger.info('Shutting down Paperboy')

            fetcher = self._services.get('remote_bytes')
            if fetcher is not None:
                fetcher.close()
            self._services.clear()

            self._shutdown_managers()
            self._initialized = False
        except Exception as e:
            if self._logger:
                self._logger.error(f'Error during shutdown: {str(e)}', exc_info=True)
            raise ApplicationError(f'Failed to shutdown application: {str(e)}') from e

    def _shutdown_managers(self) -> None:
        for name in reversed(self._init_order):
            manager = self._managers.get(name)
            if manager is not None:
                manager.shutdown()
        self._managers.clear()
        self._init_order.clear()

    def status(self) -> Dict[str, Any]:
        """Get status of the application core.

        Returns:
            Status dictionary
        """
        status = {
            'name': 'ApplicationCore',
            'initialized': self._initialized,
            'managers': {},
        }
        for name, manager in self._managers.items():
            try:
                status['managers'][name] = manager.status()
            except Exception as e:
                status['managers'][name] = {'error': f'Failed to get status: {str(e)}'}
        if self._router is not None:
            status['router'] = self._router.stats()
        return status
