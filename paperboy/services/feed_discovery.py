from __future__ import annotations

"""
Local feed discovery through the external helper.

The helper is invoked as ``<helper> --query <city>``. It prints one
``Found feed: <url>`` line per feed it reports and appends the URLs it
discovered to ``<user-config-dir>/paperboy/local_feeds``. Everything in
``FeedDiscoveryService`` runs on a worker thread; the report it returns is
plain immutable data for the UI thread.
"""

import logging
import os
import pathlib
import threading
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from PySide6.QtCore import QStandardPaths

from paperboy.core.process_locator import ExternalProcessLocator
from paperboy.core.subprocess_runner import SubprocessResult, SubprocessRunner
from paperboy.utils.exceptions import HelperLaunchError

FOUND_FEED_PREFIX = 'Found feed:'
SUPPORTED_SCHEMES = ('http://', 'https://', 'file://')

logger = logging.getLogger('feed_discovery')


def normalize_query(query: str) -> str:
    """Strip the query and keep only the city part of ``"City, State"``."""
    q = query.strip()
    comma = q.find(',')
    if comma > 0:
        q = q[:comma].strip()
    return q


def count_reported_feeds(stdout: str) -> int:
    """Count ``Found feed:`` lines in helper output."""
    return sum(1 for line in stdout.split('\n') if line.startswith(FOUND_FEED_PREFIX))


def parse_feed_file(text: str) -> Tuple[str, ...]:
    """
    Parse discovered-feed file contents.

    Blank lines are ignored. Entries containing spaces or using a scheme
    other than http, https or file are skipped with a warning.

    Args:
        text: File contents, one URL per line

    Returns:
        The URLs in file order
    """
    feeds = []
    for line in text.split('\n'):
        url = line.strip()
        if not url:
            continue
        if ' ' in url or not url.startswith(SUPPORTED_SCHEMES):
            logger.warning(f"Skipping malformed or unsupported discovered feed: {url}")
            continue
        feeds.append(url)
    return tuple(feeds)


def summarize(helper_name: str, result: SubprocessResult) -> str:
    """
    User-facing summary of one helper run.

    Args:
        helper_name: Name shown to the user
        result: Captured helper result

    Returns:
        Summary message
    """
    stdout = result.stdout_text()
    stderr = result.stderr_text()

    if result.exit_status == 0:
        message = f"Discovery finished. {count_reported_feeds(stdout)} feeds reported."
        if stderr:
            message += f"\n\nErrors:\n{stderr}"
        return message

    message = f"{helper_name} failed (status {result.exit_status})."
    if stderr:
        message += f"\n\n{stderr}"
    if stdout:
        message += f"\n\nOutput:\n{stdout}"
    return message


def default_config_dir() -> str:
    """The per-user configuration directory (``$XDG_CONFIG_HOME`` on Linux)."""
    location = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.GenericConfigLocation)
    return location or os.path.join(os.path.expanduser('~'), '.config')


@dataclass(frozen=True)
class DiscoveryReport:
    """Result of one discovery run."""

    query: str
    ok: bool
    summary: str
    feeds: Tuple[str, ...] = ()
    exit_status: Optional[int] = None

    @property
    def feed_count(self) -> int:
        """Number of feeds read back from the feed file."""
        return len(self.feeds)

    def render(self) -> str:
        """Summary followed by the list of discovered feeds."""
        if not self.feeds:
            return self.summary
        lines = ''.join(f"- {url}\n" for url in self.feeds)
        return f"{self.summary}\n\nDiscovered feeds:\n{lines}"


class FeedDiscoveryService:
    """Runs the discovery helper and collects what it found."""

    def __init__(self,
                 locator: ExternalProcessLocator,
                 runner: SubprocessRunner,
                 feeds_file: pathlib.Path,
                 helper_name: str = 'rssFinder',
                 logger_: Optional[Any] = None) -> None:
        """
        Initialize the service.

        Args:
            locator: Helper executable locator
            runner: Process runner
            feeds_file: Path of the discovered-feed file the helper writes
            helper_name: Logical helper executable name
            logger_: Logger to use
        """
        self._locator = locator
        self._runner = runner
        self._run_lock = threading.Lock()
        self._feeds_file = pathlib.Path(feeds_file)
        self._helper_name = helper_name
        self._logger = logger_ or logger

    @classmethod
    def from_config(cls, config_manager: Any, logger_manager: Any) -> FeedDiscoveryService:
        """Build the service from the ``helper`` and ``discovery`` sections."""
        helper_config = config_manager.get('helper', {})
        discovery_config = config_manager.get('discovery', {})

        config_dir = discovery_config.get('config_dir') or default_config_dir()
        feeds_file = pathlib.Path(config_dir) / discovery_config.get('app_dir_name', 'paperboy') / \
            discovery_config.get('feeds_file_name', 'local_feeds')

        return cls(
            locator=ExternalProcessLocator.from_config(config_manager, logger_manager),
            runner=SubprocessRunner(
                timeout=helper_config.get('timeout'),
                logger=logger_manager.get_logger('subprocess_runner'),
            ),
            feeds_file=feeds_file,
            helper_name=helper_config.get('name', 'rssFinder'),
            logger_=logger_manager.get_logger('feed_discovery'),
        )

    @property
    def feeds_file(self) -> pathlib.Path:
        """Path of the discovered-feed file."""
        return self._feeds_file

    @property
    def helper_name(self) -> str:
        """Logical helper executable name."""
        return self._helper_name

    def discover(self, query: str) -> DiscoveryReport:
        """
        Run the helper for ``query`` and read back the feeds it found.

        Blocking; runs on a worker thread.

        Args:
            query: Location as typed or resolved, e.g. ``"San Francisco, CA"``

        Returns:
            The discovery report; launch failures are reported, not raised
        """
        q = normalize_query(query)
        if not q:
            return DiscoveryReport(query=q, ok=False, summary='No location given; nothing to discover.')

        # Runs share one feed file; clear, run and read must not interleave.
        with self._run_lock:
            self.clear_feed_file()

            target = self._locator.locate(self._helper_name)
            try:
                result = self._runner.run(target, ['--query', q])
            except HelperLaunchError as e:
                self._logger.warning(f"Could not run {self._helper_name}: {e.message}")
                return DiscoveryReport(
                    query=q,
                    ok=False,
                    summary=f"Error running {self._helper_name}: {e.message}",
                )

            feeds = self.read_feed_file()
        self._logger.info(
            f"{self._helper_name} finished for {q!r} with status {result.exit_status}",
            extra={'feed_count': len(feeds)},
        )
        return DiscoveryReport(
            query=q,
            ok=result.ok,
            summary=summarize(self._helper_name, result),
            feeds=feeds,
            exit_status=result.exit_status,
        )

    def clear_feed_file(self) -> None:
        """Remove results of a previous run so the file reflects only the next one."""
        try:
            self._feeds_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self._logger.warning(f"Could not remove {self._feeds_file}: {e}")

    def read_feed_file(self) -> Tuple[str, ...]:
        """Parse the discovered-feed file, empty when the helper wrote none."""
        try:
            text = self._feeds_file.read_text(encoding='utf-8', errors='replace')
        except FileNotFoundError:
            return ()
        except OSError as e:
            self._logger.warning(f"Could not read {self._feeds_file}: {e}")
            return ()
        return parse_feed_file(text)
