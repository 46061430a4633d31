from __future__ import annotations

"""
Locating external helper executables.

The helper may live in a source checkout, a build directory, the configured
install prefix or a conventional system directory. Candidates are probed in
that fixed order and the first regular file wins. When nothing matches, the
caller gets a ``PathSearch`` token and the launch step falls back to the
execution ``PATH``.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Union

DEV_TREE_DIRS = ('./tools', 'tools', '../tools', 'build/tools', './build/tools')
BUILD_OUTPUT_DIRS = ('build', './build')
SYSTEM_DIRS = ('/usr/local/bin', '/usr/bin')


@dataclass(frozen=True)
class PathSearch:
    """Invoke the helper by bare name and let the launcher search PATH."""

    name: str


Located = Union[str, PathSearch]


def name_variants(name: str) -> List[str]:
    """The name as given, then its lower-case spelling when that differs."""
    lowered = name.lower()
    return [name] if lowered == name else [name, lowered]


class ExternalProcessLocator:
    """Resolve a helper executable by probing an ordered candidate list."""

    def __init__(self,
                 install_bindir: Optional[str] = None,
                 system_dirs: Sequence[str] = SYSTEM_DIRS,
                 is_file: Callable[[str], bool] = os.path.isfile,
                 logger: Optional[Any] = None) -> None:
        """
        Initialize the locator.

        Args:
            install_bindir: Configured install bindir, empty or None when unset
            system_dirs: Conventional system directories, in priority order
            is_file: Probe returning True for an existing regular file
            logger: Logger to use
        """
        self._install_bindir = install_bindir or None
        self._system_dirs = tuple(system_dirs)
        self._is_file = is_file
        self._logger = logger or logging.getLogger('process_locator')

    @classmethod
    def from_config(cls, config_manager: Any, logger_manager: Any) -> ExternalProcessLocator:
        """Build a locator from the ``helper`` configuration section."""
        helper_config = config_manager.get('helper', {})
        return cls(
            install_bindir=helper_config.get('install_bindir') or None,
            system_dirs=helper_config.get('system_dirs') or SYSTEM_DIRS,
            logger=logger_manager.get_logger('process_locator'),
        )

    def candidates(self, name: str) -> List[str]:
        """
        Every path ``locate`` would probe for ``name``, in probe order.

        Args:
            name: Logical executable name

        Returns:
            Ordered candidate paths
        """
        paths = [os.path.join(directory, name) for directory in DEV_TREE_DIRS]
        paths.extend(os.path.join(directory, name) for directory in BUILD_OUTPUT_DIRS)
        if self._install_bindir:
            paths.extend(os.path.join(self._install_bindir, variant) for variant in name_variants(name))
        for directory in self._system_dirs:
            paths.extend(os.path.join(directory, variant) for variant in name_variants(name))
        return paths

    def locate(self, name: str) -> Located:
        """
        Find the helper called ``name``.

        Probing stops at the first candidate that exists and is a regular
        file. Never raises; a probe that errors counts as a miss.

        Args:
            name: Logical executable name

        Returns:
            The matching path, or ``PathSearch(name)`` when nothing matched
        """
        for candidate in self.candidates(name):
            try:
                found = self._is_file(candidate)
            except OSError:
                found = False
            if found:
                self._logger.debug(f"Using {name} at {candidate}")
                return candidate

        self._logger.debug(f"{name} not found in candidates; falling back to PATH search")
        return PathSearch(name)
