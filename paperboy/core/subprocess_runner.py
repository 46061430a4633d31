from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from paperboy.core.process_locator import Located, PathSearch
from paperboy.utils.exceptions import HelperLaunchError


@dataclass(frozen=True)
class SubprocessResult:
    """Exit status and captured output of a finished process."""

    exit_status: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        """Whether the process exited with status 0."""
        return self.exit_status == 0

    def stdout_text(self) -> str:
        """Captured stdout decoded as UTF-8."""
        return self.stdout.decode('utf-8', errors='replace')

    def stderr_text(self) -> str:
        """Captured stderr decoded as UTF-8."""
        return self.stderr.decode('utf-8', errors='replace')


class SubprocessRunner:
    """
    Runs a process to completion and captures its output.

    Blocking; call it from worker threads only. A non-zero exit status is
    reported in the result. Only a process that cannot be started at all
    raises ``HelperLaunchError``.
    """

    def __init__(self,
                 timeout: Optional[float] = None,
                 env: Optional[Mapping[str, str]] = None,
                 logger: Optional[Any] = None) -> None:
        """
        Initialize the runner.

        Args:
            timeout: Seconds before the process is killed, None to wait forever
            env: Extra environment variables for the child
            logger: Logger to use
        """
        self._timeout = timeout
        self._env = dict(env) if env else None
        self._logger = logger or logging.getLogger('subprocess_runner')

    def build_argv(self, target: Located, args: Sequence[str]) -> List[str]:
        """Argument vector for ``target``; a ``PathSearch`` uses the bare name."""
        program = target.name if isinstance(target, PathSearch) else target
        return [program, *args]

    def run(self, target: Located, args: Sequence[str] = ()) -> SubprocessResult:
        """
        Run ``target`` with ``args`` and wait for it to exit.

        Args:
            target: Located path, or ``PathSearch`` to search the execution PATH
            args: Command line arguments

        Returns:
            Exit status and captured stdout/stderr

        Raises:
            HelperLaunchError: If the process could not be started
        """
        if threading.current_thread() is threading.main_thread():
            self._logger.warning('SubprocessRunner.run called on the main thread; this blocks the UI')

        argv = self.build_argv(target, args)
        helper = argv[0] if isinstance(target, str) else target.name
        self._logger.debug(f"Running {' '.join(argv)}")

        try:
            completed = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                check=False,
                timeout=self._timeout,
                env=self._child_env(),
            )
        except FileNotFoundError as e:
            raise HelperLaunchError(
                f"{helper} not found",
                helper=helper,
                argv=argv,
            ) from e
        except PermissionError as e:
            raise HelperLaunchError(
                f"{helper} is not executable",
                helper=helper,
                argv=argv,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise HelperLaunchError(
                f"{helper} did not finish within {self._timeout} seconds",
                helper=helper,
                argv=argv,
            ) from e
        except OSError as e:
            raise HelperLaunchError(
                f"Failed to spawn {helper}: {e.strerror or e}",
                helper=helper,
                argv=argv,
            ) from e

        result = SubprocessResult(
            exit_status=completed.returncode,
            stdout=completed.stdout or b'',
            stderr=completed.stderr or b'',
        )
        self._logger.debug(
            f"{helper} exited with status {result.exit_status}",
            extra={'stdout_len': len(result.stdout), 'stderr_len': len(result.stderr)},
        )
        return result

    def _child_env(self) -> Optional[Dict[str, str]]:
        if self._env is None:
            return None
        env = dict(os.environ)
        env.update(self._env)
        return env
