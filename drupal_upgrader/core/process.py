"""External command execution.

Every interaction with Composer, Drush, PHPStan and tar goes through
:class:`ProcessRunner`. Calls block until the process exits; standard
output and standard error are read concurrently with a selector (no
threads), relayed line by line to the progress reporter and the
per-tool logger, and returned together with the exit status.

A timeout kills the process and is reported exactly like a failure:
:class:`~drupal_upgrader.exceptions.ExternalCommandError`.
"""

from __future__ import annotations

import codecs
import logging
import os
import selectors
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from drupal_upgrader.exceptions import ExternalCommandError
from drupal_upgrader.utils.logger import get_logger, get_tool_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.process")

_READ_SIZE = 8192

#: Environment added to every command; stdin is always closed.
DEFAULT_ENV: Mapping[str, str] = {"COMPOSER_NO_INTERACTION": "1"}


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one finished command.

    Attributes:
        command: Argument vector that was executed.
        returncode: Exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock seconds.
    """

    command: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def combined_output(self) -> str:
        """Standard output followed by standard error."""
        return self.stdout + self.stderr


class ProcessRunner:
    """Runs external commands in the project directory.

    Args:
        cwd: Working directory for every command.
        reporter: Receives each output line; when ``None`` output is only
            logged.
        env: Extra environment variables layered over ``os.environ``.
    """

    def __init__(
        self,
        cwd: Path,
        *,
        reporter: Optional[ProgressReporter] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.cwd = Path(cwd)
        self.reporter = reporter
        self.env: Dict[str, str] = dict(DEFAULT_ENV)
        if env:
            self.env.update(env)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        command: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``command`` to completion and return its result.

        A non-zero exit status is *not* an error here; see
        :meth:`run_checked`.

        Raises:
            ExternalCommandError: The executable cannot be started or the
                timeout expired.
        """
        argv = tuple(str(part) for part in command)
        logger.debug("Running %s (cwd=%s, timeout=%s)", " ".join(argv), self.cwd, timeout)
        started = time.monotonic()

        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(self.cwd),
                env={**os.environ, **self.env},
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise ExternalCommandError(
                f"Cannot execute {argv[0]}: {exc.strerror or exc}",
                command=argv,
            ) from exc

        stdout, stderr = self._communicate(proc, argv, timeout)
        duration = time.monotonic() - started

        logger.debug("%s exited with %d after %.1fs", argv[0], proc.returncode, duration)
        return CommandResult(
            command=argv,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
        )

    def run_checked(
        self,
        command: Sequence[str],
        *,
        error_message: str,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``command`` and raise if it does not exit with status 0.

        Args:
            error_message: Message prefix of the raised error; the tool's
                standard error is appended verbatim.

        Raises:
            ExternalCommandError: Non-zero exit, timeout, or missing
                executable.
        """
        result = self.run(command, timeout=timeout)
        if not result.succeeded:
            raise ExternalCommandError(
                error_message,
                command=result.command,
                returncode=result.returncode,
                stderr=result.stderr or result.stdout,
            )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _communicate(
        self,
        proc: "subprocess.Popen[bytes]",
        argv: Tuple[str, ...],
        timeout: Optional[float],
    ) -> Tuple[str, str]:
        deadline = time.monotonic() + timeout if timeout else None
        tool_logger = get_tool_logger(argv[0])

        buffers: Dict[str, List[str]] = {"stdout": [], "stderr": []}
        pending: Dict[str, str] = {name: "" for name in buffers}
        decoders = {
            name: codecs.getincrementaldecoder("utf-8")(errors="replace")
            for name in buffers
        }

        with selectors.DefaultSelector() as selector:
            assert proc.stdout is not None and proc.stderr is not None
            selector.register(proc.stdout, selectors.EVENT_READ, "stdout")
            selector.register(proc.stderr, selectors.EVENT_READ, "stderr")

            while selector.get_map():
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        self._kill(proc)
                        raise self._timeout_error(argv, timeout, buffers["stderr"])

                for key, _ in selector.select(remaining):
                    name = key.data
                    chunk = os.read(key.fd, _READ_SIZE)
                    if not chunk:
                        selector.unregister(key.fileobj)
                        text = decoders[name].decode(b"", final=True)
                    else:
                        text = decoders[name].decode(chunk)
                    if text:
                        buffers[name].append(text)
                    # Relay whole lines only; keep a trailing fragment for the next read
                    lines = (pending[name] + text).split("\n")
                    pending[name] = lines.pop() if chunk else ""
                    self._relay(tool_logger, lines)

        proc.stdout.close()
        proc.stderr.close()
        # Both streams are closed; the process may still be running
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
        try:
            proc.wait(timeout=remaining)
        except subprocess.TimeoutExpired as exc:
            self._kill(proc)
            raise self._timeout_error(argv, timeout, buffers["stderr"]) from exc
        return "".join(buffers["stdout"]), "".join(buffers["stderr"])

    def _relay(self, tool_logger: logging.Logger, lines: List[str]) -> None:
        for line in lines:
            line = line.rstrip("\r")
            if not line.strip():
                continue
            tool_logger.debug(line)
            if self.reporter is not None:
                self.reporter.output(line)

    @staticmethod
    def _timeout_error(
        argv: Tuple[str, ...], timeout: Optional[float], stderr: List[str]
    ) -> ExternalCommandError:
        return ExternalCommandError(
            f"{argv[0]} timed out after {timeout:g} seconds",
            command=argv,
            stderr="".join(stderr),
            timed_out=True,
        )

    @staticmethod
    def _kill(proc: "subprocess.Popen[bytes]") -> None:
        proc.kill()
        try:
            proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", proc.pid)
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                stream.close()
