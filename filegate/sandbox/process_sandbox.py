import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from filegate.logging.logger import Log
from filegate.pipeline.exceptions import ToolUnavailableError


@dataclass(frozen=True)
class ToolResult:
    """Captured outcome of one external tool invocation."""

    args: tuple[str, ...]
    exit_code: int
    stdout: bytes
    stderr: bytes
    timed_out: bool = False

    def succeeded(self, accepted_codes: frozenset[int] = frozenset({0})) -> bool:
        return not self.timed_out and self.exit_code in accepted_codes


class ProcessSandbox:
    """Runs native codecs and parsers in a separate, time-boxed process.

    Tools get no stdin, a minimal environment and a wall-clock timeout after
    which the child is killed and the run counts as a failure.
    """

    _ENV_KEEP = ("PATH", "LANG", "LC_ALL", "TMPDIR", "PYTHONPATH")

    def __init__(self, default_timeout: float, workdir: Path | None = None) -> None:
        self._default_timeout = default_timeout
        self._workdir = workdir

    def run(self, args: list[str], timeout: float | None = None) -> ToolResult:
        """Execute ``args`` without a shell.

        Raises:
            ToolUnavailableError: if the binary is missing or not executable.
        """
        limit = timeout if timeout is not None else self._default_timeout
        env = {key: os.environ[key] for key in self._ENV_KEEP if key in os.environ}
        try:
            completed = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=limit,
                env=env,
                cwd=self._workdir,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            Log.warning(f"{args[0]} killed after {limit}s timeout")
            return ToolResult(
                args=tuple(args),
                exit_code=-1,
                stdout=exc.stdout or b"",
                stderr=exc.stderr or b"",
                timed_out=True,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ToolUnavailableError(f"cannot execute {args[0]}: {exc}") from exc

        if completed.returncode != 0:
            Log.debug(
                f"{args[0]} exited {completed.returncode}: "
                f"{completed.stderr[:500].decode('utf-8', 'replace')}"
            )
        return ToolResult(
            args=tuple(args),
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
