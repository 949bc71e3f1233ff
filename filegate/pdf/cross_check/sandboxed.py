import sys
from pathlib import Path

from filegate.pdf.cross_check.base import BasePageCounter
from filegate.pdf.cross_check.exceptions import PageCountError
from filegate.sandbox.process_sandbox import ProcessSandbox

RUNNER_MODULE = "filegate.pdf.cross_check.runner"


class SandboxedPageCounter(BasePageCounter):
    """Runs an in-process counter in a child interpreter under the sandbox timeout.

    The native parser never touches the worker's memory, and a hostile file
    that hangs it is killed like any other external tool.
    """

    def __init__(self, engine: str, sandbox: ProcessSandbox, python: str = sys.executable) -> None:
        self.name = engine
        self._sandbox = sandbox
        self._python = python

    def count_pages(self, path: Path) -> int:
        result = self._sandbox.run([self._python, "-m", RUNNER_MODULE, self.name, str(path)])
        if result.timed_out:
            raise PageCountError(f"{self.name} timed out")
        if result.exit_code != 0:
            detail = result.stderr[:200].decode("utf-8", "replace").strip()
            raise PageCountError(f"{self.name} exited {result.exit_code}: {detail}")
        try:
            return int(result.stdout.strip())
        except ValueError as exc:
            raise PageCountError(f"{self.name} printed no page count") from exc
