"""Wrappers around the external tools: ``erlc`` (Core Erlang) and Graphviz ``dot``."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from xref_grapher.exceptions import CompileError

logger = logging.getLogger(__name__)

ERLC_TIMEOUT = 120  # seconds per source file
DOT_TIMEOUT = 300


class ErlcCompiler:
    """
    Compile one ``.erl`` file to Core Erlang.

    Runs ``erlc +to_core -o <dir> <file>`` so the ``.core`` file lands next
    to its source.
    """

    def __init__(self, executable: str = "erlc", timeout: int = ERLC_TIMEOUT) -> None:
        self._executable = executable
        self._timeout = timeout

    @property
    def executable(self) -> str:
        return self._executable

    def compile(self, source: str | Path) -> Path:
        """Compile ``source`` and return the path of the produced ``.core`` file.

        Raises:
            CompileError: non-zero exit, timeout, missing erlc, or no output file.
        """
        src = Path(source)
        out_dir = src.parent
        cmd = [self._executable, "+to_core", "-o", str(out_dir), str(src)]

        logger.debug("Running erlc: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            raise CompileError(str(src), None, f"erlc timed out after {self._timeout}s")
        except FileNotFoundError:
            raise CompileError(str(src), None, f"{self._executable} not found")

        if result.returncode != 0:
            output = result.stderr or result.stdout or ""
            raise CompileError(str(src), result.returncode, output[-2000:])

        core_path = out_dir / f"{src.stem}.core"
        if not core_path.exists():
            raise CompileError(str(src), result.returncode, f"erlc did not produce {core_path}")
        return core_path

    def check_prerequisites(self) -> list[str]:
        """Return missing prerequisites (empty = can run)."""
        if shutil.which(self._executable) is None:
            return [f"{self._executable} not found on PATH (install Erlang/OTP)"]
        return []


class DotRenderer:
    """
    Lay out a DOT file as an image with Graphviz.

    Fire-and-forget: failures are logged, never raised.
    """

    def __init__(
        self,
        executable: str = "dot",
        fmt: str = "png",
        timeout: int = DOT_TIMEOUT,
    ) -> None:
        self._executable = executable
        self._fmt = fmt
        self._timeout = timeout

    def render(self, dot_path: str | Path, image_path: str | Path) -> int | None:
        """Run ``dot -T<fmt> dot_path -o image_path``.

        Returns:
            The exit status, or None if dot could not be run at all.
        """
        cmd = [self._executable, f"-T{self._fmt}", str(dot_path), "-o", str(image_path)]
        logger.debug("Running dot: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("dot timed out after %ds on %s", self._timeout, dot_path)
            return None
        except FileNotFoundError:
            logger.warning("%s not found; image not rendered", self._executable)
            return None

        if result.returncode != 0:
            logger.warning(
                "dot exited with %d: %s",
                result.returncode,
                result.stderr[-2000:] if result.stderr else "",
            )
        return result.returncode

    def check_prerequisites(self) -> list[str]:
        if shutil.which(self._executable) is None:
            return [f"{self._executable} not found on PATH (install Graphviz)"]
        return []
