"""
Build Tool Runner - Maven compilation

Responsibilities:
- Generate a minimal pom.xml if the project has none
- Optionally patch the pom so resources are packaged (auto_fix)
- Run the build tool and capture its output
- Locate the produced JAR

Failures never raise: every outcome is a BuildResult. Only the orchestrator
decides whether a failed build is terminal.
"""
import os
import shlex
import subprocess
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pluginforge.config import (
    BUILD_COMMAND,
    BUILD_TIMEOUT,
    BUILD_DESCRIPTOR,
    BUILD_OUTPUT_DIR,
    BUILD_LOG_FILE,
)
from pluginforge.errors import BuildError
from pluginforge.schemas import BuildResult
from pluginforge.core.diagnostics import DiagnosticExtractor
from pluginforge.tools.pom_tool import derive_coordinates, generate_minimal_pom, ensure_resources_declared

logger = logging.getLogger(__name__)

SIDE_ARTIFACT_SUFFIXES = ("-sources.jar", "-javadoc.jar", "-shaded.jar", "-tests.jar")


class BuildToolRunner:
    """
    BuildToolRunner - Runs Maven (or any configured command) against a project root
    """

    def __init__(
        self,
        command: Union[str, Sequence[str]] = BUILD_COMMAND,
        timeout: float = BUILD_TIMEOUT,
        diagnostics: Optional[DiagnosticExtractor] = None,
    ):
        self.command: List[str] = shlex.split(command) if isinstance(command, str) else list(command)
        self.timeout = timeout
        self.diagnostics = diagnostics or DiagnosticExtractor()

    def build(self, root: Path, auto_fix: bool = True) -> BuildResult:
        """
        Build the project at root

        Args:
            root: Project root
            auto_fix: Apply structural pom fixes before building. The
                recompile-only path passes False.

        Returns:
            BuildResult (success is exit-code based)

        Raises:
            BuildError: If root does not exist
        """
        root = Path(root)
        if not root.is_dir():
            raise BuildError(f"Project directory not found: {root}")

        group_id, artifact_id = derive_coordinates(root.name)
        if generate_minimal_pom(root, group_id, artifact_id)["status"] == "success":
            logger.info(f"[Builder] No {BUILD_DESCRIPTOR} found; generated a minimal one")
        if auto_fix and ensure_resources_declared(root / BUILD_DESCRIPTOR):
            logger.info("[Builder] Patched resources section before building")

        logger.info(f"[Builder] Running: {' '.join(self.command)} (timeout {self.timeout:g}s)")
        try:
            result = subprocess.run(
                self.command,
                cwd=root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, "MAVEN_OPTS": os.environ.get("MAVEN_OPTS", "-Xmx1024m")},
            )
        except subprocess.TimeoutExpired as e:
            raw_log = self._decode(e.stdout) + self._decode(e.stderr)
            raw_log += f"\n[ERROR] Build timed out after {self.timeout:g} seconds"
            logger.warning(f"[Builder] ✗ Build timed out after {self.timeout:g}s")
            return self._failed(root, raw_log, exit_code=None, timed_out=True)
        except OSError as e:
            # Build tool not installed or not executable
            raw_log = f"[ERROR] Could not start build tool '{self.command[0]}': {e}"
            logger.error(f"[Builder] ✗ {raw_log}")
            return self._failed(root, raw_log, exit_code=None)

        raw_log = (result.stdout or "") + (result.stderr or "")
        self._write_log(root, raw_log)

        if result.returncode != 0:
            logger.warning(f"[Builder] ✗ Build failed with exit code {result.returncode}")
            return BuildResult(
                success=False,
                raw_log=raw_log,
                diagnostics=self.diagnostics.extract(raw_log),
                exit_code=result.returncode,
            )

        jar_path = self.find_jar(root)
        if jar_path is None:
            logger.warning(f"[Builder] ✗ Build succeeded but no JAR found in {BUILD_OUTPUT_DIR}/")
            return BuildResult(
                success=False,
                raw_log=raw_log,
                diagnostics=f"[ERROR] Build finished but no JAR was produced in {BUILD_OUTPUT_DIR}/",
                exit_code=result.returncode,
            )

        logger.info(f"[Builder] ✓ Build successful: {jar_path.name}")
        return BuildResult(success=True, artifact_path=str(jar_path), raw_log=raw_log, exit_code=0)

    def find_jar(self, root: Path) -> Optional[Path]:
        """Newest primary JAR in the build output directory, excluding side artifacts"""
        output_dir = Path(root) / BUILD_OUTPUT_DIR
        if not output_dir.is_dir():
            return None

        jar_files = [
            f for f in output_dir.glob("*.jar")
            if not f.name.endswith(SIDE_ARTIFACT_SUFFIXES) and not f.name.startswith("original-")
        ]
        if not jar_files:
            return None
        return max(jar_files, key=lambda f: f.stat().st_mtime)

    def _failed(self, root: Path, raw_log: str, exit_code: Optional[int], timed_out: bool = False) -> BuildResult:
        self._write_log(root, raw_log)
        return BuildResult(
            success=False,
            raw_log=raw_log,
            diagnostics=self.diagnostics.extract(raw_log),
            exit_code=exit_code,
            timed_out=timed_out,
        )

    @staticmethod
    def _write_log(root: Path, raw_log: str) -> None:
        try:
            (root / BUILD_LOG_FILE).write_text(raw_log, encoding="utf-8")
        except OSError as e:
            logger.warning(f"[Builder] Could not write {BUILD_LOG_FILE}: {e}")

    @staticmethod
    def _decode(output) -> str:
        if output is None:
            return ""
        if isinstance(output, bytes):
            return output.decode("utf-8", errors="replace")
        return output


__all__ = ["BuildToolRunner"]
