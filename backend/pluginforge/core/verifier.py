"""
Artifact Verifier - Checks the packaged JAR for host-required entries

Missing entries are warnings, never failures: the build still counts as
successful.
"""
import logging
import warnings
import zipfile
from pathlib import Path
from typing import Sequence

from pluginforge.config import REQUIRED_ARTIFACT_ENTRIES
from pluginforge.errors import VerificationWarning
from pluginforge.schemas import VerificationReport

logger = logging.getLogger(__name__)


class ArtifactVerifier:
    """Lists a JAR's entries and reports which required ones are missing"""

    def verify(
        self,
        artifact_path: Path,
        required_entries: Sequence[str] = REQUIRED_ARTIFACT_ENTRIES,
    ) -> VerificationReport:
        artifact_path = Path(artifact_path)
        report = VerificationReport(artifact_path=str(artifact_path))

        try:
            with zipfile.ZipFile(artifact_path) as jar:
                report.entries = jar.namelist()
        except (zipfile.BadZipFile, OSError) as e:
            report.missing = list(required_entries)
            self._warn(report, f"Cannot read artifact {artifact_path.name}: {e}")
            return report

        # Resources are packaged at the JAR root
        present = set(report.entries)
        report.missing = [entry for entry in required_entries if entry not in present]
        for entry in report.missing:
            self._warn(report, f"{entry} not found in {artifact_path.name}")

        if not any(name.endswith(".class") for name in report.entries):
            self._warn(report, f"No compiled classes found in {artifact_path.name}")

        if report.complete:
            logger.info(f"[Verifier] ✓ {artifact_path.name} contains {', '.join(required_entries)}")
        return report

    @staticmethod
    def _warn(report: VerificationReport, message: str) -> None:
        report.warnings.append(message)
        logger.warning(f"[Verifier] ⚠ {message}")
        warnings.warn(message, VerificationWarning, stacklevel=3)


__all__ = ["ArtifactVerifier"]
