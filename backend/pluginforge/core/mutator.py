"""
File Tree Mutator - Applies oracle file actions to a project root

Responsibilities:
- Apply a batch of FileActions in category order:
  renames (deepest parent first) -> deletes -> creates -> modifies
- Isolate failures per action (best-effort, not atomic)
- Copy plugin.yml / config.yml into src/main/resources when they were
  written somewhere else
- Make sure pom.xml packages src/main/resources
"""
import shutil
import logging
from pathlib import Path
from typing import List, Sequence

from pluginforge.config import BUILD_DESCRIPTOR, RESOURCES_DIR, REQUIRED_ARTIFACT_ENTRIES
from pluginforge.errors import MutationError
from pluginforge.schemas import (
    CreateFile,
    ModifyFile,
    DeleteFile,
    RenameFile,
    FileAction,
    MutationReport,
)
from pluginforge.tools.pom_tool import ensure_resources_declared

logger = logging.getLogger(__name__)

# Places the oracle tends to put resources instead of src/main/resources
MISPLACED_RESOURCE_DIRS = ("", "resources", "src/resources")


class FileTreeMutator:
    """
    FileTreeMutator - Writes, deletes and renames files under a project root
    """

    def __init__(self, resource_files: Sequence[str] = REQUIRED_ARTIFACT_ENTRIES):
        self.resource_files = tuple(resource_files)

    def apply(self, actions: List[FileAction], root: Path) -> MutationReport:
        """
        Apply a batch of file actions

        Args:
            actions: Batch produced by the oracle or the fallback generator
            root: Project root

        Returns:
            MutationReport; applied counts only actions that succeeded
        """
        root = Path(root)
        root.mkdir(parents=True, exist_ok=True)
        report = MutationReport()

        renames = [a for a in actions if isinstance(a, RenameFile)]
        renames.sort(key=lambda a: len(Path(a.old_path).parts), reverse=True)
        ordered = (
            renames
            + [a for a in actions if isinstance(a, DeleteFile)]
            + [a for a in actions if isinstance(a, CreateFile)]
            + [a for a in actions if isinstance(a, ModifyFile)]
        )

        for action in ordered:
            try:
                self._apply_one(action, root)
                report.applied += 1
            except (MutationError, OSError, UnicodeError) as e:
                report.failed += 1
                logger.warning(f"[Mutator] Skipped {action.kind} action: {e}")

        logger.info(f"[Mutator] Applied {report.applied}/{len(ordered)} actions ({report.failed} failed)")

        corrected = self.correct_resource_locations(root)
        if corrected:
            report.corrected_files.extend(corrected)
            report.needs_recompilation = True

        if ensure_resources_declared(root / BUILD_DESCRIPTOR):
            report.corrected_files.append(BUILD_DESCRIPTOR)
            report.needs_recompilation = True

        return report

    def correct_resource_locations(self, root: Path) -> List[str]:
        """
        Copy (not move) misplaced manifest/settings files into src/main/resources

        Returns:
            Relative paths of the files that were copied into place
        """
        root = Path(root)
        resources = root / RESOURCES_DIR
        corrected = []

        for name in self.resource_files:
            if (resources / name).exists():
                continue
            for directory in MISPLACED_RESOURCE_DIRS:
                candidate = root / directory / name
                if candidate.is_file():
                    resources.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(candidate, resources / name)
                    rel = f"{RESOURCES_DIR}/{name}"
                    logger.info(f"[Mutator] Copied misplaced {candidate.relative_to(root).as_posix()} to {rel}")
                    corrected.append(rel)
                    break

        return corrected

    def _apply_one(self, action: FileAction, root: Path) -> None:
        if isinstance(action, RenameFile):
            source = self._resolve(root, action.old_path)
            target = self._resolve(root, action.new_path)
            if not source.exists():
                raise MutationError(f"rename source does not exist: {action.old_path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            source.replace(target)

        elif isinstance(action, DeleteFile):
            target = self._resolve(root, action.path)
            if target.is_dir():
                raise MutationError(f"refusing to delete a directory: {action.path}")
            if not target.exists():
                raise MutationError(f"file to delete does not exist: {action.path}")
            target.unlink()

        else:
            # Create and Modify are both whole-file writes. Content is encoded
            # before the target is opened, so an unencodable payload leaves it intact
            data = action.content.encode("utf-8")
            target = self._resolve(root, action.path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

    @staticmethod
    def _resolve(root: Path, rel: str) -> Path:
        target = (root / rel).resolve()
        if not target.is_relative_to(root.resolve()):
            raise MutationError(f"path escapes the project root: {rel}")
        return target


__all__ = ["FileTreeMutator"]
