"""
Source Snapshot Compiler - Flattens a project tree into one text file

The snapshot is the oracle's view of the project: once after extraction,
and again after every failed build for the repair prompt. The walk is
sorted so the same tree always produces the same text.
"""
import logging
from pathlib import Path
from typing import Optional, Tuple

from pluginforge.config import (
    SNAPSHOT_FILE,
    BUILD_LOG_FILE,
    BUILD_OUTPUT_DIR,
)

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".js", ".ts", ".java", ".json", ".xml", ".md", ".yml", ".yaml", ".properties")
EXCLUDED_DIRS = (BUILD_OUTPUT_DIR, "build", ".git", "node_modules")
RULE = "-" * 50


class SourceSnapshotCompiler:
    """
    Serializes (relative path, content) pairs of a project into a text file
    """

    def __init__(
        self,
        extensions: Tuple[str, ...] = TEXT_EXTENSIONS,
        excluded_dirs: Tuple[str, ...] = EXCLUDED_DIRS,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        max_files: int = 1000,
    ):
        self.extensions = tuple(e.lower() for e in extensions)
        self.excluded_dirs = set(excluded_dirs)
        self.max_file_size = max_file_size
        self.max_files = max_files

    def compile_to_text(self, root: Path, output_path: Optional[Path] = None) -> Path:
        """
        Write the snapshot of root and return its path

        Args:
            root: Project root to walk
            output_path: Where to write; defaults to root/compiled_files.txt

        Returns:
            Path of the written snapshot file
        """
        root = Path(root)
        output_path = Path(output_path) if output_path else root / SNAPSHOT_FILE
        skipped_names = {output_path.resolve(), (root / BUILD_LOG_FILE).resolve()}

        blocks = []
        skipped = 0
        for path in sorted(root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(root)
            if any(part in self.excluded_dirs for part in rel.parts[:-1]):
                continue
            if path.resolve() in skipped_names or self._is_oracle_log(rel):
                continue
            if path.suffix.lower() not in self.extensions or path.stat().st_size > self.max_file_size:
                skipped += 1
                continue
            if len(blocks) >= self.max_files:
                logger.warning(f"[Snapshot] File limit {self.max_files} reached, remaining files omitted")
                break

            content = path.read_bytes().decode("utf-8", errors="replace")
            blocks.append(f"File: {rel.as_posix()}\n{RULE}\n{content}\n{RULE}\n")

        header = f"File Compilation Report\nSource: {root.name}\nFiles: {len(blocks)}\n{'=' * 80}\n\n"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(header + "\n".join(blocks), encoding="utf-8")

        logger.info(f"[Snapshot] Compiled {len(blocks)} files ({skipped} skipped) into {output_path.name}")
        return output_path

    @staticmethod
    def _is_oracle_log(rel: Path) -> bool:
        # oracle_response.txt / oracle_repair_<n>.txt at the project root
        return len(rel.parts) == 1 and rel.name.startswith("oracle_") and rel.suffix == ".txt"


__all__ = ["SourceSnapshotCompiler", "TEXT_EXTENSIONS"]
