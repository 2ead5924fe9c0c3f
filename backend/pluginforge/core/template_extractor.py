"""
Template Extractor - Scaffold unpacking

Responsibilities:
- Copy the scaffold archive into a fresh project root and unpack it
- Remove the archive copy
- Prune the scaffold once its snapshot exists, so only the flattened
  text (not the scaffold files) reaches the oracle

Pruning removes empty directories bottom-up in repeated passes. Each pass
can only empty directories whose children were removed by the previous one,
so the loop reaches a fixed point; pass_cap bounds it regardless.
"""
import shutil
import logging
from pathlib import Path
from typing import List, Iterable

from pluginforge.config import CLEANUP_PASS_CAP
from pluginforge.errors import ExtractionError

logger = logging.getLogger(__name__)


class TemplateExtractor:
    """
    TemplateExtractor - Unpacks and prunes the plugin scaffold
    """

    def __init__(self, pass_cap: int = CLEANUP_PASS_CAP):
        if pass_cap < 1:
            raise ValueError("pass_cap must be at least 1")
        self.pass_cap = pass_cap

    def extract(self, archive_path: Path, dest_root: Path) -> List[str]:
        """
        Unpack the scaffold archive into dest_root

        Args:
            archive_path: Scaffold archive (.zip, .tar, .tar.gz, ...)
            dest_root: Project root; created if missing

        Returns:
            Sorted relative paths (POSIX style) of everything extracted

        Raises:
            ExtractionError: If the archive is missing or cannot be unpacked
        """
        archive_path = Path(archive_path)
        dest_root = Path(dest_root)

        if not archive_path.is_file():
            raise ExtractionError(f"Scaffold archive not found: {archive_path}")

        dest_root.mkdir(parents=True, exist_ok=True)
        before = set(self._walk(dest_root))

        archive_copy = dest_root / archive_path.name
        try:
            shutil.copy2(archive_path, archive_copy)
            shutil.unpack_archive(str(archive_copy), str(dest_root))
        except (shutil.ReadError, ValueError, OSError) as e:
            raise ExtractionError(f"Failed to unpack {archive_path.name}: {e}") from e
        finally:
            if archive_copy.exists():
                archive_copy.unlink()

        extracted = sorted(set(self._walk(dest_root)) - before)
        logger.info(f"[Extractor] Extracted {len(extracted)} entries from {archive_path.name}")
        return extracted

    def prune(self, dest_root: Path, extracted: Iterable[str], keep: Iterable[str] = ()) -> int:
        """
        Delete extracted scaffold files, then their now-empty directories

        Args:
            dest_root: Project root
            extracted: Relative paths returned by extract()
            keep: Relative paths that must survive (e.g. the snapshot file)

        Returns:
            Number of directory-removal passes used
        """
        dest_root = Path(dest_root)
        keep = {Path(k).as_posix() for k in keep}
        directories = set()

        for rel in extracted:
            target = dest_root / rel
            if rel in keep:
                continue
            if target.is_dir():
                directories.add(rel)
            elif target.exists():
                target.unlink()

        passes = 0
        while passes < self.pass_cap:
            passes += 1
            removed = 0
            # deepest first
            for rel in sorted(directories, key=lambda p: p.count("/"), reverse=True):
                target = dest_root / rel
                if target.is_dir() and not any(target.iterdir()):
                    target.rmdir()
                    removed += 1
            directories = {d for d in directories if (dest_root / d).exists()}
            if removed == 0:
                break

        logger.info(f"[Extractor] Pruned scaffold in {passes} pass(es), {len(directories)} directories left")
        return passes

    @staticmethod
    def _walk(root: Path) -> List[str]:
        return [p.relative_to(root).as_posix() for p in root.rglob("*")]


__all__ = ["TemplateExtractor"]
