"""
File Action Schema - The oracle's unit of output

A batch of FileActions is what the oracle (or the fallback generator)
produces and what the FileTreeMutator applies to a project root.

All paths are relative to the project root. Absolute paths and paths that
escape the root via ".." are rejected when the action is constructed.
"""
from pathlib import PurePosixPath, PureWindowsPath
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def validate_relative_path(path: str) -> str:
    """
    Normalize a project-relative path and reject unsafe ones

    Returns the path with forward slashes and no leading "./".

    Raises:
        ValueError: If the path is empty, absolute or escapes the root
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("path must be a non-empty string")

    normalized = path.strip().replace("\\", "/")
    if PurePosixPath(normalized).is_absolute() or PureWindowsPath(path.strip()).is_absolute():
        raise ValueError(f"absolute paths are not allowed: {path}")

    parts = [part for part in PurePosixPath(normalized).parts if part not in ("", ".")]
    if not parts:
        raise ValueError(f"path does not name a file: {path}")
    if ".." in parts:
        raise ValueError(f"path escapes the project root: {path}")

    return "/".join(parts)


class CreateFile(BaseModel):
    """Create a file (whole-file write)"""
    kind: Literal["create"] = "create"
    path: str
    content: str

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return validate_relative_path(v)


class ModifyFile(BaseModel):
    """Overwrite an existing file (whole-file write, not a merge)"""
    kind: Literal["modify"] = "modify"
    path: str
    content: str

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return validate_relative_path(v)


class DeleteFile(BaseModel):
    """Delete a file"""
    kind: Literal["delete"] = "delete"
    path: str

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return validate_relative_path(v)


class RenameFile(BaseModel):
    """Rename (move) a file inside the project root"""
    kind: Literal["rename"] = "rename"
    old_path: str
    new_path: str

    @field_validator("old_path", "new_path")
    @classmethod
    def check_paths(cls, v: str) -> str:
        return validate_relative_path(v)


FileAction = Annotated[
    Union[CreateFile, ModifyFile, DeleteFile, RenameFile],
    Field(discriminator="kind"),
]


class GenerationResult(BaseModel):
    """What the oracle client hands back to the orchestrator"""
    actions: List[FileAction] = Field(default_factory=list, description="File actions to apply")
    raw_response: str = Field("", description="Raw oracle text (empty when the oracle was not reached)")
    well_formed: bool = Field(..., description="False when the actions come from the fallback generator")
    error: Optional[str] = Field(None, description="Why the oracle output was rejected, if it was")

    @property
    def action_count(self) -> int:
        return len(self.actions)


class MutationReport(BaseModel):
    """Outcome of applying a batch of file actions"""
    applied: int = Field(0, description="Number of actions that succeeded")
    failed: int = Field(0, description="Number of actions that were skipped because they failed")
    needs_recompilation: bool = Field(False, description="A location-correction pass changed the tree")
    corrected_files: List[str] = Field(default_factory=list)


__all__ = [
    "validate_relative_path",
    "CreateFile",
    "ModifyFile",
    "DeleteFile",
    "RenameFile",
    "FileAction",
    "GenerationResult",
    "MutationReport",
]
