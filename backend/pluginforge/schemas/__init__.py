"""
Schemas for the Plugin Build-Repair Pipeline

These schemas define the contracts between pipeline stages:
- Actions: the oracle's unit of output (file create/modify/delete/rename)
- Project: requests, run state machine, build and verification results
"""
from .action_schema import (
    validate_relative_path,
    CreateFile,
    ModifyFile,
    DeleteFile,
    RenameFile,
    FileAction,
    GenerationResult,
    MutationReport,
)
from .project_schema import (
    BuildRequest,
    ProjectStatus,
    ProjectState,
    TERMINAL_STATUSES,
    BuildResult,
    VerificationReport,
    TerminalResult,
    PipelineSettings,
)

__all__ = [
    # Actions (oracle output)
    "validate_relative_path",
    "CreateFile",
    "ModifyFile",
    "DeleteFile",
    "RenameFile",
    "FileAction",
    "GenerationResult",
    "MutationReport",
    # Project (run state and results)
    "BuildRequest",
    "ProjectStatus",
    "ProjectState",
    "TERMINAL_STATUSES",
    "BuildResult",
    "VerificationReport",
    "TerminalResult",
    "PipelineSettings",
]
