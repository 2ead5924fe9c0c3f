"""
Project Schema - Requests, run state and results

These schemas define the contracts between the orchestrator and its
collaborators:
- BuildRequest: what the caller asks for
- ProjectState: the state machine owned by one in-flight run
- BuildResult / VerificationReport: what the builder and verifier report
- TerminalResult: the single message a run ends with
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from pluginforge.config import (
    MAX_FIX_ATTEMPTS,
    CLEANUP_PASS_CAP,
    BUILD_TIMEOUT,
    AI_REQUEST_TIMEOUT,
    REQUIRED_ARTIFACT_ENTRIES,
)
from pluginforge.errors import InvalidTransitionError


class BuildRequest(BaseModel):
    """A request to turn a prompt into a packaged plugin"""
    name: str = Field(
        ...,
        pattern=r"^[A-Za-z][A-Za-z0-9_-]*$",
        max_length=64,
        description="Plugin name; also the project root directory name",
    )
    prompt: str = Field(..., min_length=1, description="Natural-language description of the plugin")


class ProjectStatus(str, Enum):
    """Pipeline run status"""
    PENDING = "Pending"
    EXTRACTING = "Extracting"
    GENERATING = "Generating"
    MUTATING = "Mutating"
    COMPILING = "Compiling"
    REPAIRING = "Repairing"
    VERIFIED = "Verified"
    FAILED = "Failed"


TERMINAL_STATUSES = frozenset({ProjectStatus.VERIFIED, ProjectStatus.FAILED})

# PENDING -> COMPILING is the recompile-only path for an existing project.
ALLOWED_TRANSITIONS = {
    ProjectStatus.PENDING: {ProjectStatus.EXTRACTING, ProjectStatus.COMPILING},
    ProjectStatus.EXTRACTING: {ProjectStatus.GENERATING},
    ProjectStatus.GENERATING: {ProjectStatus.MUTATING},
    ProjectStatus.MUTATING: {ProjectStatus.COMPILING},
    ProjectStatus.COMPILING: {ProjectStatus.VERIFIED, ProjectStatus.REPAIRING},
    ProjectStatus.REPAIRING: {ProjectStatus.COMPILING},
    ProjectStatus.VERIFIED: set(),
    ProjectStatus.FAILED: set(),
}


class ProjectState(BaseModel):
    """
    Mutable run state, owned by exactly one RepairLoopController run

    Status only moves forward, except for the COMPILING <-> REPAIRING cycle,
    which begin_repair() bounds by max_fix_attempts. Any non-terminal status
    may go to FAILED.
    """
    status: ProjectStatus = Field(ProjectStatus.PENDING)
    attempt: int = Field(0, ge=0, description="Repair attempts started so far")
    last_error: Optional[str] = Field(None)
    history: List[Tuple[ProjectStatus, datetime]] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, new_status: ProjectStatus) -> None:
        """Move to new_status or raise InvalidTransitionError"""
        if new_status == ProjectStatus.FAILED and not self.is_terminal:
            allowed = True
        else:
            allowed = new_status in ALLOWED_TRANSITIONS[self.status]
        if not allowed:
            raise InvalidTransitionError(f"{self.status.value} -> {new_status.value}")
        if new_status == ProjectStatus.REPAIRING:
            raise InvalidTransitionError("use begin_repair() to enter Repairing")

        self.status = new_status
        self.history.append((new_status, datetime.now(timezone.utc)))

    def begin_repair(self, max_fix_attempts: int) -> bool:
        """
        Enter REPAIRING if the repair budget allows it

        Returns:
            True if a new repair attempt was started, False if the budget is spent
        """
        if self.status != ProjectStatus.COMPILING:
            raise InvalidTransitionError(f"{self.status.value} -> {ProjectStatus.REPAIRING.value}")
        if self.attempt >= max_fix_attempts:
            return False

        self.attempt += 1
        self.status = ProjectStatus.REPAIRING
        self.history.append((ProjectStatus.REPAIRING, datetime.now(timezone.utc)))
        return True

    def fail(self, error: str) -> None:
        self.last_error = error
        self.transition(ProjectStatus.FAILED)


class BuildResult(BaseModel):
    """Outcome of one build tool invocation"""
    success: bool
    artifact_path: Optional[str] = Field(None, description="Newest primary JAR, if one was produced")
    raw_log: str = Field("", description="Combined stdout/stderr of the build tool")
    diagnostics: str = Field("", description="Actionable error lines extracted from raw_log")
    exit_code: Optional[int] = Field(None)
    timed_out: bool = Field(False)


class VerificationReport(BaseModel):
    """Which host-required entries the artifact contains"""
    artifact_path: str
    entries: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


class TerminalResult(BaseModel):
    """The single result a pipeline run reports"""
    name: str
    success: bool
    status: ProjectStatus
    artifact_path: Optional[str] = None
    error: Optional[str] = Field(None, description="Last diagnostic snippet on failure")
    attempts_used: int = Field(0, description="Repair attempts used")
    build_invocations: int = Field(0)
    files_written: int = Field(0, description="File actions applied across the whole run")
    recompiled_only: bool = Field(False, description="Existing project, generation skipped")
    missing_entries: List[str] = Field(default_factory=list)
    message: str = Field("")
    execution_log: List[str] = Field(default_factory=list, description="Progress messages of this run")


class PipelineSettings(BaseModel):
    """Controller-level policy values"""
    max_fix_attempts: int = Field(MAX_FIX_ATTEMPTS, ge=0)
    cleanup_pass_cap: int = Field(CLEANUP_PASS_CAP, ge=1)
    build_timeout: float = Field(BUILD_TIMEOUT, gt=0)
    oracle_timeout: float = Field(AI_REQUEST_TIMEOUT, gt=0)
    required_entries: Tuple[str, ...] = Field(REQUIRED_ARTIFACT_ENTRIES)


__all__ = [
    "BuildRequest",
    "ProjectStatus",
    "ProjectState",
    "TERMINAL_STATUSES",
    "BuildResult",
    "VerificationReport",
    "TerminalResult",
    "PipelineSettings",
]
