"""
Main Pipeline - Orchestrates the plugin build-repair loop

This module wires the core components together and owns the run state machine:
Extract → Snapshot → Generate → Mutate → Compile → (Repair → Compile)* → Verify

Usage:
    controller = RepairLoopController(generated_dir=Path("generated"))
    result = controller.run(BuildRequest(name="Greeter", prompt="welcome players on join"))
"""
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, List, Optional

from pluginforge.config import (
    GENERATED_DIR,
    TEMPLATE_ARCHIVE,
    BUILD_DESCRIPTOR,
    ORACLE_RESPONSE_FILE,
    ORACLE_REPAIR_FILE,
)
from pluginforge.errors import (
    BuildError,
    ExtractionError,
    RunCancelledError,
    RunInProgressError,
)
from pluginforge.schemas import (
    BuildRequest,
    BuildResult,
    GenerationResult,
    PipelineSettings,
    ProjectState,
    ProjectStatus,
    TerminalResult,
)
from pluginforge.core import (
    TemplateExtractor,
    SourceSnapshotCompiler,
    DiagnosticExtractor,
    FileTreeMutator,
    BuildToolRunner,
    ArtifactVerifier,
    GenerationOracleClient,
)

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Run cancelled"


class CancellationToken:
    """Cooperative cancellation, checked by the controller between steps"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError(CANCELLED_MESSAGE)


class RunRegistry:
    """
    Names of the runs currently in flight

    A project root belongs to exactly one active run; a second run for the
    same name is rejected rather than queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active = set()

    def acquire(self, name: str) -> None:
        with self._lock:
            if name in self._active:
                raise RunInProgressError(f"A run for '{name}' is already in progress")
            self._active.add(name)

    def release(self, name: str) -> None:
        with self._lock:
            self._active.discard(name)

    def is_active(self, name: str) -> bool:
        with self._lock:
            return name in self._active

    @contextmanager
    def hold(self, name: str):
        self.acquire(name)
        try:
            yield
        finally:
            self.release(name)


# Shared by every controller that is not given its own registry
default_registry = RunRegistry()


class _Run:
    """Per-run bookkeeping; never shared between runs"""

    def __init__(
        self,
        request: BuildRequest,
        root: Path,
        progress_callback: Optional[Callable[[str], None]],
        cancel_token: CancellationToken,
    ):
        self.request = request
        self.root = root
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token
        self.state = ProjectState()
        self.build_invocations = 0
        self.files_written = 0
        self.recompiled_only = False
        self.execution_log: List[str] = []

    def log(self, msg: str, level: int = logging.INFO) -> None:
        self.execution_log.append(msg)
        if self.progress_callback:
            self.progress_callback(msg)
        logger.log(level, f"[Pipeline {self.request.name}] {msg}")

    def checkpoint(self) -> None:
        self.cancel_token.raise_if_cancelled()


class RepairLoopController:
    """
    Complete plugin build-repair pipeline

    One controller may serve many requests; every run gets its own
    ProjectState, and runs for distinct names share no mutable state.
    """

    def __init__(
        self,
        generated_dir: Optional[Path] = None,
        template_archive: Optional[Path] = None,
        settings: Optional[PipelineSettings] = None,
        registry: Optional[RunRegistry] = None,
        extractor: Optional[TemplateExtractor] = None,
        snapshot: Optional[SourceSnapshotCompiler] = None,
        oracle: Optional[GenerationOracleClient] = None,
        mutator: Optional[FileTreeMutator] = None,
        builder: Optional[BuildToolRunner] = None,
        diagnostics: Optional[DiagnosticExtractor] = None,
        verifier: Optional[ArtifactVerifier] = None,
    ):
        """
        Initialize controller

        Args:
            generated_dir: Parent of all project roots (defaults to GENERATED_DIR)
            template_archive: Scaffold archive (defaults to TEMPLATE_ARCHIVE)
            settings: Repair budget, cleanup pass cap, timeouts, required entries
            registry: Active-run registry (defaults to the module-level one)
            extractor, snapshot, oracle, mutator, builder, diagnostics, verifier:
                Collaborators; defaults are built from settings
        """
        self.generated_dir = Path(generated_dir or GENERATED_DIR)
        self.template_archive = Path(template_archive or TEMPLATE_ARCHIVE)
        self.settings = settings or PipelineSettings()
        self.registry = registry or default_registry

        self.diagnostics = diagnostics or DiagnosticExtractor()
        self.extractor = extractor or TemplateExtractor(pass_cap=self.settings.cleanup_pass_cap)
        self.snapshot = snapshot or SourceSnapshotCompiler()
        self.oracle = oracle or GenerationOracleClient(
            timeout=self.settings.oracle_timeout,
            diagnostics=self.diagnostics,
        )
        self.mutator = mutator or FileTreeMutator(resource_files=self.settings.required_entries)
        self.builder = builder or BuildToolRunner(
            timeout=self.settings.build_timeout,
            diagnostics=self.diagnostics,
        )
        self.verifier = verifier or ArtifactVerifier()

    def run(
        self,
        request: BuildRequest,
        progress_callback: Optional[Callable[[str], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TerminalResult:
        """
        Turn a BuildRequest into a packaged plugin

        Args:
            request: Plugin name and prompt
            progress_callback: Optional callback for progress updates (msg: str) -> None
            cancel_token: Optional cooperative cancellation token

        Returns:
            TerminalResult (Verified or Failed)

        Raises:
            RunInProgressError: If a run for the same name is already active
        """
        with self.registry.hold(request.name):
            run = _Run(
                request,
                self.generated_dir / request.name,
                progress_callback,
                cancel_token or CancellationToken(),
            )
            return self._execute(run)

    def _execute(self, run: _Run) -> TerminalResult:
        state = run.state
        root = run.root
        try:
            run.checkpoint()
            if (root / BUILD_DESCRIPTOR).exists():
                return self._recompile_only(run)

            run.log("=== Starting Plugin Build Pipeline ===")

            # Phase 1: Scaffold and snapshot
            state.transition(ProjectStatus.EXTRACTING)
            run.log(f"Phase 1: Extracting scaffold {self.template_archive.name}...")
            extracted = self.extractor.extract(self.template_archive, root)
            snapshot_path = self.snapshot.compile_to_text(root)
            passes = self.extractor.prune(root, extracted, keep=[snapshot_path.relative_to(root).as_posix()])
            run.log(f"✓ Snapshot of {len(extracted)} scaffold entries written ({passes} cleanup passes)")
            run.checkpoint()

            # Phase 2: Generation
            state.transition(ProjectStatus.GENERATING)
            run.log("Phase 2: Generating plugin sources...")
            generation = self.oracle.generate(run.request.prompt, snapshot_path, plugin_name=run.request.name)
            self._save_response(root, ORACLE_RESPONSE_FILE, generation)
            if generation.well_formed:
                run.log(f"✓ Oracle produced {generation.action_count} file actions")
            else:
                run.log(f"⚠ Oracle output unusable ({generation.error}); using fallback scaffold")
            run.checkpoint()

            # Phase 3: Mutation
            state.transition(ProjectStatus.MUTATING)
            run.log("Phase 3: Writing files...")
            if not self._apply(run, generation):
                return self._failed(run, "No file actions could be applied to the project")
            run.checkpoint()

            # Phase 4: Build and repair loop
            while True:
                state.transition(ProjectStatus.COMPILING)
                build = self._build(run, auto_fix=True)
                if build.success:
                    return self._verified(run, build)

                state.last_error = self._error_snippet(build)
                run.log(f"✗ Build {run.build_invocations} failed")
                if not state.begin_repair(self.settings.max_fix_attempts):
                    return self._failed(run, state.last_error)
                run.checkpoint()

                run.log(f"Repair attempt {state.attempt}/{self.settings.max_fix_attempts}...")
                snapshot_path = self.snapshot.compile_to_text(root)
                repair = self.oracle.repair(state.last_error, snapshot_path, root, request_prompt=run.request.prompt)
                self._save_response(root, ORACLE_REPAIR_FILE.format(attempt=state.attempt), repair)
                if not repair.well_formed:
                    run.log(f"⚠ Repair output unusable ({repair.error}); restoring fallback scaffold")
                self._apply(run, repair)
                run.checkpoint()

        except ExtractionError as e:
            run.log(f"✗ {e}")
            return self._failed(run, str(e))
        except RunCancelledError:
            run.log("✗ Run cancelled")
            return self._failed(run, CANCELLED_MESSAGE)
        except OSError as e:
            run.log(f"✗ Filesystem error: {e}")
            return self._failed(run, f"Filesystem error: {e}")

    def _recompile_only(self, run: _Run) -> TerminalResult:
        """Existing project: rebuild once, never generate or mutate"""
        run.recompiled_only = True
        run.log("Existing project found; recompiling without generation")
        run.state.transition(ProjectStatus.COMPILING)
        build = self._build(run, auto_fix=False)
        if build.success:
            return self._verified(run, build)
        run.state.last_error = self._error_snippet(build)
        return self._failed(run, run.state.last_error)

    def _apply(self, run: _Run, generation: GenerationResult) -> int:
        report = self.mutator.apply(generation.actions, run.root)
        run.files_written += report.applied
        run.log(f"✓ Applied {report.applied} file actions ({report.failed} failed)")
        if report.needs_recompilation:
            run.log(f"Moved into place: {', '.join(report.corrected_files)}")
        return report.applied

    def _build(self, run: _Run, auto_fix: bool) -> BuildResult:
        run.build_invocations += 1
        run.log(f"Building with Maven (invocation {run.build_invocations})...")
        try:
            return self.builder.build(run.root, auto_fix=auto_fix)
        except BuildError as e:
            return BuildResult(success=False, raw_log=str(e), diagnostics=str(e))

    def _verified(self, run: _Run, build: BuildResult) -> TerminalResult:
        run.state.transition(ProjectStatus.VERIFIED)
        report = self.verifier.verify(Path(build.artifact_path), self.settings.required_entries)
        artifact_name = Path(build.artifact_path).name
        if report.missing:
            run.log(f"⚠ {artifact_name} is missing: {', '.join(report.missing)}")
        run.log(f"=== Plugin Build Complete: {artifact_name} ===")

        return TerminalResult(
            name=run.request.name,
            success=True,
            status=run.state.status,
            artifact_path=build.artifact_path,
            attempts_used=run.state.attempt,
            build_invocations=run.build_invocations,
            files_written=run.files_written,
            recompiled_only=run.recompiled_only,
            missing_entries=report.missing,
            message=f"Built {artifact_name} after {run.state.attempt} repair attempt(s)",
            execution_log=run.execution_log,
        )

    def _failed(self, run: _Run, error: str) -> TerminalResult:
        run.state.fail(error)
        message = f"Failed after {run.state.attempt} repair attempt(s)"
        if run.files_written:
            # Partial success is reported, not discarded
            message += f"; {run.files_written} file(s) were written to {run.root}"
        run.log(f"✗ {message}", level=logging.ERROR)

        return TerminalResult(
            name=run.request.name,
            success=False,
            status=run.state.status,
            error=error,
            attempts_used=run.state.attempt,
            build_invocations=run.build_invocations,
            files_written=run.files_written,
            recompiled_only=run.recompiled_only,
            message=message,
            execution_log=run.execution_log,
        )

    @staticmethod
    def _error_snippet(build: BuildResult) -> str:
        if build.diagnostics:
            return build.diagnostics
        tail = build.raw_log.strip().splitlines()[-10:]
        return "\n".join(tail) or "Build failed without output"

    @staticmethod
    def _save_response(root: Path, filename: str, generation: GenerationResult) -> None:
        if not generation.raw_response:
            return
        try:
            (root / filename).write_text(generation.raw_response, encoding="utf-8")
        except (OSError, UnicodeError) as e:
            logger.warning(f"[Pipeline] Could not save {filename}: {e}")


# Convenience function for simple usage
def generate_plugin_from_prompt(
    name: str,
    prompt: str,
    progress_callback: Optional[Callable[[str], None]] = None,
    generated_dir: Optional[Path] = None,
) -> TerminalResult:
    """
    Generate a plugin from a user prompt (convenience function)

    Args:
        name: Plugin name (project directory name)
        prompt: User's request
        progress_callback: Optional progress callback
        generated_dir: Parent directory for project roots

    Returns:
        TerminalResult
    """
    controller = RepairLoopController(generated_dir=generated_dir)
    return controller.run(
        BuildRequest(name=name, prompt=prompt),
        progress_callback=progress_callback,
    )


__all__ = [
    "RepairLoopController",
    "RunRegistry",
    "CancellationToken",
    "generate_plugin_from_prompt",
]
