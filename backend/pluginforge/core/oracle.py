"""
Generation Oracle Client - LLM-backed plugin source generation

Responsibilities:
- Build strict-output prompts for initial generation and for repairs
- Call the model through a LangChain pipeline (prompt | llm | parser)
- Parse the raw answer into typed FileActions
- Validate the batch and fall back to the deterministic generator

Nothing here raises to the orchestrator. Communication and parse failures
become GenerationResult(well_formed=False) carrying fallback actions.
"""
import json
import re
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import StrOutputParser
from langchain_google_genai import ChatGoogleGenerativeAI

from pluginforge.config import (
    GEMINI_API_KEY,
    AI_MODEL,
    AI_TEMPERATURE,
    AI_REQUEST_TIMEOUT,
    AI_MAX_RETRIES,
    BUILD_OUTPUT_DIR,
    JAVA_SOURCES_DIR,
    RESOURCES_DIR,
    MANIFEST_FILE,
    REPAIR_PROMPT_DIAGNOSTIC_CHARS,
    SNAPSHOT_PROMPT_CHARS,
    MINECRAFT_API_VERSION,
)
from pluginforge.errors import OracleCommunicationError, OracleParseError
from pluginforge.schemas import (
    CreateFile,
    ModifyFile,
    DeleteFile,
    RenameFile,
    FileAction,
    GenerationResult,
)
from pluginforge.core.diagnostics import DiagnosticExtractor
from pluginforge.tools.fallback_generator import generate_fallback_actions

logger = logging.getLogger(__name__)

ENTRY_POINT = re.compile(r"\bextends\s+JavaPlugin\b")
FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
TRAILING_COMMA = re.compile(r",\s*([}\]])")

OUTPUT_FORMAT = """Respond with exactly ONE JSON object and nothing else:
{{
  "createdFiles": [{{"path": "src/main/java/com/example/myplugin/MyPlugin.java", "content": "..."}}],
  "modifiedFiles": [{{"path": "...", "content": "full new file content"}}],
  "deletedFiles": ["path/to/remove.java"],
  "renamedFiles": [{{"oldPath": "...", "newPath": "..."}}]
}}
Rules:
- Paths are relative to the project root. Never use absolute paths or "..".
- Every file content is the COMPLETE file, never a diff or a fragment.
- Java sources go under src/main/java, plugin.yml and config.yml under src/main/resources.
- Escape newlines and quotes inside JSON strings."""

GENERATION_SYSTEM = """You are an expert Minecraft Bukkit/Spigot plugin developer.
Generate a complete, compilable Maven plugin project for the Spigot API {api_version}.

Requirements:
- One main class that extends org.bukkit.plugin.java.JavaPlugin with onEnable/onDisable
- src/main/resources/plugin.yml with name, version, main (fully qualified), api-version and any commands/permissions
- src/main/resources/config.yml with sensible defaults
- Only use the Spigot API; do not add other dependencies
- The plugin name is "{plugin_name}"

""" + OUTPUT_FORMAT

GENERATION_USER = """Plugin request:
{prompt}

Current project files:
{snapshot}"""

REPAIR_SYSTEM = """You are an expert Minecraft Bukkit/Spigot plugin developer fixing a Maven build.
Read the compiler errors, find the root cause and return the smallest set of
file changes that makes the project compile. Keep the plugin's behaviour.

""" + OUTPUT_FORMAT

REPAIR_USER = """Build errors:
{diagnostics}

Files mentioned in the errors:
{related_files}

Current plugin.yml:
{manifest}

Current project files:
{snapshot}"""


class GenerationOracleClient:
    """
    GenerationOracleClient - Talks to the LLM and returns typed action batches

    Any LangChain chat model or Runnable can be injected as llm; by default a
    ChatGoogleGenerativeAI model is built when GEMINI_API_KEY is set. Without
    one, every call goes straight to the fallback generator.
    """

    def __init__(
        self,
        llm: Any = None,
        timeout: float = AI_REQUEST_TIMEOUT,
        diagnostics: Optional[DiagnosticExtractor] = None,
        max_correlated_files: int = 3,
        max_file_chars: int = 8000,
    ):
        if llm is None and GEMINI_API_KEY:
            llm = ChatGoogleGenerativeAI(
                google_api_key=GEMINI_API_KEY,
                model=AI_MODEL,
                temperature=AI_TEMPERATURE,
                max_retries=AI_MAX_RETRIES,
                timeout=AI_REQUEST_TIMEOUT,
                transport="rest",  # Use REST API instead of gRPC to avoid proxy issues
            )
        self.llm = llm
        self.timeout = timeout
        self.diagnostics = diagnostics or DiagnosticExtractor()
        self.max_correlated_files = max_correlated_files
        self.max_file_chars = max_file_chars

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        context_snapshot: Union[str, Path],
        plugin_name: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate the initial plugin sources

        Args:
            prompt: The user's plugin request
            context_snapshot: Snapshot text, or the path of the snapshot file
            plugin_name: Request name; used for the prompt and the fallback

        Returns:
            GenerationResult; well_formed=False means the actions are the fallback scaffold
        """
        template = ChatPromptTemplate.from_messages([
            ("system", GENERATION_SYSTEM),
            ("user", GENERATION_USER),
        ])
        variables = {
            "api_version": MINECRAFT_API_VERSION,
            "plugin_name": plugin_name or "derive one from the request",
            "prompt": prompt,
            "snapshot": self._bounded_snapshot(context_snapshot),
        }

        raw = ""
        try:
            raw = self._invoke(template, variables)
            actions = self.parse_response(raw)
            self._validate_generation(actions)
        except (OracleCommunicationError, OracleParseError) as e:
            logger.warning(f"[Oracle] Generation unusable, using fallback generator: {e}")
            return GenerationResult(
                actions=generate_fallback_actions(prompt, plugin_name),
                raw_response=raw,
                well_formed=False,
                error=str(e),
            )

        logger.info(f"[Oracle] ✓ Generated {len(actions)} file actions")
        return GenerationResult(actions=actions, raw_response=raw, well_formed=True)

    def repair(
        self,
        build_diagnostics: str,
        context_snapshot: Union[str, Path],
        project_root: Path,
        request_prompt: str = "",
    ) -> GenerationResult:
        """
        Ask for patches that fix a failed build

        Args:
            build_diagnostics: Output of DiagnosticExtractor.extract()
            context_snapshot: Fresh snapshot text, or its file path
            project_root: Project root, used to look up files named in the diagnostics
            request_prompt: Original plugin request, used only by the fallback

        Returns:
            GenerationResult; the fallback replaces all Java sources with the scaffold
        """
        project_root = Path(project_root)
        template = ChatPromptTemplate.from_messages([
            ("system", REPAIR_SYSTEM),
            ("user", REPAIR_USER),
        ])
        variables = {
            "diagnostics": (build_diagnostics or "(no diagnostics captured)")[:REPAIR_PROMPT_DIAGNOSTIC_CHARS],
            "related_files": self._related_files(build_diagnostics, project_root),
            "manifest": self._read_manifest(project_root),
            "snapshot": self._bounded_snapshot(context_snapshot),
        }

        raw = ""
        try:
            raw = self._invoke(template, variables)
            actions = self.parse_response(raw)
            if not actions:
                raise OracleParseError("repair response contains no file actions")
        except (OracleCommunicationError, OracleParseError) as e:
            logger.warning(f"[Oracle] Repair unusable, falling back to scaffold: {e}")
            return GenerationResult(
                actions=self._repair_fallback(request_prompt, project_root),
                raw_response=raw,
                well_formed=False,
                error=str(e),
            )

        logger.info(f"[Oracle] ✓ Repair proposes {len(actions)} file actions")
        return GenerationResult(actions=actions, raw_response=raw, well_formed=True)

    def parse_response(self, text: str) -> List[FileAction]:
        """
        Parse raw oracle text into FileActions

        Looks for a fenced JSON block first, then the first balanced {...}
        span. Each candidate is retried with trailing commas removed.
        Entries with unsafe paths or bad content are dropped with a warning.

        Raises:
            OracleParseError: If no candidate is a JSON object in a known shape
        """
        if not text or not text.strip():
            raise OracleParseError("empty response")

        candidates = [block.strip() for block in FENCED_BLOCK.findall(text)]
        span = self._first_object_span(text)
        if span:
            candidates.append(span)

        for candidate in candidates:
            payload = self._loads(candidate)
            if isinstance(payload, dict) and self._is_action_payload(payload):
                return self._actions_from_payload(payload)

        raise OracleParseError("no JSON object with file actions found in response")

    # ------------------------------------------------------------------
    # LLM call
    # ------------------------------------------------------------------

    def _invoke(self, template: ChatPromptTemplate, variables: Dict[str, Any]) -> str:
        if self.llm is None:
            raise OracleCommunicationError("no oracle configured (GEMINI_API_KEY is not set)")

        chain = template | self.llm | StrOutputParser()
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(chain.invoke, variables)
            text = future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            raise OracleCommunicationError(f"oracle timed out after {self.timeout:g}s") from e
        except Exception as e:
            raise OracleCommunicationError(f"oracle call failed: {e}") from e
        finally:
            executor.shutdown(wait=False)

        if not text or not text.strip():
            raise OracleCommunicationError("oracle returned an empty response")
        return text

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _first_object_span(text: str) -> Optional[str]:
        """First balanced top-level {...} span, ignoring braces inside strings"""
        start = text.find("{")
        while start != -1:
            depth = 0
            in_string = False
            escaped = False
            for i in range(start, len(text)):
                ch = text[i]
                if in_string:
                    if escaped:
                        escaped = False
                    elif ch == "\\":
                        escaped = True
                    elif ch == '"':
                        in_string = False
                elif ch == '"':
                    in_string = True
                elif ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        return text[start:i + 1]
            # unbalanced from this brace; try the next one
            start = text.find("{", start + 1)
        return None

    @staticmethod
    def _loads(candidate: str) -> Any:
        for attempt in (candidate, TRAILING_COMMA.sub(r"\1", candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue
        return None

    @staticmethod
    def _is_action_payload(payload: Dict[str, Any]) -> bool:
        keys = {"createdFiles", "modifiedFiles", "deletedFiles", "renamedFiles", "created", "updated", "deleted"}
        return bool(keys & payload.keys())

    def _actions_from_payload(self, payload: Dict[str, Any]) -> List[FileAction]:
        actions: List[FileAction] = []

        def add(factory, **fields):
            try:
                # Lone surrogates survive json.loads but cannot be written as UTF-8
                for value in fields.values():
                    if isinstance(value, str):
                        value.encode("utf-8")
                actions.append(factory(**fields))
            except (ValidationError, TypeError, UnicodeEncodeError) as e:
                logger.warning(f"[Oracle] Dropping invalid {factory.__name__} entry: {fields.get('path') or fields}: {e}")

        for key, factory in (("createdFiles", CreateFile), ("created", CreateFile),
                             ("modifiedFiles", ModifyFile), ("updated", ModifyFile)):
            for path, content in self._content_entries(payload.get(key)):
                add(factory, path=path, content=content)

        for key in ("deletedFiles", "deleted"):
            entries = payload.get(key) or []
            if isinstance(entries, dict):
                entries = list(entries.keys())
            for entry in entries:
                path = entry.get("path") if isinstance(entry, dict) else entry
                add(DeleteFile, path=path)

        for entry in payload.get("renamedFiles") or []:
            if isinstance(entry, dict):
                add(RenameFile,
                    old_path=entry.get("oldPath") or entry.get("old_path"),
                    new_path=entry.get("newPath") or entry.get("new_path"))

        return actions

    @staticmethod
    def _content_entries(entries: Any) -> List[tuple]:
        """Normalize [{path, content}] lists and {path: content} dicts"""
        if not entries:
            return []
        if isinstance(entries, dict):
            return list(entries.items())
        if isinstance(entries, list):
            return [(e.get("path"), e.get("content")) for e in entries if isinstance(e, dict)]
        return []

    @staticmethod
    def _validate_generation(actions: List[FileAction]) -> None:
        written = [a for a in actions if isinstance(a, (CreateFile, ModifyFile))]
        if not any(a.path.endswith(".java") and ENTRY_POINT.search(a.content) for a in written):
            raise OracleParseError("no Java class extending JavaPlugin in response")
        if not any(Path(a.path).name == MANIFEST_FILE for a in written):
            raise OracleParseError(f"no {MANIFEST_FILE} in response")

    # ------------------------------------------------------------------
    # Prompt context
    # ------------------------------------------------------------------

    @staticmethod
    def _bounded_snapshot(context_snapshot: Union[str, Path]) -> str:
        if isinstance(context_snapshot, Path):
            text = context_snapshot.read_text(encoding="utf-8", errors="replace") if context_snapshot.exists() else ""
        else:
            text = context_snapshot or ""
        if len(text) > SNAPSHOT_PROMPT_CHARS:
            text = text[:SNAPSHOT_PROMPT_CHARS] + "\n... (snapshot truncated)"
        return text or "(empty project)"

    def _related_files(self, diagnostics: str, project_root: Path) -> str:
        blocks = []
        for name in self.diagnostics.mentioned_files(diagnostics):
            if len(blocks) >= self.max_correlated_files:
                break
            match = next(
                (p for p in sorted(project_root.rglob(name))
                 if p.is_file() and BUILD_OUTPUT_DIR not in p.relative_to(project_root).parts),
                None,
            )
            if match is None:
                continue
            content = match.read_text(encoding="utf-8", errors="replace")[:self.max_file_chars]
            blocks.append(f"File: {match.relative_to(project_root).as_posix()}\n{content}")
        return "\n\n".join(blocks) or "(no matching files found)"

    @staticmethod
    def _read_manifest(project_root: Path) -> str:
        manifest = project_root / RESOURCES_DIR / MANIFEST_FILE
        if manifest.is_file():
            return manifest.read_text(encoding="utf-8", errors="replace")
        return f"({MANIFEST_FILE} is missing)"

    @staticmethod
    def _repair_fallback(request_prompt: str, project_root: Path) -> List[FileAction]:
        """Scaffold actions plus deletion of every other Java source"""
        actions = generate_fallback_actions(request_prompt, project_root.name)
        keep = {a.path for a in actions}
        sources = project_root / JAVA_SOURCES_DIR
        if sources.is_dir():
            for java_file in sorted(sources.rglob("*.java")):
                rel = java_file.relative_to(project_root).as_posix()
                if rel not in keep:
                    actions.append(DeleteFile(path=rel))
        return actions


__all__ = ["GenerationOracleClient"]
