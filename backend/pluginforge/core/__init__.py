"""
Core Pipeline Components

These components are called only by the RepairLoopController:
1. TemplateExtractor - Scaffold archive → project root
2. SourceSnapshotCompiler - Project tree → one text file
3. GenerationOracleClient - Prompt + snapshot → file actions
4. FileTreeMutator - File actions → project tree
5. BuildToolRunner - Project tree → JAR (Maven)
6. DiagnosticExtractor - Build log → actionable error lines
7. ArtifactVerifier - JAR → missing required entries
"""
from .template_extractor import TemplateExtractor
from .snapshot import SourceSnapshotCompiler
from .diagnostics import DiagnosticExtractor
from .mutator import FileTreeMutator
from .builder import BuildToolRunner
from .verifier import ArtifactVerifier
from .oracle import GenerationOracleClient

__all__ = [
    "TemplateExtractor",
    "SourceSnapshotCompiler",
    "DiagnosticExtractor",
    "FileTreeMutator",
    "BuildToolRunner",
    "ArtifactVerifier",
    "GenerationOracleClient",
]
