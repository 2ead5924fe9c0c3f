"""
Diagnostic Extractor - Maven/javac output to actionable error lines

Maven logs are long and mostly noise. The repair prompt only needs the
lines that name what went wrong, so this component applies an ordered set
of matchers, keeps the de-duplicated union in log order, and truncates it
to a character budget.
"""
import re
import logging
from typing import List, Tuple

from pluginforge.config import DIAGNOSTIC_CHAR_BUDGET

logger = logging.getLogger(__name__)

# (name, pattern) in priority order; each pattern matches a single line
LINE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("javac_error", re.compile(r"^\[ERROR\]\s+\S+\.java:\[\d+,\d+\].*$")),
    ("cannot_find_symbol", re.compile(r"cannot find symbol", re.IGNORECASE)),
    ("missing_package", re.compile(r"package\s+[\w.]+\s+does not exist")),
    ("compilation_error", re.compile(r"COMPILATION ERROR")),
    ("failed_goal", re.compile(r"Failed to execute goal")),
    ("error_marker", re.compile(r"^\[ERROR\]\s*\S")),
]

# Follow-up lines javac prints under "cannot find symbol"
SYMBOL_DETAIL = re.compile(r"^\s*(\[ERROR\]\s*)?(symbol|location)\s*:")

FALLBACK_MARKERS = re.compile(r"error|fail|exception", re.IGNORECASE)

JAVA_FILE = re.compile(r"([A-Za-z_$][\w$]*\.java)")
RESOURCE_FILE = re.compile(r"\b([\w-]+\.(?:yml|yaml|xml|properties))\b")

# Maven help footer, never actionable
NOISE = re.compile(r"^\[ERROR\]\s*(->\s*\[Help|Re-run Maven|For more information|To see the full stack|$)")


class DiagnosticExtractor:
    """
    DiagnosticExtractor - Reduces a raw build log to its error lines
    """

    def __init__(self, char_budget: int = DIAGNOSTIC_CHAR_BUDGET, fallback_lines: int = 20):
        self.char_budget = char_budget
        self.fallback_lines = fallback_lines

    def extract(self, raw_log: str) -> str:
        """
        Extract actionable diagnostics from raw build output

        Returns:
            Newline-joined error lines, at most char_budget characters
        """
        lines = (raw_log or "").splitlines()
        selected = []
        seen = set()

        def keep(line: str):
            cleaned = line.rstrip()
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                selected.append(cleaned)

        for index, line in enumerate(lines):
            if NOISE.match(line):
                continue
            for name, pattern in LINE_PATTERNS:
                if not pattern.search(line):
                    continue
                keep(line)
                if name in ("javac_error", "cannot_find_symbol"):
                    for follow in lines[index + 1:index + 3]:
                        if SYMBOL_DETAIL.match(follow):
                            keep(follow)
                break

        if not selected:
            tail = [line for line in lines if FALLBACK_MARKERS.search(line)]
            for line in tail[-self.fallback_lines:]:
                keep(line)

        return self._truncate("\n".join(selected))

    def mentioned_files(self, diagnostics: str) -> List[str]:
        """File names (not paths) referenced by the diagnostics, in order of first mention"""
        names = []
        for pattern in (JAVA_FILE, RESOURCE_FILE):
            for match in pattern.finditer(diagnostics or ""):
                if match.group(1) not in names:
                    names.append(match.group(1))
        return names

    def _truncate(self, text: str) -> str:
        if len(text) <= self.char_budget:
            return text
        logger.debug(f"[Diagnostics] Truncating {len(text)} chars to {self.char_budget}")
        cut = text[:self.char_budget]
        # Do not end on half a line
        if "\n" in cut:
            cut = cut[:cut.rfind("\n")]
        return cut


__all__ = ["DiagnosticExtractor"]
