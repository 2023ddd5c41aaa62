"""
Hunk extraction around changed ranges.

Classification is a regex heuristic, not a parser: the result is a hint for
prompt construction, so near-misses are acceptable.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from diffreview.models import ChangedRange, CodeHunk, ReconstructedFile

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_MARGIN = 5

FUNCTION_PATTERN = re.compile(
    r"(?:\bfunction(?:\s*\*\s*|\s+)|\bdef\s+|\b(?:const|let|var)\s+)(\w+)\s*[=(]"
    r"|(\w+)\s*:\s*\([^)]*\)\s*=>"
)
CLASS_PATTERN = re.compile(r"\bclass\s+(\w+)")
INTERFACE_PATTERN = re.compile(r"\binterface\s+(\w+)")
METHOD_PATTERN = re.compile(r"(\w+)\s*\([^)]*\)\s*\{")

# Words that look like ``NAME(...) {`` but are never method names
CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch", "with", "function", "return"})


def _first_method_name(text: str) -> Optional[str]:
    for match in METHOD_PATTERN.finditer(text):
        if match.group(1) not in CONTROL_KEYWORDS:
            return match.group(1)
    return None


def classify_snippet(text: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Return ``(type, function_name, class_name)`` for a code snippet."""
    hunk_type = "other"
    function_name = None
    class_name = None

    function_match = FUNCTION_PATTERN.search(text)
    if function_match:
        function_name = function_match.group(1) or function_match.group(2)
        hunk_type = "function"

    class_match = CLASS_PATTERN.search(text)
    if class_match:
        class_name = class_match.group(1)
        hunk_type = "class"

    if function_match or class_match:
        return hunk_type, function_name, class_name

    interface_match = INTERFACE_PATTERN.search(text)
    if interface_match:
        return "interface", None, interface_match.group(1)

    method_name = _first_method_name(text)
    if method_name:
        return "method", method_name, None

    return hunk_type, None, None


def extract_hunks(
    file: ReconstructedFile,
    ranges: Iterable[ChangedRange],
    margin: int = DEFAULT_CONTEXT_MARGIN,
) -> List[CodeHunk]:
    """Build one hunk per changed range, padded by ``margin`` lines and clamped to the file."""
    lines = file.content.split("\n")
    line_count = len(lines)
    hunks = []

    for changed in ranges:
        # Both ends stay within [1, line_count], even for ranges past the end
        start_line = min(line_count, max(1, changed.start_line - margin))
        end_line = max(start_line, min(line_count, changed.end_line + margin))
        content = "\n".join(lines[start_line - 1:end_line])

        hunk_type, function_name, class_name = classify_snippet(content)
        hunks.append(CodeHunk(
            filename=file.filename,
            start_line=start_line,
            end_line=end_line,
            content=content,
            function_name=function_name,
            class_name=class_name,
            type=hunk_type,
        ))

    return hunks


def extract_all_hunks(
    files: Iterable[ReconstructedFile],
    ranges_by_file: Dict[str, List[ChangedRange]],
    margin: int = DEFAULT_CONTEXT_MARGIN,
) -> List[CodeHunk]:
    """Extract hunks for every file that has changed ranges."""
    hunks: List[CodeHunk] = []

    for file in files:
        ranges = ranges_by_file.get(file.filename, [])
        if not ranges:
            continue

        try:
            hunks.extend(extract_hunks(file, ranges, margin))
        except Exception as e:
            logger.warning(f"Failed to extract hunks from {file.filename}: {e}")

    return hunks
