"""
Unified diff parsing.

Best-effort: malformed headers are skipped, never raised. Only what the
review pipeline needs is extracted (changed ranges and post-change text).
"""

import re
from typing import Dict, List, Optional

from diffreview.models import ChangedRange, FileChange, ReconstructedFile

FILE_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
METADATA_PREFIXES = ("+++", "---", "index")
NO_NEWLINE_MARKER = "\\ No newline at end of file"


def _file_from_header(line: str) -> Optional[str]:
    match = FILE_HEADER.match(line)
    return match.group(2) if match else None


def parse_hunk_header(line: str) -> Optional[ChangedRange]:
    """Resolve an ``@@ -a,b +c,d @@`` header to its post-change range, file left blank."""
    match = HUNK_HEADER.match(line)
    if not match:
        return None

    # +0,0 (file emptied) still points at line 1
    start = max(1, int(match.group(3)))
    # A zero length (pure deletion) still marks the line it happened at
    length = int(match.group(4) or "1") or 1
    return ChangedRange(file="", start_line=start, end_line=start + length - 1)


def parse_changed_ranges(diff: str) -> Dict[str, List[ChangedRange]]:
    """Map each file in the diff to its changed ranges, in discovery order."""
    ranges: Dict[str, List[ChangedRange]] = {}
    current_file: Optional[str] = None

    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            current_file = _file_from_header(line)
            continue

        if line.startswith("@@") and current_file:
            header_range = parse_hunk_header(line)
            if header_range is None:
                continue
            ranges.setdefault(current_file, []).append(
                header_range.model_copy(update={"file": current_file})
            )

    return ranges


def count_hunk_headers(diff: str) -> int:
    """Number of resolvable hunk headers that belong to a file section."""
    return sum(len(file_ranges) for file_ranges in parse_changed_ranges(diff).values())


def reconstruct_files(diff: str) -> List[ReconstructedFile]:
    """
    Rebuild the post-change content of every file from context and added lines.

    Line N of the content is post-change line N: lines the diff does not
    show are filled with empty lines. Removed lines and diff metadata are
    dropped. Files whose section carries no body lines (binary, mode-only
    or pure deletions) are omitted.
    """
    files: List[ReconstructedFile] = []
    current_file: Optional[str] = None
    current_content: List[str] = []
    has_body = False
    in_hunk = False

    def flush() -> None:
        if current_file and has_body:
            files.append(ReconstructedFile(filename=current_file, content="\n".join(current_content)))

    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            flush()
            current_file = _file_from_header(line)
            current_content = []
            has_body = False
            in_hunk = False
            continue

        if line.startswith("@@"):
            header_range = parse_hunk_header(line)
            in_hunk = header_range is not None
            if in_hunk:
                gap = header_range.start_line - 1 - len(current_content)
                current_content.extend([""] * max(0, gap))
            continue

        if not in_hunk or line.startswith(METADATA_PREFIXES) or line == NO_NEWLINE_MARKER:
            continue

        if line.startswith("+") or line.startswith(" "):
            current_content.append(line[1:])
            has_body = True
        # Removed lines are skipped entirely

    flush()
    return files


def summarize_file_changes(diff: str) -> List[FileChange]:
    """Per-file addition/deletion counts, for callers that have no FileChange summary."""
    counts: Dict[str, List[int]] = {}
    current_file: Optional[str] = None

    for line in diff.split("\n"):
        if line.startswith("diff --git"):
            current_file = _file_from_header(line)
            if current_file:
                counts.setdefault(current_file, [0, 0])
        elif current_file is None or line.startswith(METADATA_PREFIXES):
            continue
        elif line.startswith("+"):
            counts[current_file][0] += 1
        elif line.startswith("-"):
            counts[current_file][1] += 1

    return [
        FileChange(filename=name, additions=added, deletions=removed, changes=added + removed)
        for name, (added, removed) in counts.items()
    ]
