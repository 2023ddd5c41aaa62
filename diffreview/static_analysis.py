"""
Static analysis orchestration.

Materializes candidate files into a private scratch directory, runs the
applicable tools concurrently, and merges their findings into one
priority-ordered list. Tool failures are absorbed; only workspace setup
failure ends the stage early, and the workspace is always removed.
"""

import asyncio
import logging
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from diffreview.diff_parser import parse_changed_ranges
from diffreview.hunks import DEFAULT_CONTEXT_MARGIN, extract_all_hunks
from diffreview.models import (
    AnalysisIssue,
    CodeHunk,
    ReconstructedFile,
    StaticAnalysisResult,
    StaticAnalysisSummary,
)
from diffreview.tools import AnalysisTool, CommandRunner, ToolResult, default_tools

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"error": 3, "warning": 2, "info": 1}
CATEGORY_ORDER = {
    "security": 5,
    "performance": 4,
    "type": 3,
    "maintainability": 2,
    "style": 1,
    "syntax": 1,
}


class WorkspaceError(Exception):
    """Scratch workspace could not be created."""
    pass


@contextmanager
def scratch_workspace(root: Optional[Path] = None) -> Iterator[Path]:
    """Create a uniquely named directory and remove it on every exit path."""
    try:
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix="diffreview-", dir=str(root) if root else None))
    except OSError as e:
        raise WorkspaceError(f"Failed to create scratch directory: {e}")

    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def write_files(workspace: Path, files: Sequence[ReconstructedFile]) -> List[ReconstructedFile]:
    """
    Write files under the workspace, preserving relative paths.

    Files that escape the workspace or cannot be written are skipped.
    Returns what was written.
    """
    root = workspace.resolve()
    written = []

    for file in files:
        target = (workspace / file.filename).resolve()
        try:
            target.relative_to(root)
        except ValueError:
            logger.warning(f"Skipping file outside the workspace: {file.filename}")
            continue

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(file.content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Skipping file that cannot be written: {file.filename}: {e}")
            continue
        written.append(file)

    return written


def prioritize_issues(issues: Sequence[AnalysisIssue]) -> List[AnalysisIssue]:
    """Sort by severity, then category importance. Stable for equal keys."""
    return sorted(
        issues,
        key=lambda issue: (-SEVERITY_ORDER[issue.severity], -CATEGORY_ORDER[issue.category]),
    )


def summarize(
    issues: Sequence[AnalysisIssue],
    tools_run: List[str],
    hunks: Sequence[CodeHunk],
    started: float,
) -> StaticAnalysisSummary:
    return StaticAnalysisSummary(
        total_issues=len(issues),
        error_count=sum(1 for i in issues if i.severity == "error"),
        warning_count=sum(1 for i in issues if i.severity == "warning"),
        info_count=sum(1 for i in issues if i.severity == "info"),
        tools_run=tools_run,
        hunks_extracted=len(hunks),
        analysis_time_ms=int((time.time() - started) * 1000),
    )


class StaticAnalysisOrchestrator:
    """
    Runs hunk extraction and all analysis tools for one change set.

    Construct once and pass it where needed; each ``analyze`` call owns its
    own scratch directory, so concurrent calls do not interfere.
    """

    def __init__(
        self,
        tools: Optional[Sequence[AnalysisTool]] = None,
        runner: Optional[CommandRunner] = None,
        scratch_root: Optional[Path] = None,
        context_margin: int = DEFAULT_CONTEXT_MARGIN,
    ):
        self.tools = list(tools) if tools is not None else default_tools()
        self.runner = runner or CommandRunner()
        self.scratch_root = scratch_root
        self.context_margin = context_margin

    async def analyze(self, files: Sequence[ReconstructedFile], diff: str) -> StaticAnalysisResult:
        """
        Analyze reconstructed files from one diff.

        Workflow:
        1. Extract code hunks around changed ranges (always)
        2. Materialize files into a scratch workspace
        3. Run applicable tools concurrently, merge and sort their issues

        Never raises: a workspace failure returns the hunks with no issues.
        """
        started = time.time()

        # Step 1: Hunks come from the diff alone
        hunks = extract_all_hunks(files, parse_changed_ranges(diff), self.context_margin)
        logger.info(f"Extracted {len(hunks)} code hunks from {len(files)} files")

        # Step 2-3: Tools need the workspace
        try:
            tool_results = await self._run_tools(files)
        except WorkspaceError as e:
            logger.warning(f"Static analysis skipped: {e}")
            return StaticAnalysisResult(
                issues=[],
                code_hunks=hunks,
                summary=summarize([], [], hunks, started),
                tool_results={"workspaceError": str(e)},
            )

        known_files = {f.filename for f in files}
        issues: List[AnalysisIssue] = []
        tools_run: List[str] = []
        raw = {}

        for result in tool_results:
            raw[result.tool] = result.raw if result.ok else {"error": result.error}
            if not result.ok:
                continue
            tools_run.append(result.tool)
            issues.extend(i for i in result.issues if i.file in known_files)

        issues = prioritize_issues(issues)
        summary = summarize(issues, tools_run, hunks, started)
        logger.info(
            f"Static analysis completed in {summary.analysis_time_ms}ms: "
            f"{summary.total_issues} issues from {', '.join(tools_run) or 'no tools'}"
        )

        return StaticAnalysisResult(issues=issues, code_hunks=hunks, summary=summary, tool_results=raw)

    async def _run_tools(self, files: Sequence[ReconstructedFile]) -> List[ToolResult]:
        with scratch_workspace(self.scratch_root) as workspace:
            written = write_files(workspace, files)

            jobs = []
            for tool in self.tools:
                selected = tool.select(written if tool.needs_workspace else files)
                if selected:
                    jobs.append(tool.run(selected, workspace, self.runner))

            # Tools write to disjoint paths and share no state
            return list(await asyncio.gather(*jobs))
