"""
Tests for the static analysis orchestrator.

Run with: pytest tests/
"""

import pytest

from diffreview.diff_parser import reconstruct_files
from diffreview.models import AnalysisIssue, ReconstructedFile
from diffreview.static_analysis import (
    CATEGORY_ORDER,
    SEVERITY_ORDER,
    StaticAnalysisOrchestrator,
    WorkspaceError,
    prioritize_issues,
    scratch_workspace,
    write_files,
)
from diffreview.tools import AnalysisTool, SecurityScanTool, ToolExecutionError, ToolResult


class BrokenTool(AnalysisTool):
    name = "Broken"
    extensions = (".ts",)

    async def _execute(self, files, workspace, runner):
        raise ToolExecutionError("Cannot execute broken-tool")


class ForeignFileTool(AnalysisTool):
    """Reports one issue on an input file and one on a file nobody asked about."""

    name = "Foreign"
    extensions = (".ts",)

    async def _execute(self, files, workspace, runner):
        issues = [
            _issue("warning", "style", file=files[0].filename),
            _issue("error", "security", file="node_modules/lib/index.d.ts"),
        ]
        return issues, None


class WorkspaceSpy(AnalysisTool):
    """Remembers the workspace it ran in."""

    name = "Spy"
    extensions = (".ts",)
    seen = None

    async def _execute(self, files, workspace, runner):
        WorkspaceSpy.seen = workspace
        assert (workspace / files[0].filename).read_text() == files[0].content
        return [], None


def _issue(severity, category, file="a.ts", rule="r"):
    return AnalysisIssue(
        tool="t", file=file, line=1, severity=severity, rule=rule, message="m", category=category
    )


def _assert_sorted(issues):
    keys = [(SEVERITY_ORDER[i.severity], CATEGORY_ORDER[i.category]) for i in issues]
    assert keys == sorted(keys, reverse=True)


def test_prioritize_issues_orders_by_severity_then_category():
    """Errors first; within a severity, security before style."""
    issues = [
        _issue("info", "security"),
        _issue("warning", "style"),
        _issue("error", "style"),
        _issue("warning", "security"),
        _issue("error", "performance"),
        _issue("error", "security"),
    ]
    ordered = prioritize_issues(issues)

    _assert_sorted(ordered)
    assert [(i.severity, i.category) for i in ordered[:3]] == [
        ("error", "security"),
        ("error", "performance"),
        ("error", "style"),
    ]


def test_prioritize_issues_is_stable():
    """Equal keys keep tool order."""
    issues = [_issue("warning", "style", rule="first"), _issue("warning", "style", rule="second")]
    assert [i.rule for i in prioritize_issues(issues)] == ["first", "second"]


def test_scratch_workspace_is_removed(tmp_path):
    """The directory is gone after the block, even on error."""
    with pytest.raises(RuntimeError):
        with scratch_workspace(tmp_path) as workspace:
            assert workspace.exists()
            raise RuntimeError("boom")
    assert not workspace.exists()


def test_scratch_workspace_creation_failure(tmp_path):
    """A root that is a regular file cannot host a workspace."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(WorkspaceError):
        with scratch_workspace(blocker):
            pass


def test_write_files_skips_escaping_paths(tmp_path):
    """Paths leaving the workspace are not written."""
    files = [
        ReconstructedFile(filename="src/ok.ts", content="ok"),
        ReconstructedFile(filename="../escape.ts", content="bad"),
    ]
    workspace = tmp_path / "ws"
    workspace.mkdir()

    written = write_files(workspace, files)

    assert [f.filename for f in written] == ["src/ok.ts"]
    assert (workspace / "src" / "ok.ts").read_text() == "ok"
    assert not (tmp_path / "escape.ts").exists()


@pytest.mark.asyncio
async def test_analyze_merges_and_sorts(tmp_path, new_ts_file_diff):
    """Scanner findings are summarized and ordered; hunks come from the diff."""
    orchestrator = StaticAnalysisOrchestrator(tools=[SecurityScanTool()], scratch_root=tmp_path)
    files = reconstruct_files(new_ts_file_diff)

    result = await orchestrator.analyze(files, new_ts_file_diff)

    assert result.summary.tools_run == ["Security Scanner"]
    assert result.summary.total_issues == len(result.issues) == 5
    assert result.summary.error_count == 4
    assert result.summary.info_count == 1
    assert result.summary.hunks_extracted == 1
    assert result.code_hunks[0].filename == "src/auth.ts"
    assert all(i.file == "src/auth.ts" for i in result.issues)
    _assert_sorted(result.issues)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_analyze_is_idempotent(tmp_path, new_ts_file_diff):
    """Same input, same sorted issues."""
    orchestrator = StaticAnalysisOrchestrator(tools=[SecurityScanTool()], scratch_root=tmp_path)
    files = reconstruct_files(new_ts_file_diff)

    first = await orchestrator.analyze(files, new_ts_file_diff)
    second = await orchestrator.analyze(files, new_ts_file_diff)

    assert first.issues == second.issues


@pytest.mark.asyncio
async def test_workspace_failure_keeps_hunks(tmp_path, new_ts_file_diff):
    """Without a workspace there are no issues and no tools, but hunks survive."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    orchestrator = StaticAnalysisOrchestrator(tools=[SecurityScanTool()], scratch_root=blocker)

    result = await orchestrator.analyze(reconstruct_files(new_ts_file_diff), new_ts_file_diff)

    assert result.issues == []
    assert result.summary.tools_run == []
    assert len(result.code_hunks) == 1
    assert "workspaceError" in result.tool_results


@pytest.mark.asyncio
async def test_failed_tool_is_omitted(tmp_path, new_ts_file_diff):
    """A tool that cannot run contributes nothing and is not listed."""
    orchestrator = StaticAnalysisOrchestrator(tools=[BrokenTool(), SecurityScanTool()], scratch_root=tmp_path)

    result = await orchestrator.analyze(reconstruct_files(new_ts_file_diff), new_ts_file_diff)

    assert result.summary.tools_run == ["Security Scanner"]
    assert result.tool_results["Broken"] == {"error": "Cannot execute broken-tool"}
    assert all(i.tool == "Security Scanner" for i in result.issues)


@pytest.mark.asyncio
async def test_issues_outside_input_files_are_dropped(tmp_path, new_ts_file_diff):
    """Only files from the diff may carry issues."""
    orchestrator = StaticAnalysisOrchestrator(tools=[ForeignFileTool()], scratch_root=tmp_path)

    result = await orchestrator.analyze(reconstruct_files(new_ts_file_diff), new_ts_file_diff)

    assert [i.file for i in result.issues] == ["src/auth.ts"]


@pytest.mark.asyncio
async def test_files_are_materialized_then_removed(tmp_path, new_ts_file_diff):
    """Tools see the rebuilt files; the directory is cleaned up afterwards."""
    orchestrator = StaticAnalysisOrchestrator(tools=[WorkspaceSpy()], scratch_root=tmp_path)

    result = await orchestrator.analyze(reconstruct_files(new_ts_file_diff), new_ts_file_diff)

    assert result.summary.tools_run == ["Spy"]
    assert WorkspaceSpy.seen is not None
    assert not WorkspaceSpy.seen.exists()


@pytest.mark.asyncio
async def test_no_applicable_tools(tmp_path):
    """A diff with no script files runs only what selects them."""
    diff = "diff --git a/notes.md b/notes.md\n@@ -1 +1 @@\n-a\n+b"
    orchestrator = StaticAnalysisOrchestrator(tools=[BrokenTool()], scratch_root=tmp_path)

    result = await orchestrator.analyze(reconstruct_files(diff), diff)

    assert result.summary.tools_run == []
    assert result.issues == []
    assert isinstance(result.tool_results, dict)


def test_tool_result_defaults():
    result = ToolResult(tool="x", ok=True)
    assert result.issues == []
    assert result.error is None


@pytest.mark.asyncio
async def test_unwritable_file_still_scanned(tmp_path):
    """A file that cannot be materialized is skipped by external tools only."""
    files = [
        ReconstructedFile(filename="lib", content="plain text"),
        ReconstructedFile(filename="lib/a.js", content="const r = eval(input);"),
    ]
    diff = (
        "diff --git a/lib b/lib\n@@ -0,0 +1 @@\n+plain text\n"
        "diff --git a/lib/a.js b/lib/a.js\n@@ -0,0 +1 @@\n+const r = eval(input);"
    )
    orchestrator = StaticAnalysisOrchestrator(tools=[SecurityScanTool()], scratch_root=tmp_path)

    result = await orchestrator.analyze(files, diff)

    assert result.summary.tools_run == ["Security Scanner"]
    assert "workspaceError" not in result.tool_results
    assert [(i.file, i.rule) for i in result.issues] == [("lib/a.js", "no-eval")]


def test_write_files_skips_unwritable_paths(tmp_path):
    """A path blocked by an existing file is skipped, not fatal."""
    files = [
        ReconstructedFile(filename="lib", content="plain text"),
        ReconstructedFile(filename="lib/a.js", content="x"),
        ReconstructedFile(filename="src/b.js", content="y"),
    ]
    written = write_files(tmp_path, files)

    assert [f.filename for f in written] == ["lib", "src/b.js"]
