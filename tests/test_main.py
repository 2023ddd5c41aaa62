"""
Tests for the command-line entry point.

Run with: pytest tests/
"""

import json

import pytest

from diffreview import main as cli
from diffreview.config import Settings
from diffreview.reviewer import MultiModelReviewer
from diffreview.static_analysis import StaticAnalysisOrchestrator
from diffreview.tools import SecurityScanTool


@pytest.fixture
def patch_reviewer(monkeypatch, tmp_path, fake_llm_factory):
    """Route the CLI to a reviewer backed by a scripted LLM."""

    def install(responses):
        llm = fake_llm_factory(responses)
        analyzer = StaticAnalysisOrchestrator(tools=[SecurityScanTool()], scratch_root=tmp_path / "scratch")

        def from_settings(settings):
            settings = settings.model_copy(update={"triage_model": "fast", "review_model": "deep"})
            return MultiModelReviewer(llm, settings, analyzer)

        monkeypatch.setattr(MultiModelReviewer, "from_settings", staticmethod(from_settings))
        return llm

    return install


def test_request_file_round_trip(tmp_path, patch_reviewer, new_ts_file_diff, triage_json, review_json):
    """A JSON request produces a camelCase report with provenance metadata."""
    patch_reviewer({"fast": triage_json, "deep": review_json})
    request_file = tmp_path / "request.json"
    request_file.write_text(json.dumps({"title": "Add login", "diff": new_ts_file_diff}))
    output_file = tmp_path / "out" / "report.json"

    exit_code = cli.main(["--request-file", str(request_file), "--output", str(output_file)])

    assert exit_code == 0
    report = json.loads(output_file.read_text())
    assert report["analysisMode"] == "flash-then-pro"
    assert report["proAnalysis"]["finalVerdict"] == "major_fixes"
    assert report["metadata"]["prompt_version"]


def test_diff_file_with_flags(tmp_path, patch_reviewer, new_ts_file_diff, review_json):
    """--force-deep and --no-static reach the pipeline."""
    llm = patch_reviewer({"deep": review_json})
    diff_file = tmp_path / "change.diff"
    diff_file.write_text(new_ts_file_diff)
    output_file = tmp_path / "report.json"

    exit_code = cli.main([
        "--diff-file", str(diff_file),
        "--title", "Add login",
        "--force-deep",
        "--no-static",
        "--output", str(output_file),
    ])

    assert exit_code == 0
    report = json.loads(output_file.read_text())
    assert report["analysisMode"] == "pro-only"
    assert report["staticAnalysis"] is None
    assert [c["model"] for c in llm.calls] == ["deep"]


def test_deep_failure_exit_code(tmp_path, patch_reviewer, failing_llm_error, new_ts_file_diff, triage_json):
    patch_reviewer({"fast": triage_json, "deep": failing_llm_error})
    request_file = tmp_path / "request.json"
    request_file.write_text(json.dumps({"title": "Add login", "diff": new_ts_file_diff}))

    exit_code = cli.main(["--request-file", str(request_file), "--output", str(tmp_path / "r.json")])

    assert exit_code == 2
    assert not (tmp_path / "r.json").exists()


def test_missing_request_file(tmp_path):
    assert cli.main(["--request-file", str(tmp_path / "missing.json")]) == 1


def test_load_request_applies_flags(tmp_path):
    request_file = tmp_path / "request.json"
    request_file.write_text(json.dumps({"title": "t", "diff": "", "enableStaticAnalysis": True}))
    args = cli.argparse.Namespace(
        request_file=str(request_file), diff_file=None, title=None, description="",
        force_deep=True, no_static=True,
    )

    request = cli.load_request(args)

    assert request.force_deep_analysis is True
    assert request.enable_static_analysis is False


def test_settings_flags_are_passed(monkeypatch, tmp_path, new_ts_file_diff):
    """--provider and model flags override the environment."""
    seen = {}

    def from_settings(settings: Settings):
        seen["settings"] = settings
        raise RuntimeError("stop here")

    monkeypatch.setattr(MultiModelReviewer, "from_settings", staticmethod(from_settings))
    request_file = tmp_path / "request.json"
    request_file.write_text(json.dumps({"title": "t", "diff": new_ts_file_diff}))

    exit_code = cli.main([
        "--request-file", str(request_file),
        "--provider", "local",
        "--review-model", "qwen2.5-coder",
    ])

    assert exit_code == 1
    assert seen["settings"].llm_provider == "local"
    assert seen["settings"].review_model == "qwen2.5-coder"
