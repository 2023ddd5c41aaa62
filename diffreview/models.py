"""
Data models for the review pipeline.
Using Pydantic for validation and type safety.

Field names are snake_case in Python and camelCase on the wire, so reports
serialised with ``model_dump(by_alias=True)`` keep the shape external
consumers expect.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


Severity = Literal["error", "warning", "info"]
IssueCategory = Literal["syntax", "type", "security", "performance", "style", "maintainability"]
HunkType = Literal["function", "class", "method", "interface", "other"]
Complexity = Literal["LOW", "MEDIUM", "HIGH"]
SuggestionSeverity = Literal["HIGH", "MEDIUM", "LOW"]
SuggestionCategory = Literal["Security", "Performance", "Logic", "Architecture", "Style", "Testing"]
Verdict = Literal["safe", "minor_changes", "major_fixes"]
AnalysisMode = Literal["flash-only", "flash-then-pro", "pro-only"]
AnalysisDepth = Literal["shallow", "moderate", "deep"]


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class FrozenModel(CamelModel):
    model_config = ConfigDict(frozen=True)


# ── Diff inputs ─────────────────────────────────────────────────────────────

class FileChange(CamelModel):
    """Per-file change counts supplied alongside the diff."""

    filename: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0


class ChangedRange(FrozenModel):
    """Changed line range in post-change numbering (1-indexed, inclusive)."""

    file: str
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _check_order(self) -> "ChangedRange":
        if self.end_line < self.start_line:
            raise ValueError("end_line must be >= start_line")
        return self


class ReconstructedFile(FrozenModel):
    """Post-change text of a file rebuilt from the diff body."""

    filename: str
    content: str


class CodeHunk(FrozenModel):
    """Code snippet surrounding one changed range."""

    filename: str
    start_line: int
    end_line: int
    content: str
    function_name: Optional[str] = None
    class_name: Optional[str] = None
    type: HunkType = "other"


# ── Static analysis ─────────────────────────────────────────────────────────

class AnalysisIssue(FrozenModel):
    """Single finding reported by one analysis tool."""

    tool: str
    file: str
    line: int
    column: Optional[int] = None
    severity: Severity
    rule: str
    message: str
    category: IssueCategory
    suggestion: Optional[str] = None


class StaticAnalysisSummary(CamelModel):
    total_issues: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    tools_run: List[str] = Field(default_factory=list)
    hunks_extracted: int = 0
    analysis_time_ms: int = 0


class StaticAnalysisResult(CamelModel):
    """Merged output of the static analysis stage."""

    issues: List[AnalysisIssue] = Field(default_factory=list)
    code_hunks: List[CodeHunk] = Field(default_factory=list)
    summary: StaticAnalysisSummary = Field(default_factory=StaticAnalysisSummary)
    tool_results: Dict[str, Any] = Field(default_factory=dict)


# ── Context budget ──────────────────────────────────────────────────────────

class SectionSize(CamelModel):
    chars: int
    tokens: int
    lines: Optional[int] = None


class BudgetTotal(CamelModel):
    chars: int
    estimated_tokens: int
    model_limit: int
    utilization_percent: float


class ContextBudget(CamelModel):
    """Estimated token cost of every prompt section."""

    title: SectionSize
    description: SectionSize
    diff: SectionSize
    file_summary: SectionSize
    static_summary: SectionSize
    context_sections: SectionSize
    total: BudgetTotal

    def sections(self) -> Dict[str, SectionSize]:
        return {
            "title": self.title,
            "description": self.description,
            "diff": self.diff,
            "file_summary": self.file_summary,
            "static_summary": self.static_summary,
            "context_sections": self.context_sections,
        }


# ── Auxiliary review context ────────────────────────────────────────────────

class CheckRun(CamelModel):
    name: str
    conclusion: Optional[str] = None


class CIContext(CamelModel):
    total_checks: int = 0
    passing: int = 0
    failing: int = 0
    check_runs: List[CheckRun] = Field(default_factory=list)


class BranchContext(CamelModel):
    head_branch: str
    base_branch: str
    mergeable: Optional[bool] = None
    mergeable_state: str = "unknown"
    ahead_by: int = 0
    behind_by: int = 0


class ReviewContext(CamelModel):
    """Optional CI and branch information added to the deep review prompt."""

    cicd_context: Optional[CIContext] = None
    branch_context: Optional[BranchContext] = None


# ── LLM results ─────────────────────────────────────────────────────────────

class FlashTriageResult(CamelModel):
    """Output of the cheap triage pass."""

    summary: str
    quick_issues: List[str] = Field(default_factory=list)
    complexity: Complexity
    recommend_deep_analysis: bool


class CodeSuggestion(CamelModel):
    """One actionable finding from the deep review."""

    file: str
    line: Optional[int] = None
    severity: SuggestionSeverity
    category: SuggestionCategory
    issue: str
    suggestion: str
    patch: Optional[str] = None
    reasoning: str


class TestRecommendation(CamelModel):
    __test__ = False

    file: str
    suggestion: str


class StaticAnalysisIntegration(CamelModel):
    issues_found: int = 0
    tools_used: List[str] = Field(default_factory=list)
    high_priority_findings: List[str] = Field(default_factory=list)


class ContextMetrics(CamelModel):
    files_analyzed: int = 0
    hunks_extracted: int = 0
    total_tokens_estimate: int = 0
    analysis_depth: AnalysisDepth = "shallow"


class StructuredReviewResult(CamelModel):
    """Output of the deep review pass.

    ``potential_issues`` and ``refactor_suggestions`` hold plain placeholder
    strings when the model response could only be salvaged field by field.
    """

    summary: str
    potential_issues: Union[List[CodeSuggestion], str] = Field(default_factory=list)
    refactor_suggestions: Union[List[CodeSuggestion], str] = Field(default_factory=list)
    test_recommendations: List[TestRecommendation] = Field(default_factory=list)
    final_verdict: Verdict = "minor_changes"
    static_analysis_integration: StaticAnalysisIntegration = Field(default_factory=StaticAnalysisIntegration)
    context_metrics: ContextMetrics = Field(default_factory=ContextMetrics)
    parse_stage: Literal["strict", "extracted", "salvaged"] = "strict"


class ReviewSchema(CamelModel):
    """Output schema requested from the deep review model."""

    summary: str
    potential_issues: List[CodeSuggestion]
    refactor_suggestions: List[CodeSuggestion]
    test_recommendations: List[TestRecommendation]
    final_verdict: Verdict


class MultiModelResult(CamelModel):
    """Complete review output, one per request."""

    model_config = ConfigDict(frozen=True)

    flash_analysis: Optional[FlashTriageResult] = None
    pro_analysis: StructuredReviewResult
    analysis_mode: AnalysisMode
    total_cost: float
    processing_time_ms: int
    static_analysis: Optional[StaticAnalysisResult] = None


# ── Requests ────────────────────────────────────────────────────────────────

class ReviewRequest(CamelModel):
    """Review input as loaded by the CLI and HTTP layer."""

    title: str
    description: str = ""
    diff: str = Field(..., description="Full unified diff content")
    changed_files: List[FileChange] = Field(default_factory=list)
    enable_static_analysis: bool = True
    force_deep_analysis: bool = False
    context: Optional[ReviewContext] = None
