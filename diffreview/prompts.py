"""
LLM prompts for triage and deep review.

Prompts are versioned and tracked in Git for rollback capability.
"""

from collections import Counter
from typing import List, Optional, Sequence

from diffreview.models import AnalysisIssue, CodeHunk, FileChange, FlashTriageResult, ReviewContext, StaticAnalysisResult

PROMPT_VERSION = "v2.0"

TRIAGE_DIFF_CHARS = 2000
STATIC_TOP_ISSUES = 10

TRIAGE_SYSTEM_PROMPT = """You are a senior software engineer doing a QUICK code review triage.

Be fast but accurate. Focus on obvious problems and complexity assessment.

Return ONLY a JSON object, no markdown formatting."""

REVIEW_SYSTEM_PROMPT = """You are a SENIOR SOFTWARE ARCHITECT conducting a comprehensive code review.

Your role is ADVISORY ONLY. Surface issues with concrete, actionable fixes.

SEVERITY GUIDELINES:
- HIGH: could cause a production incident, data loss or a security breach
- MEDIUM: likely bug or maintainability problem worth fixing before merge
- LOW: improvement that can wait

VERDICT:
- safe: no changes needed
- minor_changes: small fixes recommended
- major_fixes: must not merge as is

Return ONLY the JSON object, no markdown formatting."""

LANGUAGES = {
    "ts": "TypeScript", "tsx": "TypeScript React",
    "js": "JavaScript", "jsx": "JavaScript React",
    "py": "Python", "java": "Java", "go": "Go",
    "rs": "Rust", "php": "PHP", "rb": "Ruby",
    "swift": "Swift", "kt": "Kotlin", "dart": "Dart",
}


def detect_primary_language(files: Sequence[FileChange]) -> str:
    """Most common file extension among the changed files, as a language name."""
    extensions = [f.filename.rsplit(".", 1)[-1].lower() for f in files if "." in f.filename]
    if not files:
        return "Unknown"
    if not extensions:
        return "Mixed"
    primary = Counter(extensions).most_common(1)[0][0]
    return LANGUAGES.get(primary, primary)


def describe_file_types(files: Sequence[FileChange]) -> str:
    kinds = []
    for f in files:
        name = f.filename.lower()
        if "test" in name or "spec" in name:
            kind = "Tests"
        elif "config" in name or name.endswith((".json", ".yml", ".yaml")):
            kind = "Config"
        elif "api" in name or "route" in name or "controller" in name:
            kind = "API/Backend"
        elif "util" in name or "helper" in name:
            kind = "Utilities"
        else:
            kind = "Source Code"
        if kind not in kinds:
            kinds.append(kind)
    return ", ".join(kinds) or "Unknown"


def build_file_summary(files: Sequence[FileChange]) -> str:
    return "\n".join(f"- {f.filename}: +{f.additions} -{f.deletions}" for f in files)


def build_static_analysis_summary(result: Optional[StaticAnalysisResult]) -> str:
    """Static analysis section: counts, top issues and an overflow count."""
    if result is None:
        return ""

    summary = result.summary
    if summary.total_issues == 0:
        return "\n## STATIC ANALYSIS RESULTS\nNo issues found by static analysis tools\n"

    top_issues = "\n".join(_format_issue(issue) for issue in result.issues[:STATIC_TOP_ISSUES])
    overflow = ""
    if summary.total_issues > STATIC_TOP_ISSUES:
        overflow = f"\n...and {summary.total_issues - STATIC_TOP_ISSUES} more issues"

    return f"""
## STATIC ANALYSIS RESULTS
**Tools Used:** {', '.join(summary.tools_run)}
**Issues Found:** {summary.total_issues} ({summary.error_count} errors, {summary.warning_count} warnings)

**Top Issues:**
{top_issues}
{overflow}
"""


def _format_issue(issue: AnalysisIssue) -> str:
    return f"- **{issue.file}:{issue.line}** [{issue.severity.upper()}] {issue.message} ({issue.tool}: {issue.rule})"


def build_context_sections(context: Optional[ReviewContext]) -> str:
    """CI and branch sections; empty when no context was supplied."""
    if context is None:
        return ""

    sections = ""

    if context.cicd_context:
        ci = context.cicd_context
        sections += f"""
## CI/CD STATUS
- **Checks:** {ci.total_checks} (passing: {ci.passing} | failing: {ci.failing})"""
        failing = [run.name for run in ci.check_runs if run.conclusion == "failure"]
        if ci.failing > 0 and failing:
            sections += f"\n- **Failing Checks:** {', '.join(failing)}"

    if context.branch_context:
        branch = context.branch_context
        status = "Mergeable" if branch.mergeable else "Conflicts"
        sections += f"""
## BRANCH CONTEXT
- **Branch:** {branch.head_branch} -> {branch.base_branch}
- **Status:** {status} ({branch.mergeable_state})
- **Position:** {branch.ahead_by} ahead, {branch.behind_by} behind"""

    return sections


def build_hunks_summary(hunks: Sequence[CodeHunk]) -> str:
    """Names of the functions and classes the change touches."""
    if not hunks:
        return ""

    function_hunks = [h for h in hunks if h.type in ("function", "method") and h.function_name]
    class_hunks = [h for h in hunks if h.type in ("class", "interface") and h.class_name]

    summary = f"""
## CODE STRUCTURE ANALYSIS
**Extracted Hunks:** {len(hunks)} code blocks"""

    if function_hunks:
        lines = "\n".join(
            f"- {h.function_name} in {h.filename} (lines {h.start_line}-{h.end_line})" for h in function_hunks
        )
        summary += f"\n**Functions/Methods Modified:**\n{lines}"

    if class_hunks:
        lines = "\n".join(
            f"- {h.class_name} in {h.filename} (lines {h.start_line}-{h.end_line})" for h in class_hunks
        )
        summary += f"\n**Classes Modified:**\n{lines}"

    return summary


def build_triage_prompt(title: str, diff: str, files: Sequence[FileChange]) -> str:
    """Bounded prompt for the cheap pass: title, files and the start of the diff."""
    file_summary = ", ".join(f"{f.filename}: +{f.additions} -{f.deletions}" for f in files)
    total_changes = sum(f.changes for f in files)
    truncated = "...[truncated]" if len(diff) > TRIAGE_DIFF_CHARS else ""

    return f"""PR: "{title}"
Files: {file_summary}
Changes: {total_changes} total

Code diff (first {TRIAGE_DIFF_CHARS} chars):
```diff
{diff[:TRIAGE_DIFF_CHARS]}{truncated}
```

QUICK ASSESSMENT TASK:
1. What does this PR do? (1 sentence)
2. Spot any obvious issues (security, bugs, performance)
3. Assess complexity: LOW (simple changes), MEDIUM (moderate complexity), HIGH (complex/risky)
4. Should this get deep analysis? (true if complex, security-related, or has potential issues)"""


def build_review_prompt(
    title: str,
    description: str,
    diff: str,
    files: Sequence[FileChange],
    file_summary: str,
    static_summary: str = "",
    context_sections: str = "",
    hunks_summary: str = "",
    triage: Optional[FlashTriageResult] = None,
) -> str:
    """Full prompt for the deep review pass."""
    parts: List[str] = []

    if triage:
        parts.append(f"QUICK TRIAGE RESULTS: {triage.summary} (Complexity: {triage.complexity})\n")

    parts.append(f"""## PR CONTEXT
**Title:** {title}
**Description:** {description or 'No description provided'}

**Files Changed:**
{file_summary}

**Repository Context:**
- Language: {detect_primary_language(files)}
- File Types: {describe_file_types(files)}
""")

    for section in (static_summary, context_sections, hunks_summary):
        if section:
            parts.append(section)

    parts.append(f"""
## COMPLETE DIFF
```diff
{diff}
```

## REVIEW REQUIREMENTS
1. SECURITY: authentication flaws, input validation, injection, hardcoded secrets, unsafe deserialization
2. PERFORMANCE: N+1 queries, memory leaks, inefficient algorithms, resource management
3. LOGIC & CORRECTNESS: edge cases, error handling, race conditions, API contract violations
4. ARCHITECTURE & MAINTAINABILITY: duplication, tight coupling, missing abstractions
5. TESTING: missing coverage for critical paths and edge cases

## ANALYSIS INSTRUCTIONS
1. Validate static analysis findings: confirm which are real issues
2. Find issues static analysis missed
3. Give a specific file and line, the problem, a concrete fix and the reasoning for every finding
4. Prioritize HIGH severity issues that could cause production problems""")

    return "\n".join(parts)
