"""
Multi-model review coordinator.

Orchestrates static analysis + a cheap triage pass + a deep review pass.
Handles failures gracefully: triage errors, tool errors and malformed model
output all degrade to documented defaults. Only a failed deep review call
reaches the caller, because no usable report exists without it.
"""

import asyncio
import logging
import time
from typing import Optional, Sequence

from diffreview.budget import classify_depth, measure_context
from diffreview.config import Settings
from diffreview.diff_parser import reconstruct_files, summarize_file_changes
from diffreview.llm import LLMClient, ReviewerError
from diffreview.models import (
    ContextMetrics,
    FileChange,
    FlashTriageResult,
    MultiModelResult,
    ReviewContext,
    ReviewRequest,
    ReviewSchema,
    StaticAnalysisIntegration,
    StaticAnalysisResult,
    StructuredReviewResult,
)
from diffreview.prompts import (
    PROMPT_VERSION,
    REVIEW_SYSTEM_PROMPT,
    TRIAGE_SYSTEM_PROMPT,
    build_context_sections,
    build_file_summary,
    build_hunks_summary,
    build_review_prompt,
    build_static_analysis_summary,
    build_triage_prompt,
)
from diffreview.response_parser import coerce_review, parse_review_response, parse_triage_response
from diffreview.static_analysis import StaticAnalysisOrchestrator
from diffreview.tools import CommandRunner, default_tools

logger = logging.getLogger(__name__)

# Nominal cost units per pass
FLASH_PASS_COST = 0.1
DEEP_PASS_COST = 1.0

HIGH_PRIORITY_FINDINGS = 5

DEFAULT_TRIAGE = FlashTriageResult(
    summary="Quick analysis failed",
    quick_issues=["Flash analysis error - proceeding with deep analysis"],
    complexity="MEDIUM",
    recommend_deep_analysis=True,
)


class DeepReviewError(ReviewerError):
    """The deep review call failed; no report can be produced."""
    pass


def build_static_integration(static: Optional[StaticAnalysisResult]) -> StaticAnalysisIntegration:
    if static is None:
        return StaticAnalysisIntegration()

    top_errors = [issue for issue in static.issues if issue.severity == "error"][:HIGH_PRIORITY_FINDINGS]
    return StaticAnalysisIntegration(
        issues_found=static.summary.total_issues,
        tools_used=list(static.summary.tools_run),
        high_priority_findings=[f"{issue.tool}: {issue.message}" for issue in top_errors],
    )


def should_escalate(triage: FlashTriageResult) -> bool:
    return triage.recommend_deep_analysis or triage.complexity != "LOW"


class MultiModelReviewer:
    """
    Review coordinator for one process.

    Construct once with its collaborators; ``analyze`` may be called
    concurrently since each call keeps its state local.
    """

    def __init__(
        self,
        llm: LLMClient,
        settings: Optional[Settings] = None,
        static_analyzer: Optional[StaticAnalysisOrchestrator] = None,
    ):
        self.llm = llm
        self.settings = settings or Settings()
        self.static_analyzer = static_analyzer or StaticAnalysisOrchestrator(
            tools=default_tools(self.settings.eslint_command, self.settings.tsc_command),
            runner=CommandRunner(timeout=self.settings.tool_timeout),
            scratch_root=self.settings.scratch_root,
            context_margin=self.settings.context_margin,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MultiModelReviewer":
        llm = LLMClient(
            provider=settings.llm_provider,
            timeout=settings.llm_timeout,
            endpoint=settings.local_llm_endpoint,
        )
        return cls(llm, settings)

    async def analyze(
        self,
        title: str,
        description: str,
        diff: str,
        changed_files: Sequence[FileChange],
        enable_static_analysis: bool = True,
        force_deep_analysis: bool = False,
        context: Optional[ReviewContext] = None,
    ) -> MultiModelResult:
        """
        Review one change set.

        Workflow:
        1. Static analysis over files rebuilt from the diff (optional)
        2. Triage with the fast model (skipped when deep analysis is forced)
        3. Deep review with the slow model (always)

        Raises DeepReviewError only when the deep review call itself fails.
        """
        start_time = time.time()
        total_cost = 0.0

        # Step 1: Static analysis (never raises)
        static: Optional[StaticAnalysisResult] = None
        if enable_static_analysis:
            files = reconstruct_files(diff)
            static = await self.static_analyzer.analyze(files, diff)
            logger.info(
                f"Static analysis found {static.summary.total_issues} issues using "
                f"{', '.join(static.summary.tools_run) or 'no tools'}"
            )

        # Step 2: Triage (may fail, falls back to a conservative default)
        triage: Optional[FlashTriageResult] = None
        if not force_deep_analysis:
            triage = await self.run_triage(title, diff, changed_files)
            total_cost += FLASH_PASS_COST
            escalate = should_escalate(triage)
            logger.info(
                f"Triage: {triage.complexity} complexity, deep analysis "
                f"{'recommended' if escalate else 'not needed'}"
            )

        # Step 3: Deep review runs regardless; triage only frames the prompt
        review = await self.run_deep_review(
            title, description, diff, changed_files, static, context, triage
        )
        total_cost += DEEP_PASS_COST

        processing_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Multi-model analysis completed in {processing_time_ms}ms")

        return MultiModelResult(
            flash_analysis=triage,
            pro_analysis=review,
            analysis_mode="pro-only" if triage is None else "flash-then-pro",
            total_cost=round(total_cost, 2),
            processing_time_ms=processing_time_ms,
            static_analysis=static,
        )

    async def review_request(self, request: ReviewRequest) -> MultiModelResult:
        """Review a loaded request, deriving the file summary from the diff when absent."""
        changed_files = request.changed_files or summarize_file_changes(request.diff)
        return await self.analyze(
            title=request.title,
            description=request.description,
            diff=request.diff,
            changed_files=changed_files,
            enable_static_analysis=request.enable_static_analysis,
            force_deep_analysis=request.force_deep_analysis,
            context=request.context,
        )

    async def run_triage(self, title: str, diff: str, changed_files: Sequence[FileChange]) -> FlashTriageResult:
        """Cheap pass. Any failure yields DEFAULT_TRIAGE."""
        prompt = build_triage_prompt(title, diff, changed_files)

        try:
            content = await asyncio.wait_for(
                self.llm.generate(
                    prompt,
                    model=self.settings.triage_model,
                    system_prompt=TRIAGE_SYSTEM_PROMPT,
                    schema=FlashTriageResult.model_json_schema(by_alias=True),
                ),
                timeout=self.settings.triage_timeout,
            )
            return parse_triage_response(content)

        except asyncio.TimeoutError:
            logger.warning("Triage timeout - continuing with deep analysis")
        except ReviewerError as e:
            logger.warning(f"Triage failed - continuing with deep analysis: {e}")
        except Exception as e:
            logger.warning(f"Triage failed unexpectedly - continuing with deep analysis: {e}")

        return DEFAULT_TRIAGE.model_copy(deep=True)

    async def run_deep_review(
        self,
        title: str,
        description: str,
        diff: str,
        changed_files: Sequence[FileChange],
        static: Optional[StaticAnalysisResult] = None,
        context: Optional[ReviewContext] = None,
        triage: Optional[FlashTriageResult] = None,
    ) -> StructuredReviewResult:
        """Deep pass: full prompt, defensive parse, attached metrics."""
        file_summary = build_file_summary(changed_files)
        static_summary = build_static_analysis_summary(static)
        context_sections = build_context_sections(context)
        hunks_summary = build_hunks_summary(static.code_hunks) if static else ""

        budget = measure_context(
            title,
            description,
            diff,
            file_summary,
            static_summary,
            context_sections,
            model_limit=self.settings.model_limit,
        )
        logger.info(
            f"Context budget: {budget.total.estimated_tokens} tokens "
            f"({budget.total.utilization_percent}% of {budget.total.model_limit})"
        )

        prompt = build_review_prompt(
            title,
            description,
            diff,
            changed_files,
            file_summary,
            static_summary=static_summary,
            context_sections=context_sections,
            hunks_summary=hunks_summary,
            triage=triage,
        )

        try:
            content = await self.llm.generate(
                prompt,
                model=self.settings.review_model,
                system_prompt=REVIEW_SYSTEM_PROMPT,
                schema=ReviewSchema.model_json_schema(by_alias=True),
            )
        except Exception as e:
            logger.error(f"Deep review failed: {e}")
            raise DeepReviewError(f"Enhanced analysis failed: {e}") from e

        parsed = parse_review_response(content)
        review = coerce_review(parsed)

        return review.model_copy(update={
            "static_analysis_integration": build_static_integration(static),
            "context_metrics": ContextMetrics(
                files_analyzed=len(changed_files),
                hunks_extracted=static.summary.hunks_extracted if static else 0,
                total_tokens_estimate=budget.total.estimated_tokens,
                analysis_depth=classify_depth(budget.total.estimated_tokens),
            ),
        })


def report_metadata(settings: Settings) -> dict:
    """Provenance stored alongside a saved report."""
    return {
        "prompt_version": PROMPT_VERSION,
        "llm_provider": settings.llm_provider,
        "triage_model": settings.triage_model,
        "review_model": settings.review_model,
    }

