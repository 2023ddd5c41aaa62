"""
Runtime configuration.

Values come from environment variables; entry points call ``load_dotenv()``
first so a local ``.env`` file works too. Provider API keys are read by the
LLM client from their usual variables (OPENAI_API_KEY, ANTHROPIC_API_KEY).
"""

import os
import shlex
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Provider = Literal["openai", "anthropic", "local"]


class Settings(BaseModel):
    """Pipeline settings."""

    llm_provider: Provider = "openai"
    triage_model: str = Field("gpt-4o-mini", description="Cheap/fast model for the triage pass")
    review_model: str = Field("gpt-4o", description="Expensive/deep model for the review pass")
    llm_timeout: float = Field(120.0, gt=0)
    triage_timeout: float = Field(30.0, gt=0)
    local_llm_endpoint: str = "http://localhost:8000/v1/chat/completions"

    scratch_root: Optional[Path] = None
    tool_timeout: float = Field(120.0, gt=0)
    eslint_command: List[str] = Field(default_factory=lambda: ["npx", "eslint"])
    tsc_command: List[str] = Field(default_factory=lambda: ["npx", "tsc"])

    context_margin: int = Field(5, ge=0)
    model_limit: int = Field(1_000_000, gt=0)


def load_settings(**overrides) -> Settings:
    """Build Settings from DIFFREVIEW_* environment variables plus explicit overrides."""
    env = os.environ
    values = {}

    simple = {
        "llm_provider": "DIFFREVIEW_PROVIDER",
        "triage_model": "DIFFREVIEW_TRIAGE_MODEL",
        "review_model": "DIFFREVIEW_REVIEW_MODEL",
        "llm_timeout": "DIFFREVIEW_LLM_TIMEOUT",
        "triage_timeout": "DIFFREVIEW_TRIAGE_TIMEOUT",
        "local_llm_endpoint": "LOCAL_LLM_ENDPOINT",
        "scratch_root": "DIFFREVIEW_SCRATCH_ROOT",
        "tool_timeout": "DIFFREVIEW_TOOL_TIMEOUT",
        "context_margin": "DIFFREVIEW_CONTEXT_MARGIN",
        "model_limit": "DIFFREVIEW_MODEL_LIMIT",
    }
    for field, var in simple.items():
        if env.get(var):
            values[field] = env[var]

    if env.get("DIFFREVIEW_ESLINT_CMD"):
        values["eslint_command"] = shlex.split(env["DIFFREVIEW_ESLINT_CMD"])
    if env.get("DIFFREVIEW_TSC_CMD"):
        values["tsc_command"] = shlex.split(env["DIFFREVIEW_TSC_CMD"])

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
