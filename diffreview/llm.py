"""
LLM provider access.

One client serves both tiers; the model name picks the tier. Responses are
returned as raw text; parsing is the caller's job because output may be
malformed.

Failure modes:
- Timeout → raises LLMTimeoutError
- Missing credentials, transport or API error → raises ReviewerError
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ReviewerError(Exception):
    """Base exception for reviewer errors."""
    pass


class LLMTimeoutError(ReviewerError):
    """LLM call timed out."""
    pass


class LLMInvalidOutputError(ReviewerError):
    """LLM returned invalid output."""
    pass


def _system_with_schema(system_prompt: str, schema: Optional[Dict[str, Any]]) -> str:
    if not schema:
        return system_prompt
    return f"{system_prompt}\n\nOUTPUT SCHEMA (JSON Schema):\n{json.dumps(schema)}"


class LLMClient:
    """Async text-generation client over OpenAI, Anthropic (LangChain) or a local server."""

    def __init__(
        self,
        provider: str = "openai",
        timeout: float = 120.0,
        endpoint: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 8192,
    ):
        if provider not in ("openai", "anthropic", "local"):
            raise ReviewerError(f"Unsupported LLM provider: {provider}")
        self.provider = provider
        self.timeout = timeout
        self.endpoint = endpoint or os.getenv("LOCAL_LLM_ENDPOINT", "http://localhost:8000/v1/chat/completions")
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(
        self,
        prompt: str,
        model: str,
        system_prompt: str = "",
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send one prompt and return the response text."""
        system = _system_with_schema(system_prompt, schema)

        try:
            if self.provider == "openai":
                return await self._call_openai(prompt, system, model)
            if self.provider == "anthropic":
                return await self._call_anthropic(prompt, system, model)
            return await self._call_local(prompt, system, model)

        except ReviewerError:
            raise
        except asyncio.TimeoutError:
            raise LLMTimeoutError(f"{self.provider} call timed out")
        except Exception as e:
            # Re-raise as ReviewerError for consistent handling
            raise ReviewerError(f"LLM call failed: {str(e)}")

    async def _call_openai(self, prompt: str, system: str, model: str) -> str:
        from openai import APITimeoutError, AsyncOpenAI

        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ReviewerError("OPENAI_API_KEY not set")

        client = AsyncOpenAI(api_key=api_key, timeout=self.timeout)
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,  # Low temperature for consistency
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except APITimeoutError:
            raise LLMTimeoutError("OpenAI API timeout")
        except Exception as e:
            raise ReviewerError(f"OpenAI API error: {str(e)}")

        return response.choices[0].message.content or ""

    async def _call_anthropic(self, prompt: str, system: str, model: str) -> str:
        from langchain_anthropic import ChatAnthropic
        from langchain_core.messages import HumanMessage, SystemMessage

        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ReviewerError("ANTHROPIC_API_KEY not set")

        llm = ChatAnthropic(
            model=model,
            api_key=api_key,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        messages = [SystemMessage(content=system), HumanMessage(content=prompt)]

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            if "timeout" in str(e).lower():
                raise LLMTimeoutError("Anthropic API timeout")
            raise ReviewerError(f"Anthropic (LangChain) error: {str(e)}")

        content = response.content
        if isinstance(content, list):
            content = "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
        return content

    async def _call_local(self, prompt: str, system: str, model: str) -> str:
        """Local OpenAI-compatible server (e.g., Ollama, vLLM)."""
        import requests

        def post() -> str:
            response = requests.post(
                self.endpoint,
                json={
                    "model": model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"]

        try:
            return await asyncio.to_thread(post)
        except requests.Timeout:
            raise LLMTimeoutError("Local LLM timeout")
        except Exception as e:
            raise ReviewerError(f"Local LLM error: {str(e)}")
