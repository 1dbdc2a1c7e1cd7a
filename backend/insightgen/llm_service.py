"""
LLM Service: single entry point for every prompt the app sends.

Supports Gemini (google-generativeai, default), OpenAI and Anthropic.
`LLMClient.invoke` returns plain text, or a parsed JSON object when a
response schema is given. Any provider or parsing failure raises
LLMServiceError; callers decide how to surface it.
"""

import asyncio
import json
import logging
import os
import re
from functools import lru_cache
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

import anthropic
import google.generativeai as genai
import openai

logger = logging.getLogger(__name__)

_DEFAULT_MODELS = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
}

_KEY_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class LLMServiceError(Exception):
    """Raised when the LLM cannot be reached or its reply cannot be used."""


class LLMConfig:
    """Configuration for LLM service."""

    def __init__(self):
        # Provider can be "gemini" (default), "openai" or "anthropic"
        self.provider = os.getenv("LLM_PROVIDER", "gemini").lower()
        if self.provider not in _DEFAULT_MODELS:
            raise ValueError(f"Unknown LLM_PROVIDER '{self.provider}'. Available: {sorted(_DEFAULT_MODELS)}")

        # LLM_API_KEY takes precedence to avoid host overrides
        self.api_key = os.getenv("LLM_API_KEY") or os.getenv(_KEY_VARS[self.provider])
        self.model = os.getenv("LLM_MODEL", _DEFAULT_MODELS[self.provider])

        self.api_base = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
        # For google-generativeai, api_endpoint should be just the host (no scheme/path)
        self.gemini_api_base = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com")
        self.temperature = float(os.getenv("LLM_TEMPERATURE", "0.2"))
        self.max_tokens = int(os.getenv("LLM_MAX_TOKENS", "4096"))
        self.available = bool(self.api_key)

        if not self.available:
            logger.warning("LLM not configured (missing API key); calls will fail until a key is set.")


def extract_json(response_text: str) -> Any:
    """
    Parse a JSON reply, tolerating markdown fences and surrounding prose.
    Raises LLMServiceError when nothing parseable is found.
    """
    text = (response_text or "").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try to extract JSON from code blocks or the first {...} blob
    extracted = None
    if "```json" in text:
        extracted = text.split("```json", 1)[1].split("```", 1)[0].strip()
    elif "```" in text:
        extracted = text.split("```", 1)[1].split("```", 1)[0].strip()
    else:
        m = re.search(r"\{.*\}", text, re.S)
        if m:
            extracted = m.group(0)
    if not extracted:
        raise LLMServiceError(f"Failed to parse LLM response as JSON; raw text: {text[:400]}")
    try:
        return json.loads(extracted)
    except json.JSONDecodeError as e:
        raise LLMServiceError(f"Failed to parse extracted JSON: {e}; raw text: {text[:400]}")


def _schema_instructions(schema: Dict[str, Any]) -> str:
    return (
        "\n\nReturn ONLY a valid JSON object (no markdown, no commentary) that "
        "conforms to this JSON schema:\n" + json.dumps(schema, indent=2)
    )


class LLMClient:
    """Thin provider-agnostic wrapper; one instance per process."""

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig()
        self._openai = None
        self._anthropic = None
        if not self.config.available:
            return
        if self.config.provider == "openai":
            self._openai = openai.OpenAI(api_key=self.config.api_key, base_url=self.config.api_base)
        elif self.config.provider == "anthropic":
            self._anthropic = anthropic.Anthropic(api_key=self.config.api_key)
        else:
            parsed = urlparse(self.config.gemini_api_base)
            api_endpoint = parsed.netloc or parsed.path or self.config.gemini_api_base
            genai.configure(api_key=self.config.api_key, client_options={"api_endpoint": api_endpoint})

    # ── provider calls ──────────────────────────────────────────────────

    def _complete_openai(self, prompt: str, model: str, json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = self._openai.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            **kwargs,
        )
        return (response.choices[0].message.content or "").strip()

    def _complete_anthropic(self, prompt: str, model: str) -> str:
        message = self._anthropic.messages.create(
            model=model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(block.text for block in message.content if getattr(block, "type", "") == "text").strip()

    def _complete_gemini(self, prompt: str, model: str, json_mode: bool) -> str:
        model_name = model if model.startswith("models/") else f"models/{model}"
        generation_config = {
            "temperature": self.config.temperature,
            "max_output_tokens": self.config.max_tokens,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        gen_response = genai.GenerativeModel(model_name).generate_content(prompt, generation_config=generation_config)
        text_out = ""
        if getattr(gen_response, "candidates", None):
            for part in gen_response.candidates[0].content.parts:
                if hasattr(part, "text"):
                    text_out = part.text
                    break
        if not text_out:
            text_out = (getattr(gen_response, "text", "") or "").strip()
        return text_out

    def _complete(self, prompt: str, model: str, json_mode: bool) -> str:
        if self.config.provider == "openai":
            return self._complete_openai(prompt, model, json_mode)
        if self.config.provider == "anthropic":
            return self._complete_anthropic(prompt, model)
        return self._complete_gemini(prompt, model, json_mode)

    # ── public API ──────────────────────────────────────────────────────

    def invoke(
        self,
        prompt: str,
        model: Optional[str] = None,
        response_json_schema: Optional[Dict[str, Any]] = None,
    ) -> Union[str, Dict[str, Any]]:
        """
        Send one prompt.

        Args:
            prompt: Full prompt text
            model: Model override; defaults to LLM_MODEL / provider default
            response_json_schema: When given, the reply must be a JSON object

        Returns:
            Reply text, or the parsed JSON object when a schema was given
        """
        if not self.config.available:
            raise LLMServiceError("LLM unavailable (missing API key)")

        model = model or self.config.model
        json_mode = response_json_schema is not None
        full_prompt = prompt + _schema_instructions(response_json_schema) if json_mode else prompt

        logger.info(f"Calling LLM provider={self.config.provider} model={model} json_mode={json_mode}")
        try:
            response_text = self._complete(full_prompt, model, json_mode)
        except Exception as e:
            logger.error(f"Error calling LLM: {e}")
            raise LLMServiceError(f"LLM call failed: {type(e).__name__}: {e}") from e

        logger.debug(f"LLM raw response: {response_text[:1000]}")
        if not json_mode:
            if not response_text:
                raise LLMServiceError("LLM returned an empty reply")
            return response_text

        result = extract_json(response_text)
        if not isinstance(result, dict):
            raise LLMServiceError(f"Expected a JSON object, got {type(result).__name__}")
        return result

    async def ainvoke(
        self,
        prompt: str,
        model: Optional[str] = None,
        response_json_schema: Optional[Dict[str, Any]] = None,
    ) -> Union[str, Dict[str, Any]]:
        """Run `invoke` in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.invoke, prompt, model, response_json_schema)


@lru_cache
def get_llm_client() -> LLMClient:
    """FastAPI dependency; overridden in tests."""
    return LLMClient()
