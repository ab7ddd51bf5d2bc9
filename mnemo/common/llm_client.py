"""
Provider-agnostic LLM client for Mnemo.

Supports Anthropic, OpenAI, and Google Gemini behind a shared completion
interface, plus structured (JSON) completion validated with pydantic.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import MalformedOracleOutputError, OracleError
from .llm_utils import parse_llm_json

logger = logging.getLogger("mnemo.common.llm_client")

T = TypeVar("T", bound=BaseModel)

JSON_SYSTEM_PROMPT = (
    "You are a helpful assistant that responds only with valid JSON. "
    "Do not include any text outside of the JSON object. "
    "Do not wrap the response in markdown code blocks."
)

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o-mini",
    "google": "gemini-2.0-flash-exp",
}


class LLMClient:
    """Unified completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        default_temperature: float = 0.1,
        default_max_tokens: int = 4096,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model or DEFAULT_MODELS.get(self.provider, "")
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by system prompt hash
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: float = 30.0,
    ) -> str:
        """
        Run a single-turn completion.

        Raises:
            OracleError: if the client is unavailable or the provider call fails
        """
        if not self.is_available:
            raise OracleError("LLM client is not available")

        temperature = self.default_temperature if temperature is None else temperature
        max_tokens = max_tokens or self.default_max_tokens

        try:
            return self._complete(prompt, system, temperature, max_tokens, timeout)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"{self.provider} completion failed: {e}") from e

    def _complete(
        self,
        prompt: str,
        system: Optional[str],
        temperature: float,
        max_tokens: int,
        timeout: float,
    ) -> str:
        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            response = model.generate_content(
                prompt,
                generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise OracleError(f"Unsupported LLM provider: {self.provider}")

    def complete_json(self, prompt: str, schema: Type[T], **kwargs) -> T:
        """
        Run a completion that must return a JSON object matching `schema`.

        Raises:
            OracleError: if the provider call fails
            MalformedOracleOutputError: if the output is not a JSON object
                or does not validate against `schema`
        """
        kwargs.setdefault("system", JSON_SYSTEM_PROMPT)
        kwargs.setdefault("temperature", 0.1)
        raw = self.complete(prompt, **kwargs)

        data = parse_llm_json(raw)
        if not data:
            raise MalformedOracleOutputError("LLM response contained no JSON object", raw=raw)

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise MalformedOracleOutputError(
                f"LLM response does not match {schema.__name__}: {e}", raw=raw
            ) from e
