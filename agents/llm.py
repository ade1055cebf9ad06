"""Language-model capability: given an instruction and text, return a completion."""

import logging
from typing import Optional

from openai import AsyncOpenAI

from config.settings import Settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The model call did not produce a usable completion."""


class LLMUnavailableError(LLMError):
    """No model provider is configured."""


class LLMClient:
    """Thin wrapper around the OpenAI chat completions API."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.openai_model
        self.temperature = settings.openai_temperature
        self.max_tokens = settings.openai_max_tokens
        self._configured = settings.is_llm_configured
        self._client = client
        if self._client is None and self._configured:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
            )

    @property
    def is_configured(self) -> bool:
        return self._configured and self._client is not None

    async def complete(self, system_instruction: str, user_text: str,
                       max_tokens: Optional[int] = None) -> str:
        """Return the model's reply to `user_text` under `system_instruction`.

        Raises LLMUnavailableError when unconfigured and LLMError on an empty
        completion; transport errors and timeouts from the SDK propagate.
        """
        if not self.is_configured:
            raise LLMUnavailableError("Language model is not configured")

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_text},
            ],
            temperature=self.temperature,
            max_tokens=max_tokens or self.max_tokens,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMError("Language model returned an empty completion")
        return content.strip()
