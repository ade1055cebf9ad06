from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from agents.llm import LLMClient, LLMError, LLMUnavailableError
from config.settings import Settings


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_client():
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=completion("  82  "))
    return client


class TestLLMClient:
    def test_unconfigured_creates_no_client(self):
        with patch("agents.llm.AsyncOpenAI") as mock_openai:
            llm = LLMClient(Settings(openai_api_key=""))

        assert not llm.is_configured
        mock_openai.assert_not_called()

    def test_configured_client_options(self):
        with patch("agents.llm.AsyncOpenAI") as mock_openai:
            llm = LLMClient(Settings(openai_api_key="sk-test", llm_timeout_seconds=12))

        assert llm.is_configured
        mock_openai.assert_called_once_with(api_key="sk-test", timeout=12, max_retries=0)

    @pytest.mark.asyncio
    async def test_complete_sends_instruction_and_text(self, openai_client):
        llm = LLMClient(Settings(openai_api_key="sk-test", openai_max_tokens=64), client=openai_client)

        answer = await llm.complete("Você é um assistente.", "quanto é 70 + 12?")

        assert answer == "82"
        openai_client.chat.completions.create.assert_awaited_once_with(
            model="gpt-3.5-turbo",
            messages=[
                {"role": "system", "content": "Você é um assistente."},
                {"role": "user", "content": "quanto é 70 + 12?"},
            ],
            temperature=0.1,
            max_tokens=64,
        )

    @pytest.mark.asyncio
    async def test_unconfigured_complete_raises(self):
        with pytest.raises(LLMUnavailableError):
            await LLMClient(Settings(openai_api_key="")).complete("instrução", "texto")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_completion_raises(self, openai_client, content):
        openai_client.chat.completions.create.return_value = completion(content)
        llm = LLMClient(Settings(openai_api_key="sk-test"), client=openai_client)

        with pytest.raises(LLMError):
            await llm.complete("instrução", "texto")

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, openai_client):
        openai_client.chat.completions.create.side_effect = TimeoutError("request timed out")
        llm = LLMClient(Settings(openai_api_key="sk-test"), client=openai_client)

        with pytest.raises(TimeoutError):
            await llm.complete("instrução", "texto")
