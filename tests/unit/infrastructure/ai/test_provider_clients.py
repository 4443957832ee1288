import pytest
from unittest.mock import AsyncMock, MagicMock, patch
import os

from callguard.domain.models.common import MessageRole
from callguard.infrastructure.ai.groq.groq_client import GroqClient
from callguard.infrastructure.ai.openai.gpt_client import GptClient


def make_sdk_client():
    """Mock SDK client whose completions and model listing are awaitable."""
    mock_client = MagicMock()
    mock_usage = MagicMock()
    mock_usage.total_tokens = 30

    mock_choice = MagicMock()
    mock_choice.message.content = "Mocked AI response"
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    mock_completion.usage = mock_usage
    mock_completion.model = "test-model"
    mock_client.chat.completions.create = AsyncMock(return_value=mock_completion)

    model_a, model_b = MagicMock(id="model-a", owned_by="org"), MagicMock(id="model-b", owned_by="org")
    mock_client.models.list = AsyncMock(return_value=MagicMock(data=[model_a, model_b]))
    return mock_client


@patch('callguard.infrastructure.ai.openai.gpt_client.AsyncOpenAI')
def test_gpt_client_disables_sdk_retries(mock_openai_constructor):
    client = GptClient(api_key="test_key")
    mock_openai_constructor.assert_called_once_with(api_key="test_key", max_retries=0, timeout=30.0)
    assert client.model == GptClient.DEFAULT_MODEL


@patch('callguard.infrastructure.ai.groq.groq_client.AsyncGroq')
def test_groq_client_disables_sdk_retries(mock_groq_constructor):
    client = GroqClient(api_key="gsk", model="mixtral")
    mock_groq_constructor.assert_called_once_with(api_key="gsk", max_retries=0, timeout=30.0)
    assert client.model == "mixtral"


@pytest.mark.parametrize(
    "client_cls, target, message",
    [
        (GptClient, 'callguard.infrastructure.ai.openai.gpt_client.AsyncOpenAI', "OpenAI API key not provided"),
        (GroqClient, 'callguard.infrastructure.ai.groq.groq_client.AsyncGroq', "Groq API key not provided"),
    ],
)
def test_init_without_key(client_cls, target, message):
    with patch(target) as constructor, patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValueError, match=message):
            client_cls(api_key=None)
        constructor.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client_cls, target",
    [
        (GptClient, 'callguard.infrastructure.ai.openai.gpt_client.AsyncOpenAI'),
        (GroqClient, 'callguard.infrastructure.ai.groq.groq_client.AsyncGroq'),
    ],
)
async def test_send_messages_and_list_models(client_cls, target):
    sdk_client = make_sdk_client()
    with patch(target, return_value=sdk_client):
        client = client_cls(api_key="test_key")

    messages = [{'role': MessageRole('user'), 'content': 'Explain Python'}]
    response = await client.send_messages(messages)

    sdk_client.chat.completions.create.assert_awaited_once_with(model=client.model, messages=messages)
    assert response.content == "Mocked AI response"
    assert response.model_name == "test-model"
    assert response.total_tokens == 30

    models = await client.list_available_models()
    assert [m.model_id for m in models] == ["model-a", "model-b"]
    assert all(m.provider == client_cls.provider_name for m in models)


@pytest.mark.asyncio
async def test_sdk_errors_propagate_unchanged():
    sdk_client = make_sdk_client()
    error = ConnectionResetError("reset by peer")
    sdk_client.chat.completions.create.side_effect = error
    with patch('callguard.infrastructure.ai.groq.groq_client.AsyncGroq', return_value=sdk_client):
        client = GroqClient(api_key="gsk")

    with pytest.raises(ConnectionResetError) as excinfo:
        await client.send_messages([{'role': MessageRole('user'), 'content': 'hi'}])
    assert excinfo.value is error
