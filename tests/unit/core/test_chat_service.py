import pytest
from unittest.mock import AsyncMock, MagicMock

from callguard.core.services.chat_service import HELP_TEXT, ChatService, endpoint_key_for
from callguard.core.services.connectivity_service import ConnectivityService
from callguard.domain.interfaces.ai_model import AIModel
from callguard.domain.models.ai import StructuredAIResponse
from callguard.domain.models.chat import ChatSession
from callguard.domain.models.common import PromptText
from callguard.domain.models.resilience import CircuitState, RetryConfig


@pytest.fixture
def mock_ai_model():
    mock = MagicMock(spec=AIModel)
    mock.provider_name = "groq"
    mock.send_messages = AsyncMock(return_value=StructuredAIResponse("Mocked AI Response", model_name="test-model"))
    return mock


@pytest.fixture
def mock_connectivity():
    return MagicMock(spec=ConnectivityService)


@pytest.fixture
def chat_service(mock_ai_model, mock_ui, retry_service, mock_connectivity):
    """ChatService wired to a real retry service whose waits are recorded, not slept."""
    return ChatService(
        ai_model=mock_ai_model,
        ui=mock_ui,
        api_retry_service=retry_service,
        connectivity_service=mock_connectivity,
        retry_config=RetryConfig(max_retries=0),
    )


def test_endpoint_key():
    assert endpoint_key_for("openai", "list_models") == "openai-list_models"


def test_start_session_loop(chat_service, mock_ai_model, mock_ui, retry_service):
    """Test the main chat loop interaction."""
    mock_ui.get_prompt.side_effect = ["Hello AI", "", "exit"]

    chat_service.start_session()

    mock_ui.display_info.assert_any_call("Starting interactive chat session. Type '/help' for commands, '/exit' to end.")
    assert mock_ui.get_prompt.call_count == 3
    mock_ui.get_prompt.assert_any_call("You: ")
    mock_ai_model.send_messages.assert_awaited_once_with([{"role": "user", "content": "Hello AI"}])
    mock_ui.display_output.assert_called_once_with("Mocked AI Response", title="groq")
    mock_ui.display_info.assert_any_call("Ending chat session.")
    assert retry_service.is_shut_down


def test_session_ends_on_eof(chat_service, mock_ui):
    mock_ui.get_prompt.side_effect = EOFError

    chat_service.start_session()

    mock_ui.display_info.assert_any_call("Ending chat session.")
    assert chat_service.current_session is None


def test_slash_commands_are_routed(chat_service, mock_ui, mock_connectivity, mock_ai_model):
    mock_ui.get_prompt.side_effect = ["/connectivity reset groq", "/help", "/bogus", "/exit", "never read"]

    chat_service.start_session()

    mock_connectivity.handle_command.assert_called_once_with(["reset", "groq"])
    mock_ui.display_info.assert_any_call(HELP_TEXT)
    mock_ui.display_error.assert_called_once_with("Unknown command: /bogus. Type '/help' for commands.")
    assert mock_ui.get_prompt.call_count == 4
    mock_ai_model.send_messages.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_prompt_keeps_history(chat_service, mock_ai_model):
    chat_service.current_session = ChatSession()

    await chat_service.send_prompt(PromptText("first"))
    await chat_service.send_prompt(PromptText("second"))

    sent = mock_ai_model.send_messages.await_args.args[0]
    assert [m["content"] for m in sent] == ["first", "Mocked AI Response", "second"]
    assert len(chat_service.current_session.history) == 4


@pytest.mark.asyncio
async def test_send_prompt_shows_error_and_drops_prompt(chat_service, mock_ai_model, mock_ui):
    chat_service.current_session = ChatSession()
    mock_ai_model.send_messages.side_effect = ValueError("invalid request")

    assert await chat_service.send_prompt(PromptText("hello")) is None

    mock_ui.display_error.assert_called_once_with("An error occurred: invalid request")
    assert chat_service.current_session.history == []
    assert chat_service.api_retry_service.get_circuit_status("groq-send_messages").failure_count == 1


@pytest.mark.asyncio
async def test_send_prompt_when_circuit_open(chat_service, mock_ai_model, mock_ui, registry):
    for _ in range(5):
        registry.record_failure("groq-send_messages")
    chat_service.current_session = ChatSession()

    assert await chat_service.send_prompt(PromptText("hello")) is None

    mock_ai_model.send_messages.assert_not_awaited()
    mock_ui.display_warning.assert_called_once_with(
        "The groq service is currently unavailable. Please try again later."
    )
    assert chat_service.current_session.history == []
    assert registry.get_status("groq-send_messages").state is CircuitState.OPEN


@pytest.mark.asyncio
async def test_send_prompt_retries_transient_failure(chat_service, mock_ai_model, mock_ui, recording_sleep):
    chat_service.retry_config = RetryConfig(max_retries=2, base_delay_ms=100, max_delay_ms=1000)
    mock_ai_model.send_messages.side_effect = [
        Exception("socket hang up"),
        StructuredAIResponse("recovered"),
    ]

    response = await chat_service.send_prompt(PromptText("hello"))

    assert response.content == "recovered"
    assert recording_sleep.delays == [100]
    mock_ui.display_output.assert_called_once_with("recovered", title="groq")
