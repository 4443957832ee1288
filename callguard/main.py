"""Main entry point for the callguard application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from callguard.core.command_handler import CommandHandler
from callguard.core.services.chat_service import ChatService
from callguard.core.services.connectivity_service import ConnectivityService
# --- Domain Layer ---
from callguard.domain.interfaces.ai_model import AIModel
# --- Infrastructure Layer ---
from callguard.infrastructure.ai.groq.groq_client import GroqClient
from callguard.infrastructure.ai.openai.gpt_client import GptClient
from callguard.infrastructure.cli.display import ConsoleDisplay
from callguard.infrastructure.config.settings import (
    get_breaker_config,
    get_config,
    get_default_model,
    get_default_provider,
    get_groq_api_key,
    get_openai_api_key,
    get_retry_config,
    load_configuration,
)
from callguard.infrastructure.monitoring.logger_setup import setup_logging
from callguard.infrastructure.resilience.api_retry import ApiRetryService, log_event
from callguard.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)


def _create_ai_models() -> Dict[str, AIModel]:
    """Instantiates every provider client that has an API key configured."""
    models: Dict[str, AIModel] = {}
    openai_api_key = get_openai_api_key()
    if openai_api_key:
        models[GptClient.provider_name] = GptClient(api_key=openai_api_key, model=get_default_model("openai"))
    else:
        logger.warning("OpenAI API key not found, OpenAI client disabled.")

    groq_api_key = get_groq_api_key()
    if groq_api_key:
        models[GroqClient.provider_name] = GroqClient(api_key=groq_api_key, model=get_default_model("groq"))
    else:
        logger.warning("Groq API key not found, Groq client disabled.")
    return models


def create_dependencies(require_ai: bool = True) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Args:
        require_ai: Exit with an error when no AI provider can be configured.
    """
    # 1. Load Configuration First
    load_configuration()
    log_level_name = str(get_config('logging.level', 'WARNING')).upper()
    log_level = getattr(logging, log_level_name, logging.WARNING)
    setup_logging(
        log_level=log_level,
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )

    dependencies: Dict[str, Any] = {'ui': ConsoleDisplay()}
    try:
        # 2. Resilience: one registry per process, owned by the retry service
        dependencies['retry_config'] = get_retry_config()
        dependencies['circuit_registry'] = CircuitBreakerRegistry(
            config=get_breaker_config(),
            event_listener=log_event,
        )
        dependencies['api_retry_service'] = ApiRetryService(
            registry=dependencies['circuit_registry'],
            default_config=dependencies['retry_config'],
        )
        dependencies['connectivity_service'] = ConnectivityService(
            retry_service=dependencies['api_retry_service'],
            ui=dependencies['ui'],
        )

        # 3. AI provider clients
        dependencies['ai_models'] = _create_ai_models()
    except ValueError as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        dependencies['ui'].display_error(f"Application Initialization Failed: {e}")
        sys.exit(1)

    ai_models: Dict[str, AIModel] = dependencies['ai_models']
    default_provider_name = get_default_provider()
    ai_model: Optional[AIModel] = ai_models.get(default_provider_name)
    if ai_model is None and ai_models:
        ai_model = next(iter(ai_models.values()))
        logger.warning(f"Default provider '{default_provider_name}' not available, falling back to {ai_model.provider_name}.")
    if ai_model is None and require_ai:
        logger.error("No AI model clients could be initialized. Exiting.")
        dependencies['ui'].display_error("Fatal Error: No AI providers configured or available.")
        sys.exit(1)

    # 4. Core services
    dependencies['chat_service'] = ChatService(
        ai_model=ai_model,
        ui=dependencies['ui'],
        api_retry_service=dependencies['api_retry_service'],
        connectivity_service=dependencies['connectivity_service'],
        retry_config=dependencies['retry_config'],
    ) if ai_model else None

    # 5. Command Handler
    dependencies['command_handler'] = CommandHandler(
        chat_service=dependencies['chat_service'],
        connectivity_service=dependencies['connectivity_service'],
        api_retry_service=dependencies['api_retry_service'],
        ai_models=ai_models,
        ui=dependencies['ui'],
        retry_config=dependencies['retry_config'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="callguard",
    help="callguard: chat CLI whose AI provider calls are protected by retries, backoff and circuit breakers.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command from a sync Typer command."""
    asyncio.run(coro)


ProviderOption = Annotated[
    Optional[str],
    typer.Option("--provider", "-p", help="AI provider to use ('openai', 'groq'). Uses default if not set.")
]


@app.command()
def chat():
    """Start an interactive chat session (slash-commands: /connectivity, /help, /exit)."""
    handler: CommandHandler = create_dependencies()['command_handler']
    handler.start_chat()


@app.command(name="list-models")
def list_models_command(provider: ProviderOption = None):
    """Lists available AI models from the specified provider."""
    handler: CommandHandler = create_dependencies()['command_handler']
    run_async(handler.handle_list_models(provider))


@app.command(name="retry-schedule")
def retry_schedule_command():
    """Shows the configured retry options and the resulting backoff waits."""
    handler: CommandHandler = create_dependencies(require_ai=False)['command_handler']
    handler.handle_retry_schedule()


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context):
    """Main entry point. Starts chat if no command is given."""
    if ctx.invoked_subcommand is None:
        logger.info("No command invoked, starting interactive chat mode.")
        chat()


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
