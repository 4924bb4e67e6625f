"""Main entry point for the leadsight application.

Sets up the Typer CLI application, performs dependency injection (Composition
Root), defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from leadsight.core.command_handler import CommandHandler
from leadsight.core.services.batch_orchestrator import BatchOrchestrator
from leadsight.core.services.insight_service import InsightService
from leadsight.core.services.pitch_service import PitchService
from leadsight.domain.interfaces.text_generator import TextGenerator
from leadsight.domain.models.common import ModelName
from leadsight.domain.models.errors import CredentialPoolError
from leadsight.domain.models.insights import LeadRecord
from leadsight.infrastructure.ai.groq_client import DEFAULT_GROQ_MODEL, GroqClient
from leadsight.infrastructure.ai.openai_client import (
    DEFAULT_GEMINI_MODEL,
    DEFAULT_OPENAI_MODEL,
    GEMINI_OPENAI_BASE_URL,
    OpenAICompatibleClient,
)
from leadsight.infrastructure.cli.display import ConsoleDisplay
from leadsight.infrastructure.config import settings
from leadsight.infrastructure.monitoring.logger_setup import level_from_name, setup_logging
from leadsight.infrastructure.resilience.credential_pool import CredentialPool
from leadsight.infrastructure.resilience.resilient_caller import ResilientCaller

logger = logging.getLogger(__name__)

PROVIDERS = ('gemini', 'openai', 'groq')


def create_text_generator(provider: str) -> TextGenerator:
    """Builds the upstream adapter for a provider name."""
    if provider == 'gemini':
        return OpenAICompatibleClient(base_url=settings.get_base_url() or GEMINI_OPENAI_BASE_URL)
    if provider == 'openai':
        return OpenAICompatibleClient(base_url=settings.get_base_url())
    if provider == 'groq':
        return GroqClient()
    raise ValueError(f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}.")


def default_model(provider: str) -> str:
    return {
        'gemini': DEFAULT_GEMINI_MODEL,
        'openai': DEFAULT_OPENAI_MODEL,
        'groq': DEFAULT_GROQ_MODEL,
    }[provider]


def create_dependencies(provider: Optional[str] = None, ui: Optional[ConsoleDisplay] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Raises:
        CredentialPoolError: If no credentials are configured.
        ValueError: For an unknown provider or invalid numeric settings.
    """
    settings.load_configuration()
    setup_logging(
        log_level=level_from_name(settings.get_config('logging.level')),
        log_format=settings.get_config('logging.format'),
        log_file=settings.get_config('logging.file'),
    )

    dependencies: Dict[str, Any] = {}
    selected = (provider or settings.get_provider()).lower()
    dependencies['ui'] = ui or ConsoleDisplay()
    dependencies['policy'] = settings.get_retry_policy()
    dependencies['pool'] = CredentialPool(settings.get_credentials(selected))
    dependencies['generator'] = create_text_generator(selected)
    dependencies['caller'] = ResilientCaller(
        pool=dependencies['pool'],
        generator=dependencies['generator'],
        policy=dependencies['policy'],
    )
    dependencies['insight_service'] = InsightService(
        model=ModelName(settings.get_model() or default_model(selected)),
    )
    dependencies['orchestrator'] = BatchOrchestrator(
        caller=dependencies['caller'],
        insight_service=dependencies['insight_service'],
        max_outer_retries=settings.get_max_outer_retries(),
        max_total_wait_s=settings.get_max_total_wait(),
        inter_batch_delay_s=settings.get_inter_batch_delay(),
    )
    dependencies['pitch_service'] = PitchService(
        caller=dependencies['caller'],
        insight_service=dependencies['insight_service'],
    )
    dependencies['command_handler'] = CommandHandler(
        orchestrator=dependencies['orchestrator'],
        pitch_service=dependencies['pitch_service'],
        pool=dependencies['pool'],
        ui=dependencies['ui'],
        batch_size=settings.get_batch_size(),
        item_limit=settings.get_item_limit(),
    )
    logger.info(f"Dependencies initialized for provider '{selected}'.")
    return dependencies


def _handler(provider: Optional[str]) -> CommandHandler:
    ui = ConsoleDisplay()
    try:
        return create_dependencies(provider, ui=ui)['command_handler']
    except (CredentialPoolError, ValueError) as e:
        logger.error(f"Application initialization failed: {e}")
        ui.display_error(f"Application Initialization Failed: {e}")
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="leadsight",
    help="leadsight: batch prospect insights over a rate-limited, multi-key LLM endpoint.",
    add_completion=False,
)

ProviderOption = Annotated[
    Optional[str],
    typer.Option("--provider", "-p", help="Upstream provider: 'gemini', 'openai' or 'groq'. Uses config if not set.")
]


@app.command()
def analyze(
    file: Annotated[Path, typer.Argument(
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
        help="Lead file (.json array or .csv with name/role/company columns).",
    )],
    batch_size: Annotated[Optional[int], typer.Option("--batch-size", "-b", min=1, help="Leads per upstream call.")] = None,
    item_limit: Annotated[Optional[int], typer.Option("--item-limit", "-n", min=1, help="Maximum leads to analyze.")] = None,
    provider: ProviderOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print events as newline-delimited JSON.")] = False,
):
    """Analyze a lead file in batches, streaming progress."""
    handler = _handler(provider)
    exit_code = asyncio.run(handler.handle_analyze(file, batch_size, item_limit, as_json))
    raise typer.Exit(code=exit_code)


NameOption = Annotated[str, typer.Option("--name", help="Prospect name.")]
RoleOption = Annotated[str, typer.Option("--role", help="Prospect role or job title.")]
CompanyOption = Annotated[str, typer.Option("--company", help="Prospect company.")]
LocationOption = Annotated[Optional[str], typer.Option("--location", help="Prospect location.")]
DescriptionOption = Annotated[Optional[str], typer.Option("--description", help="Free-text prospect description.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print the result as one JSON object.")]


def _lead(name: str, role: str, company: str, location: Optional[str], description: Optional[str]) -> LeadRecord:
    lead = LeadRecord(name=name, role=role, company=company)
    if location:
        lead['location'] = location
    if description:
        lead['description'] = description
    return lead


@app.command()
def regenerate(
    name: NameOption,
    role: RoleOption,
    company: CompanyOption,
    location: LocationOption = None,
    description: DescriptionOption = None,
    provider: ProviderOption = None,
    as_json: JsonOption = False,
):
    """Generate fresh profile notes, three pitches and an opener for one prospect."""
    handler = _handler(provider)
    lead = _lead(name, role, company, location, description)
    raise typer.Exit(code=asyncio.run(handler.handle_regenerate(lead, as_json)))


@app.command()
def expand(
    pitch: Annotated[str, typer.Argument(help="The short pitch to expand.")],
    name: NameOption,
    role: RoleOption,
    company: CompanyOption,
    location: LocationOption = None,
    description: DescriptionOption = None,
    provider: ProviderOption = None,
    as_json: JsonOption = False,
):
    """Expand one short pitch into a full outreach message for a prospect."""
    handler = _handler(provider)
    lead = _lead(name, role, company, location, description)
    raise typer.Exit(code=asyncio.run(handler.handle_expand(lead, pitch, as_json)))


@app.command()
def keys(provider: ProviderOption = None):
    """List configured credentials (no secrets).

    Each invocation starts a new process, so failure counts and cooldowns
    show the state at startup: zero failures and every key ready.
    """
    handler = _handler(provider)
    raise typer.Exit(code=handler.handle_keys())


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
