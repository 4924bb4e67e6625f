"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the batch orchestrator or the pitch service, rendering progress
events and results as they arrive.
"""

import logging
from pathlib import Path
from typing import Optional

from leadsight.core.services.batch_orchestrator import BatchOrchestrator
from leadsight.core.services.pitch_service import PitchService
from leadsight.domain.events.progress_events import BatchErrorEvent
from leadsight.domain.models.errors import ClassifiedError, LeadFileError
from leadsight.domain.models.insights import LeadRecord
from leadsight.infrastructure.cli.display import ConsoleDisplay
from leadsight.infrastructure.filesystem.lead_loader import load_leads
from leadsight.infrastructure.resilience.credential_pool import CredentialPool

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STOPPED = 1
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        pitch_service: PitchService,
        pool: CredentialPool,
        ui: ConsoleDisplay,
        batch_size: int,
        item_limit: int,
    ):
        self.orchestrator = orchestrator
        self.pitch_service = pitch_service
        self.pool = pool
        self.ui = ui
        self.batch_size = batch_size
        self.item_limit = item_limit

    async def handle_analyze(
        self,
        file_path: Path,
        batch_size: Optional[int] = None,
        item_limit: Optional[int] = None,
        as_json: bool = False,
    ) -> int:
        """Analyzes a lead file, rendering progress live.

        Returns:
            Process exit code: 0 when the run completed, 1 when it was
            stopped by pool-wide rate limiting, 2 for unusable input.
        """
        logger.info(f"Handling 'analyze' command for file: {file_path}")
        try:
            leads = load_leads(file_path)
        except LeadFileError as e:
            logger.error(f"Lead file rejected: {e}")
            self.ui.display_error(str(e))
            return EXIT_BAD_INPUT

        exit_code = EXIT_OK
        events = self.orchestrator.process(
            leads,
            batch_size=batch_size or self.batch_size,
            item_limit=item_limit or self.item_limit,
        )
        async for event in events:
            if isinstance(event, BatchErrorEvent) and event.fatal:
                exit_code = EXIT_STOPPED
            if as_json:
                self.ui.emit_json(event)
            else:
                self.ui.render_event(event)
        return exit_code

    def handle_keys(self) -> int:
        """Lists configured credentials without their secrets."""
        self.ui.display_credentials(self.pool.snapshot())
        return EXIT_OK

    async def handle_regenerate(self, lead: LeadRecord, as_json: bool = False) -> int:
        """Regenerates insights for one prospect and displays them."""
        logger.info(f"Handling 'regenerate' command for prospect: {lead.get('name')}")
        try:
            insight = await self.pitch_service.regenerate(lead)
        except ClassifiedError as e:
            logger.error(f"Regenerate failed ({e.kind.value}): {e.message}")
            self.ui.display_error(f"Failed to regenerate pitch ({e.kind.value}): {e.message}")
            return EXIT_FAILED

        if as_json:
            self.ui.emit_payload(insight.to_dict())
        else:
            self.ui.display_insights([insight])
        return EXIT_OK

    async def handle_expand(self, lead: LeadRecord, pitch: str, as_json: bool = False) -> int:
        """Expands one pitch for a prospect and displays the message."""
        logger.info(f"Handling 'expand' command for prospect: {lead.get('name')}")
        try:
            expanded = await self.pitch_service.expand(lead, pitch)
        except ClassifiedError as e:
            logger.error(f"Expand failed ({e.kind.value}): {e.message}")
            self.ui.display_error(f"Failed to generate expanded pitch ({e.kind.value}): {e.message}")
            return EXIT_FAILED

        if as_json:
            self.ui.emit_payload({'expandedPitch': expanded})
        else:
            self.ui.display_expanded_pitch(lead.get('name', ''), expanded)
        return EXIT_OK
