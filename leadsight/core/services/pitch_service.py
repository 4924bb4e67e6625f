"""Core service for single-prospect pitch work.

Regenerates the insights of one prospect or expands one of its pitches.
Each is one logical upstream request sent through the ResilientCaller, so
key rotation and backoff apply exactly as they do for batches.
"""

import logging
from typing import Optional

from leadsight.core.services.insight_service import InsightService
from leadsight.domain.models.common import RetryPolicy
from leadsight.domain.models.insights import LeadRecord, ProspectInsight
from leadsight.infrastructure.resilience.resilient_caller import ResilientCaller

logger = logging.getLogger(__name__)


class PitchService:
    """Runs the regenerate and expand requests for one prospect."""

    def __init__(
        self,
        caller: ResilientCaller,
        insight_service: InsightService,
        policy: Optional[RetryPolicy] = None,
    ):
        self.caller = caller
        self.insight_service = insight_service
        self.policy = policy

    async def regenerate(self, lead: LeadRecord) -> ProspectInsight:
        """Fresh profile notes, three pitches and an opener for one prospect.

        Raises:
            ClassifiedError: From the caller, or ValidationFailure for a bad
                prospect or a reply of the wrong shape.
        """
        request = self.insight_service.build_regenerate_request(lead)
        logger.info(f"Regenerating pitches for '{lead.get('name')}'")
        raw = await self.caller.call(request, self.policy)
        return self.insight_service.parse_single_insight(raw, lead)

    async def expand(self, lead: LeadRecord, pitch: str) -> str:
        """Expands one short pitch into a multi-paragraph outreach message."""
        request = self.insight_service.build_expand_request(lead, pitch)
        logger.info(f"Expanding a pitch for '{lead.get('name')}'")
        raw = await self.caller.call(request, self.policy)
        return self.insight_service.parse_expanded_pitch(raw)
