"""Builds upstream requests for lead batches and interprets the replies.

Besides batch analysis it covers the single-prospect requests: fresh
insights for one prospect and a long-form expansion of one pitch. Also
synthesizes the ideal-client framework for the final report from the
roles of every prospect that was analyzed.
"""

import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from leadsight.domain.models.common import GenerationRequest, ModelName
from leadsight.domain.models.errors import ValidationFailure
from leadsight.domain.models.insights import (
    CategorySummary,
    InsightReport,
    LeadRecord,
    PitchSuggestion,
    ProspectInsight,
)

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """You are a B2B sales and marketing expert for a custom software development and cybersecurity services company.

Analyze each prospect and provide:
1. Profile Notes: brief analysis of their role, company, and potential needs
2. Three Pitch Suggestions: specific service offerings that would appeal to them
3. Conversation Starter: a personalized opening message

Respond with a JSON object of this exact structure:
{
  "prospectInsights": [
    {
      "name": "Prospect name",
      "role": "Their role",
      "profileNotes": "Analysis of their needs and situation",
      "pitchSuggestions": [{"pitch": "..."}, {"pitch": "..."}, {"pitch": "..."}],
      "conversationStarter": "Personalized opening message"
    }
  ]
}"""

DEFAULT_NEEDS = (
    "Secure, scalable technology solutions",
    "Risk mitigation and compliance",
    "Team augmentation and expertise",
)
FALLBACK_CATEGORY = CategorySummary(
    category="Technology Leaders",
    description="Executives responsible for technology strategy and implementation",
    needs=("Secure, scalable solutions", "Risk mitigation", "Team augmentation"),
)
TOP_CATEGORIES = 3

REGENERATE_SYSTEM_INSTRUCTION = """You are a B2B sales strategist writing personalized outreach for a custom software development and cybersecurity services company.

We deliver custom software, compliance-grade security implementation, cloud and DevSecOps
infrastructure, AI/ML integration, overflow engineering capacity and security audits.

Requirements:
- Focus on business outcomes: revenue, security, capacity, speed
- Reference the prospect's specific role and company
- Each of the three pitches must take a different angle, not a variation

Output strict JSON with prospect-level insights."""

EXPAND_SYSTEM_INSTRUCTION = """You are a B2B sales copywriter for a custom software development and cybersecurity services company.

Writing guidelines:
- Professional, confident tone without being pushy
- Focus on business outcomes and ROI for the prospect's role and company
- 2-3 paragraphs, 200-250 words in total
- End with a soft call to action

Return ONLY valid JSON with the expanded pitch."""

REGENERATE_TEMPERATURE = 0.8
PITCHES_PER_PROSPECT = 3
PROSPECT_REQUIRED_FIELDS = ('name', 'role', 'company')
INSIGHT_TEXT_FIELDS = ('name', 'role', 'company', 'profileNotes', 'conversationStarter')

_ROLE_SPLIT = re.compile(r"[,/]|\band\b", re.IGNORECASE)


class InsightService:
    """Turns lead batches into requests and upstream text into insights."""

    def __init__(self, model: ModelName, temperature: float = 0.7):
        self.model = model
        self.temperature = temperature

    def build_request(self, batch: Sequence[LeadRecord]) -> GenerationRequest:
        user_prompt = (
            f"Analyze these {len(batch)} prospects and generate insights:\n\n"
            f"{json.dumps(list(batch), indent=2, ensure_ascii=False)}"
        )
        return GenerationRequest(
            model=self.model,
            system_instruction=SYSTEM_INSTRUCTION,
            user_prompt=user_prompt,
            temperature=self.temperature,
        )

    def parse_results(self, raw: str, batch: Sequence[LeadRecord]) -> List[ProspectInsight]:
        """Parses upstream JSON into ProspectInsight records.

        Lead fields the model does not echo back (company, location,
        description) are merged in from the matching input record.

        Raises:
            ValidationFailure: If the reply is not the expected JSON shape.
        """
        payload = _load_json(raw)
        entries = payload.get('prospectInsights') if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise ValidationFailure("Upstream response is missing the 'prospectInsights' list")

        results = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValidationFailure(f"Prospect insight #{index + 1} is not an object")
            lead = self._match_lead(entry, batch, index)
            results.append(self._to_insight(entry, lead))
        logger.info(f"Parsed {len(results)} prospect insight(s) for a batch of {len(batch)}")
        return results

    def build_regenerate_request(self, lead: LeadRecord) -> GenerationRequest:
        """Request for a fresh set of insights on one prospect."""
        _require_prospect(lead)
        example = json.dumps({
            'name': lead['name'],
            'role': lead['role'],
            'company': lead['company'],
            'profileNotes': "2-3 sentences on the prospect's likely priorities",
            'pitchSuggestions': [
                {'pitch': "First approach, focused on a specific business outcome"},
                {'pitch': "Second approach, from a different angle"},
                {'pitch': "Third approach, with a distinct value proposition"},
            ],
            'conversationStarter': "Personalized opening message",
        }, indent=2, ensure_ascii=False)
        user_prompt = (
            f"Generate fresh pitch suggestions for this prospect:\n\n{_describe(lead)}\n\n"
            f"Return ONLY valid JSON with this exact structure:\n{example}"
        )
        return GenerationRequest(
            model=self.model,
            system_instruction=REGENERATE_SYSTEM_INSTRUCTION,
            user_prompt=user_prompt,
            temperature=REGENERATE_TEMPERATURE,
        )

    def parse_single_insight(self, raw: str, lead: LeadRecord) -> ProspectInsight:
        """Parses a regenerated insight, which must carry exactly three pitches.

        Raises:
            ValidationFailure: If a field is missing or the pitch count is wrong.
        """
        entry = _load_json(raw)
        if not isinstance(entry, dict):
            raise ValidationFailure("Regenerated insight is not a JSON object")
        for key in INSIGHT_TEXT_FIELDS:
            if not isinstance(entry.get(key), str):
                raise ValidationFailure(f"Regenerated insight is missing the '{key}' text")
        pitches = entry.get('pitchSuggestions')
        if not isinstance(pitches, list) or len(pitches) != PITCHES_PER_PROSPECT:
            raise ValidationFailure(f"Regenerated insight must have exactly {PITCHES_PER_PROSPECT} pitches")
        if not all(isinstance(p, dict) and isinstance(p.get('pitch'), str) for p in pitches):
            raise ValidationFailure("Every pitch suggestion needs a 'pitch' text")
        return self._to_insight(entry, lead)

    def build_expand_request(self, lead: LeadRecord, pitch: str) -> GenerationRequest:
        """Request to expand one short pitch into a full outreach message."""
        _require_prospect(lead)
        if not pitch or not pitch.strip():
            raise ValidationFailure("Invalid request data: the pitch to expand is empty")
        user_prompt = (
            f"Expand this short pitch into a full, detailed outreach message:\n\n"
            f"SHORT PITCH: {pitch.strip()}\n\n"
            f"PROSPECT CONTEXT:\n{_describe(lead)}\n\n"
            "Create a compelling 2-3 paragraph pitch (200-250 words) that:\n"
            "1. Opens with understanding of their specific situation\n"
            "2. Explains how we solve their problem with concrete benefits\n"
            "3. Ends with a natural next step or question\n\n"
            "Return ONLY valid JSON with this exact structure:\n"
            '{"expandedPitch": "Full multi-paragraph pitch. Separate paragraphs with \\n\\n."}'
        )
        return GenerationRequest(
            model=self.model,
            system_instruction=EXPAND_SYSTEM_INSTRUCTION,
            user_prompt=user_prompt,
            temperature=self.temperature,
        )

    def parse_expanded_pitch(self, raw: str) -> str:
        """Returns the `expandedPitch` text.

        Raises:
            ValidationFailure: If the reply has no non-empty `expandedPitch` string.
        """
        payload = _load_json(raw)
        text = payload.get('expandedPitch') if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ValidationFailure("Upstream response is missing the 'expandedPitch' text")
        return text.strip()

    @staticmethod
    def _match_lead(entry: Dict[str, Any], batch: Sequence[LeadRecord], index: int) -> Optional[LeadRecord]:
        name = str(entry.get('name', '')).strip().lower()
        for lead in batch:
            if name and str(lead.get('name', '')).strip().lower() == name:
                return lead
        return batch[index] if index < len(batch) else None

    @staticmethod
    def _to_insight(entry: Dict[str, Any], lead: Optional[LeadRecord]) -> ProspectInsight:
        lead = lead or {}
        pitches = entry.get('pitchSuggestions') or []
        if not isinstance(pitches, list):
            raise ValidationFailure("'pitchSuggestions' must be a list")
        suggestions = tuple(
            PitchSuggestion(pitch=str(p.get('pitch', '')) if isinstance(p, dict) else str(p))
            for p in pitches
        )
        return ProspectInsight(
            name=str(entry.get('name') or lead.get('name', '')),
            role=str(entry.get('role') or lead.get('role', '')),
            company=str(entry.get('company') or lead.get('company', '')),
            profile_notes=str(entry.get('profileNotes', '')),
            pitch_suggestions=suggestions,
            conversation_starter=str(entry.get('conversationStarter', '')),
            location=lead.get('location'),
            description=lead.get('description'),
        )

    def summarize(self, results: Sequence[ProspectInsight]) -> InsightReport:
        return InsightReport(
            per_category_summaries=tuple(build_client_framework(results)),
            per_item_results=tuple(results),
        )


def _load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON response: {raw[:200]!r}")
        raise ValidationFailure(f"Invalid JSON response from upstream: {e}") from e


def _require_prospect(lead: LeadRecord) -> None:
    for key in PROSPECT_REQUIRED_FIELDS:
        value = lead.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationFailure(f"Invalid request data: prospect '{key}' is required")


def _describe(lead: LeadRecord) -> str:
    lines = [f"Name: {lead['name']}", f"Role: {lead['role']}", f"Company: {lead['company']}"]
    if lead.get('location'):
        lines.append(f"Location: {lead['location']}")
    if lead.get('description'):
        lines.append(f"Description: {lead['description']}")
    return "\n".join(lines)


def build_client_framework(results: Sequence[ProspectInsight]) -> List[CategorySummary]:
    """Derives the top role categories from the analyzed prospects."""
    counts: Counter = Counter()
    for insight in results:
        role = _ROLE_SPLIT.split(insight.role)[0].strip().lower()
        if role:
            counts[role] += 1

    # Counter.most_common keeps first-seen order among ties
    categories = [
        CategorySummary(
            category=f"{role.title()} Decision Makers",
            description=(
                f"Professionals in {role} roles typically manage technology, security, "
                f"and business development initiatives"
            ),
            needs=DEFAULT_NEEDS,
        )
        for role, _ in counts.most_common(TOP_CATEGORIES)
    ]
    return categories or [FALLBACK_CATEGORY]
