"""Domain models for prospect insights and batch progress."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, TypedDict


class LeadRecord(TypedDict, total=False):
    """One prospect row as uploaded by the user."""
    name: str
    role: str
    company: str
    location: str
    description: str


@dataclass(frozen=True)
class PitchSuggestion:
    pitch: str


@dataclass(frozen=True)
class ProspectInsight:
    """Per-item result produced by one upstream call."""
    name: str
    role: str
    company: str
    profile_notes: str
    pitch_suggestions: Tuple[PitchSuggestion, ...]
    conversation_starter: str
    location: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CategorySummary:
    """One entry of the ideal-client framework."""
    category: str
    description: str
    needs: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BatchProgress:
    """Point-in-time progress after one batch, never mutated after emission."""
    batch_index: int            # 1-based
    total_batches: int
    items_in_batch: Tuple[Any, ...]
    cumulative_progress_percent: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'batch_index': self.batch_index,
            'total_batches': self.total_batches,
            'items_in_batch': list(self.items_in_batch),
            'cumulative_progress_percent': self.cumulative_progress_percent,
        }


@dataclass(frozen=True)
class InsightReport:
    """Aggregate result of a batch run, finalized after the last batch."""
    per_category_summaries: Tuple[CategorySummary, ...]
    per_item_results: Tuple[ProspectInsight, ...]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'per_category_summaries': [c.to_dict() for c in self.per_category_summaries],
            'per_item_results': [r.to_dict() for r in self.per_item_results],
            'generated_at': self.generated_at.isoformat(),
        }


def progress_percent(done: int, total: int) -> int:
    """Rounded percentage of `done` over `total`; an empty run is complete."""
    if total <= 0:
        return 100
    return int(round(done * 100 / total))


def chunk(items: List[Any], size: int) -> List[List[Any]]:
    """Splits items into consecutive chunks of `size`; the last may be shorter."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1.")
    return [items[i:i + size] for i in range(0, len(items), size)]
