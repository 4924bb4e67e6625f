"""Progress events produced by a batch run.

A run yields exactly one StatusEvent, then one BatchEvent or BatchErrorEvent
per processed chunk in input order, then exactly one CompleteEvent. Each
event carries a `type` discriminator and serializes to a JSON-ready dict.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Tuple, Union

from leadsight.domain.models.insights import BatchProgress, InsightReport, ProspectInsight


@dataclass(frozen=True)
class StatusEvent:
    """Emitted once before the first batch."""
    type: ClassVar[str] = "status"
    message: str
    total_items_in_input: int
    items_to_process: int
    total_batches: int
    truncated: bool = False
    dropped_items: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'message': self.message,
            'total_items_in_input': self.total_items_in_input,
            'items_to_process': self.items_to_process,
            'total_batches': self.total_batches,
            'truncated': self.truncated,
            'dropped_items': self.dropped_items,
        }


@dataclass(frozen=True)
class BatchEvent:
    """Emitted after a batch succeeded."""
    type: ClassVar[str] = "batch"
    progress: BatchProgress
    results: Tuple[ProspectInsight, ...]
    total_processed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'progress': self.progress.to_dict(),
            'results': [r.to_dict() for r in self.results],
            'total_processed': self.total_processed,
        }


@dataclass(frozen=True)
class BatchErrorEvent:
    """Emitted after a batch failed.

    `fatal` marks the one stop condition: the outer retry budget ran out
    while the credential pool stayed exhausted. No batch follows a fatal
    error event.
    """
    type: ClassVar[str] = "error"
    message: str
    error_kind: str
    progress: BatchProgress
    fatal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'message': self.message,
            'error_kind': self.error_kind,
            'progress': self.progress.to_dict(),
            'fatal': self.fatal,
        }


@dataclass(frozen=True)
class CompleteEvent:
    """Emitted exactly once, last, with whatever was gathered."""
    type: ClassVar[str] = "complete"
    report: InsightReport
    total_processed: int
    failed_batches: Tuple[int, ...] = field(default_factory=tuple)
    stopped_early: bool = False

    @property
    def message(self) -> str:
        if self.stopped_early:
            return f"Analysis stopped early. Processed {self.total_processed} prospects."
        return f"Analysis complete! Processed {self.total_processed} prospects."

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'message': self.message,
            'report': self.report.to_dict(),
            'total_processed': self.total_processed,
            'failed_batches': list(self.failed_batches),
            'stopped_early': self.stopped_early,
        }


ProgressEvent = Union[StatusEvent, BatchEvent, BatchErrorEvent, CompleteEvent]
