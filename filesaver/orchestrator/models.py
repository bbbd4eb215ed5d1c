"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List

from ..models import Entry, SaveOutcome


@dataclass
class BatchSaveResult:
    """Result of saving a batch of entries."""
    total_entries: int
    outcomes: List[SaveOutcome] = field(default_factory=list)
    timed_out: bool = False

    @property
    def entries(self) -> List[Entry]:
        return [outcome.entry for outcome in self.outcomes]

    @property
    def created_files(self) -> int:
        return sum(1 for o in self.outcomes if o.created)

    @property
    def reused_files(self) -> int:
        return sum(1 for o in self.outcomes if o.reused)

    @property
    def failed_files(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def passed_through(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def remaining(self) -> int:
        """Entries never processed because the deadline passed."""
        return self.total_entries - len(self.outcomes)

    @property
    def all_success(self) -> bool:
        return self.failed_files == 0 and self.remaining == 0
