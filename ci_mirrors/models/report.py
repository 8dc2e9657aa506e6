"""Per-entry outcomes and the summary of a sync run."""
from typing import Literal, Optional

from pydantic import BaseModel, Field


class EntryOutcome(BaseModel):
    """What happened to one planned entry."""
    name: str
    # incomplete: object published, digest sidecar still missing
    status: Literal["uploaded", "present", "verified", "incomplete", "failed"]
    source: Optional[str] = None
    sha256: Optional[str] = None  # digest of the downloaded bytes, when fetched
    size_bytes: Optional[int] = None
    error_kind: Optional[str] = None  # e.g. "network", "hash_mismatch", "upload"
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class RunReport(BaseModel):
    """Result of reconciling a manifest set against the mirror."""
    started_at: str  # ISO timestamp
    finished_at: Optional[str] = None
    dry_run: bool = False
    total_entries: int = 0
    legacy_entries: int = 0
    already_present: int = 0
    incomplete_remote: int = 0  # objects found without a sidecar
    outcomes: list[EntryOutcome] = Field(default_factory=list)

    @property
    def failed(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def incomplete(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.status == "incomplete"]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.incomplete

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def stats(self) -> dict:
        """Counts keyed by outcome status, plus the planning totals."""
        counts = {"uploaded": 0, "present": 0, "verified": 0, "incomplete": 0, "failed": 0}
        for outcome in self.outcomes:
            counts[outcome.status] += 1
        counts["planned"] = len(self.outcomes)
        counts["legacy"] = self.legacy_entries
        counts["already_present"] = self.already_present
        counts["total"] = self.total_entries
        return counts
