"""Models for the classification correction passes (deduplication, verification).

LLM replies for these passes are validated entry by entry: a malformed entry
is dropped on its own instead of failing the whole reply.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, field_validator


class Correction(BaseModel):
    """One correction proposed by the verifier."""

    artifact_id: int
    corrected_value: Any
    reason: str = "No reason provided"

    @field_validator("corrected_value")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("corrected_value is required")
        return value


class CorrectionResponse(BaseModel):
    """Shape of the verifier's reply. Entries are validated one by one as Correction."""

    corrections: list[Any]


@dataclass(frozen=True)
class VerificationFocus:
    """A page whose value disagrees with every available neighbour."""

    artifact_id: int
    property: str
    value: str
    position: int


@dataclass(order=True)
class VerificationUnit:
    """A window to verify, centred on one artifact.

    generation 0 units come from outlier detection; a correction on a context
    page schedules generation + 1 centred on that page.
    """

    generation: int
    sequence: int
    artifact_id: int = field(compare=False)
    property: str = field(compare=False)


@dataclass
class DeduplicationResult:
    """Outcome of one deduplication pass."""

    labels: list[str] = field(default_factory=list)
    mappings_applied: dict[str, str] = field(default_factory=dict)
    artifacts_updated: int = 0


@dataclass
class VerificationResult:
    """Outcome of one verification pass over a property."""

    property: str
    foci: list[VerificationFocus] = field(default_factory=list)
    corrections_applied: int = 0
    units_processed: int = 0
    recursive_units_scheduled: int = 0
    discarded_responses: int = 0
