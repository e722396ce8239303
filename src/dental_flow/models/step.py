"""Step and review result models - the contract between the engine and callers.

These models are what the precondition evaluator, router, and review
validator hand back.  Callers dispatch on ``type``:

  - StepAllowed:    the requested step may be shown / saved
  - StepRedirect:   a precondition failed; send the user to ``step_id``
  - StepTarget:     the step completed; continue at ``step_id``
  - ReviewComplete: every field required for submission is present
  - ReviewMissing:  outstanding fields, each with the step that fixes it
"""

import enum
from typing import Literal, Optional

from pydantic import BaseModel

from dental_flow.models.state import Address


class StepAllowed(BaseModel):
    type: Literal["allowed"] = "allowed"
    step_id: str
    child_id: Optional[str] = None


class StepRedirect(BaseModel):
    """A precondition failed.  Not an error: the caller issues a redirect."""

    type: Literal["redirect"] = "redirect"
    step_id: str
    child_id: Optional[str] = None
    reason: Optional[str] = None


class StepTarget(BaseModel):
    type: Literal["next"] = "next"
    step_id: str
    child_id: Optional[str] = None


StepCheck = StepAllowed | StepRedirect
StepOutcome = StepTarget | StepRedirect


class MissingField(BaseModel):
    """One outstanding item found by the review validator.

    ``field`` is a dotted path; child fields are written as
    ``children[<child_id>].<field>``.
    """

    field: str
    step_id: str
    child_id: Optional[str] = None
    reason: Literal["missing", "inconsistent"] = "missing"


class ReviewComplete(BaseModel):
    type: Literal["complete"] = "complete"


class ReviewMissing(BaseModel):
    type: Literal["missing"] = "missing"
    fields: list[MissingField]

    @property
    def first(self) -> MissingField:
        return self.fields[0]


ReviewResult = ReviewComplete | ReviewMissing


class Freshness(str, enum.Enum):
    """Outcome of the expiry check for a loaded flow."""

    FRESH = "fresh"
    EXPIRED = "expired"


class AddressCorrectionResult(BaseModel):
    """Answer from the address-correction collaborator.

    ``address`` carries the suggested address when ``status`` is
    ``corrected`` and is None otherwise.
    """

    status: Literal["correct", "corrected", "not-correct"]
    address: Optional[Address] = None
