"""Typed models for the flow engine.

Re-exports every model so callers can import from ``dental_flow.models``
directly.
"""

# --- State ---
from dental_flow.models.state import (
    Address,
    ApplicantInformation,
    ApplicationYear,
    ChildInformation,
    ChildState,
    CommunicationPreferences,
    ContactInformation,
    DemographicSurvey,
    DentalBenefits,
    FlowState,
    PartnerInformation,
    SubmissionInfo,
    TermsAndConditions,
)

# --- Step graph ---
from dental_flow.models.graph import (
    ClearRule,
    FlowGraph,
    NextRule,
    Predicate,
    RequiredField,
    Requirement,
    ReviewDefinition,
    StepDefinition,
)

# --- Results ---
from dental_flow.models.step import (
    AddressCorrectionResult,
    Freshness,
    MissingField,
    ReviewComplete,
    ReviewMissing,
    ReviewResult,
    StepAllowed,
    StepCheck,
    StepOutcome,
    StepRedirect,
    StepTarget,
)

__all__ = [
    # State
    "Address",
    "ApplicantInformation",
    "ApplicationYear",
    "ChildInformation",
    "ChildState",
    "CommunicationPreferences",
    "ContactInformation",
    "DemographicSurvey",
    "DentalBenefits",
    "FlowState",
    "PartnerInformation",
    "SubmissionInfo",
    "TermsAndConditions",
    # Graph
    "ClearRule",
    "FlowGraph",
    "NextRule",
    "Predicate",
    "RequiredField",
    "Requirement",
    "ReviewDefinition",
    "StepDefinition",
    # Results
    "AddressCorrectionResult",
    "Freshness",
    "MissingField",
    "ReviewComplete",
    "ReviewMissing",
    "ReviewResult",
    "StepAllowed",
    "StepCheck",
    "StepOutcome",
    "StepRedirect",
    "StepTarget",
]
