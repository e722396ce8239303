"""Flow state models - the persisted record for one application or renewal.

A ``FlowState`` is built up section by section as the user completes steps.
Absence of a section is the canonical "not yet answered" signal and is kept
distinct from an explicit negative answer (``False``), because several step
preconditions test presence rather than value.

Sections are validated by pydantic before they are merged into the state, so
a section is either wholly absent or fully valid.  ``model_dump(mode="json")``
is the persisted form; the derived ``application_flow`` and ``is_new`` values
are computed on every access and ignored when a dump is validated back.

Section overview:
    terms_and_conditions      - acknowledgements
    applicant_information     - identity, SIN, marital status
    partner_information       - spouse / common-law partner
    contact_information       - phone and email
    mailing_address / home_address
    communication_preferences - language and delivery method
    dental_insurance / dental_benefits / demographic_survey
    client_application        - renewal lookup record
    submission_info           - confirmation receipt
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from dental_flow.constants import PARTNER_MARITAL_STATUSES

Context = Literal["intake", "renewal"]
TypeOfApplication = Literal["adult", "adult-child", "child", "delegate"]
InputModel = Literal["full", "simplified"]

_SIN_STRIP = re.compile(r"[\s-]")


def normalize_sin(value: str) -> str:
    """Strip separators from a social insurance number and check it is 9 digits."""
    digits = _SIN_STRIP.sub("", value)
    if not re.fullmatch(r"\d{9}", digits):
        raise ValueError("social insurance number must contain exactly 9 digits")
    return digits


class Section(BaseModel):
    """Base for every answer section; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


# --- Top-level sections ---

class TermsAndConditions(Section):
    acknowledge_terms: bool
    acknowledge_privacy: bool
    share_data: bool

    @model_validator(mode="after")
    def _chk(self):
        if not (self.acknowledge_terms and self.acknowledge_privacy):
            raise ValueError("terms and privacy notice must both be acknowledged")
        return self


class ApplicationYear(Section):
    application_year_id: str
    tax_year: str | None = None
    coverage_start_date: date | None = None


class ApplicantInformation(Section):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    social_insurance_number: str
    marital_status: Optional[str] = None
    client_number: Optional[str] = None

    @field_validator("social_insurance_number")
    @classmethod
    def _sin(cls, v: str) -> str:
        return normalize_sin(v)

    @property
    def has_partner(self) -> bool:
        return self.marital_status in PARTNER_MARITAL_STATUSES


class PartnerInformation(Section):
    confirm: bool
    year_of_birth: str = Field(pattern=r"^\d{4}$")
    social_insurance_number: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("social_insurance_number")
    @classmethod
    def _sin(cls, v: str) -> str:
        return normalize_sin(v)


class ContactInformation(Section):
    phone_number: Optional[str] = None
    phone_number_alt: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Address(Section):
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: str = Field(min_length=1)
    province: Optional[str] = None
    postal_code: Optional[str] = None
    apartment: Optional[str] = None


class CommunicationPreferences(Section):
    preferred_language: str
    preferred_method: str
    email: Optional[str] = None


class DentalBenefits(Section):
    """Federal and provincial/territorial public dental programs.

    A ``True`` flag must name its program; a ``False`` flag must not.
    """

    has_federal_benefits: bool
    federal_social_program: Optional[str] = None
    has_provincial_territorial_benefits: bool
    provincial_territorial_social_program: Optional[str] = None
    province: Optional[str] = None

    @model_validator(mode="after")
    def _chk(self):
        if self.has_federal_benefits != (self.federal_social_program is not None):
            raise ValueError("federal_social_program must be set iff has_federal_benefits")
        if self.has_provincial_territorial_benefits != (
            self.provincial_territorial_social_program is not None
        ):
            raise ValueError(
                "provincial_territorial_social_program must be set iff "
                "has_provincial_territorial_benefits"
            )
        return self


class DemographicSurvey(Section):
    indigenous_status: Optional[str] = None
    first_nations: Optional[str] = None
    disability: Optional[str] = None
    ethnic_groups: list[str] = Field(default_factory=list)
    location_born: Optional[str] = None
    gender: Optional[str] = None


class SubmissionInfo(Section):
    confirmation_code: str
    submitted_on: datetime


# --- Child sub-state ---

class ChildInformation(Section):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: date
    is_parent: bool
    has_social_insurance_number: bool
    social_insurance_number: Optional[str] = None
    client_number: Optional[str] = None

    @field_validator("social_insurance_number")
    @classmethod
    def _sin(cls, v: str | None) -> str | None:
        return None if v is None else normalize_sin(v)

    @model_validator(mode="after")
    def _chk(self):
        if self.has_social_insurance_number != (self.social_insurance_number is not None):
            raise ValueError(
                "social_insurance_number must be set iff has_social_insurance_number"
            )
        return self


class ChildState(BaseModel):
    """One dependent household member.

    ``is_new`` is derived from section presence and never stored: a member
    stays new until information, dental insurance and the benefits flag
    have all been answered.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    information: Optional[ChildInformation] = None
    dental_insurance: Optional[bool] = None
    has_federal_provincial_territorial_benefits: Optional[bool] = None
    dental_benefits: Optional[DentalBenefits] = None
    demographic_survey: Optional[DemographicSurvey] = None

    @computed_field
    @property
    def is_new(self) -> bool:
        return (
            self.dental_insurance is None
            or self.information is None
            or self.has_federal_provincial_territorial_benefits is None
        )


# Child fields a step patch may write.
CHILD_SECTION_FIELDS: frozenset[str] = frozenset(
    {
        "information",
        "dental_insurance",
        "has_federal_provincial_territorial_benefits",
        "dental_benefits",
        "demographic_survey",
    }
)


# --- Root record ---

class FlowState(BaseModel):
    """Root record for one in-progress application or renewal."""

    model_config = ConfigDict(extra="ignore")

    id: str
    last_updated_on: datetime
    context: Context
    edit_mode: bool = False
    edit_mode_return_step: Optional[str] = None

    # Discriminators
    type_of_application: Optional[TypeOfApplication] = None
    input_model: Optional[InputModel] = None
    application_year: Optional[ApplicationYear] = None

    # Eligibility answers
    terms_and_conditions: Optional[TermsAndConditions] = None
    has_filed_taxes: Optional[bool] = None
    date_of_birth: Optional[date] = None
    all_children_under_18: Optional[bool] = None
    disability_tax_credit: Optional[bool] = None
    living_independently: Optional[bool] = None

    # Applicant sections
    applicant_information: Optional[ApplicantInformation] = None
    partner_information: Optional[PartnerInformation] = None
    contact_information: Optional[ContactInformation] = None
    mailing_address: Optional[Address] = None
    home_address: Optional[Address] = None
    is_home_address_same_as_mailing_address: Optional[bool] = None
    communication_preferences: Optional[CommunicationPreferences] = None
    dental_insurance: Optional[bool] = None
    has_federal_provincial_territorial_benefits: Optional[bool] = None
    dental_benefits: Optional[DentalBenefits] = None
    demographic_survey: Optional[DemographicSurvey] = None

    # Renewal change flags and lookup record
    has_marital_status_changed: Optional[bool] = None
    has_address_changed: Optional[bool] = None
    has_phone_changed: Optional[bool] = None
    client_application: Optional[dict[str, Any]] = None

    submission_info: Optional[SubmissionInfo] = None

    children: list[ChildState] = Field(default_factory=list)

    @computed_field
    @property
    def application_flow(self) -> Optional[str]:
        if self.type_of_application is None:
            return None
        return f"{self.context}-{self.type_of_application}"

    @model_validator(mode="after")
    def _unique_child_ids(self):
        ids = [c.id for c in self.children]
        if len(ids) != len(set(ids)):
            raise ValueError("child ids must be unique within a flow")
        return self


# Top-level fields that count as patchable sections.
FLOW_SECTION_FIELDS: frozenset[str] = frozenset(
    name
    for name in FlowState.model_fields
    if name not in {"id", "last_updated_on", "context", "children", "edit_mode",
                    "edit_mode_return_step", "submission_info"}
)
