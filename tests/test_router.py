"""BranchingRouter decisions for the intake and renewal graphs.

Priority order is edit-mode override, then terminal, age, applicant_type
and default rules.  The router is pure: states are built directly.
"""

import pytest

from dental_flow.errors import StaleChildReferenceError
from dental_flow.models.step import StepTarget
from dental_flow.router import BranchingRouter

from helpers.flows import (
    ADULT_DOB,
    APPLICANT,
    APPLICANT_MARRIED,
    CHILD_INFO,
    GROWN_CHILD_DOB,
    MINOR_DOB,
    SENIOR_DOB,
    YOUTH_DOB,
    complete_child,
    make_state,
)


@pytest.fixture
def router(graphs):
    return BranchingRouter(graphs)


def _next(router, step_id, state, today, child_id=None):
    return router.next_step(step_id, state, child_id, today=today)


# =====================================================================
# Intake eligibility
# =====================================================================


class TestTaxFiling:

    def test_adult_not_filed_goes_to_file_taxes(self, router, today):
        state = make_state(type_of_application="adult", has_filed_taxes=False)
        assert _next(router, "tax-filing", state, today).step_id == "file-taxes"

    def test_adult_child_filed_goes_to_age(self, router, today):
        state = make_state(type_of_application="adult-child", has_filed_taxes=True)
        assert _next(router, "tax-filing", state, today).step_id == "age"

    def test_adult_filed_goes_to_date_of_birth(self, router, today):
        state = make_state(type_of_application="adult", has_filed_taxes=True)
        assert _next(router, "tax-filing", state, today).step_id == "date-of-birth"

    def test_child_filed_goes_to_children(self, router, today):
        state = make_state(type_of_application="child", has_filed_taxes=True)
        assert _next(router, "tax-filing", state, today).step_id == "children"

    def test_terminal_beats_applicant_type(self, router, today):
        state = make_state(type_of_application="adult-child", has_filed_taxes=False)
        assert _next(router, "tax-filing", state, today).step_id == "file-taxes"


class TestTypeApplication:

    def test_delegate(self, router, today):
        state = make_state(type_of_application="delegate")
        assert _next(router, "type-application", state, today).step_id == "application-delegate"

    def test_adult(self, router, today):
        state = make_state(type_of_application="adult")
        assert _next(router, "type-application", state, today).step_id == "tax-filing"


class TestAgeBranches:

    @pytest.mark.parametrize(
        "dob,expected",
        [
            (MINOR_DOB, "parent-or-guardian"),
            (YOUTH_DOB, "living-independently"),
            (ADULT_DOB, "disability-tax-credit"),
            (SENIOR_DOB, "applicant-information"),
        ],
    )
    def test_date_of_birth(self, router, today, dob, expected):
        state = make_state(type_of_application="adult", has_filed_taxes=True, date_of_birth=dob)
        assert _next(router, "date-of-birth", state, today).step_id == expected

    @pytest.mark.parametrize(
        "dob,under_18,expected",
        [
            (MINOR_DOB, True, "contact-apply-child"),
            (MINOR_DOB, False, "parent-or-guardian"),
            (YOUTH_DOB, True, "living-independently"),
            (ADULT_DOB, True, "disability-tax-credit"),
            (SENIOR_DOB, False, "apply-yourself"),
            (SENIOR_DOB, True, "applicant-information"),
        ],
    )
    def test_age_step(self, router, today, dob, under_18, expected):
        state = make_state(
            type_of_application="adult-child",
            has_filed_taxes=True,
            date_of_birth=dob,
            all_children_under_18=under_18,
        )
        assert _next(router, "age", state, today).step_id == expected

    def test_disability_credit_all_children_under_18(self, router, today):
        state = make_state(
            type_of_application="adult-child",
            date_of_birth=ADULT_DOB,
            all_children_under_18=True,
            disability_tax_credit=False,
        )
        assert _next(router, "disability-tax-credit", state, today).step_id == "apply-children"

    def test_disability_credit_adult(self, router, today):
        state = make_state(
            type_of_application="adult", date_of_birth=ADULT_DOB, disability_tax_credit=False,
        )
        assert _next(router, "disability-tax-credit", state, today).step_id == (
            "applicant-information"
        )

    def test_youth_not_independent(self, router, today):
        state = make_state(
            type_of_application="adult", date_of_birth=YOUTH_DOB, living_independently=False,
        )
        assert _next(router, "living-independently", state, today).step_id == (
            "parent-or-guardian"
        )


class TestApplicantBranches:

    def test_partner_branch(self, router, today):
        state = make_state(type_of_application="adult", applicant_information=APPLICANT_MARRIED)
        assert _next(router, "applicant-information", state, today).step_id == (
            "partner-information"
        )

    def test_no_partner(self, router, today):
        state = make_state(type_of_application="adult", applicant_information=APPLICANT)
        assert _next(router, "applicant-information", state, today).step_id == (
            "contact-information"
        )

    def test_minor_applying_for_children(self, router, today):
        state = make_state(
            type_of_application="child",
            applicant_information=APPLICANT,
            date_of_birth=MINOR_DOB,
        )
        assert _next(router, "applicant-information", state, today).step_id == (
            "contact-apply-child"
        )

    def test_home_address_branch(self, router, today):
        state = make_state(
            type_of_application="adult", is_home_address_same_as_mailing_address=False,
        )
        assert _next(router, "mailing-address", state, today).step_id == "home-address"

    def test_child_applicant_skips_dental_insurance(self, router, today):
        state = make_state(type_of_application="child")
        assert _next(router, "communication-preference", state, today).step_id == (
            "review-information"
        )

    def test_benefits_lead_to_demographic_survey(self, router, today):
        state = make_state(
            type_of_application="adult-child",
            has_federal_provincial_territorial_benefits=False,
        )
        assert _next(router, "federal-provincial-territorial-benefits", state, today).step_id == (
            "demographic-survey"
        )

    def test_adult_child_goes_to_children_after_survey(self, router, today):
        state = make_state(
            type_of_application="adult-child",
            has_federal_provincial_territorial_benefits=False,
        )
        assert _next(router, "demographic-survey", state, today).step_id == "children"

    def test_adult_goes_to_review_after_survey(self, router, today):
        state = make_state(
            type_of_application="adult",
            has_federal_provincial_territorial_benefits=False,
            demographic_survey={"gender": "prefer-not-to-answer"},
        )
        assert _next(router, "demographic-survey", state, today).step_id == "review-information"


# =====================================================================
# Child-scoped steps
# =====================================================================


class TestChildBranches:

    def _state(self, **info):
        return make_state(
            type_of_application="adult-child",
            children=[{"id": "c1", "information": {**CHILD_INFO, **info}}],
        )

    def test_eligible_child(self, router, today):
        target = _next(router, "child-information", self._state(), today, "c1")
        assert target.step_id == "child-dental-insurance"
        assert target.child_id == "c1", "Child-scoped target must carry the child id"

    def test_not_parent(self, router, today):
        target = _next(router, "child-information", self._state(is_parent=False), today, "c1")
        assert target.step_id == "child-parent-or-guardian"

    def test_child_too_old(self, router, today):
        target = _next(
            router, "child-information", self._state(date_of_birth=GROWN_CHILD_DOB), today, "c1",
        )
        assert target.step_id == "child-cannot-apply"

    def test_benefits_lead_to_child_survey(self, router, today):
        state = self._state()
        target = _next(router, "child-federal-provincial-territorial-benefits", state, today, "c1")
        assert (target.step_id, target.child_id) == ("child-demographic-survey", "c1")

    def test_back_to_children_drops_child_id(self, router, today):
        state = self._state()
        target = _next(router, "child-demographic-survey", state, today, "c1")
        assert target.step_id == "children"
        assert target.child_id is None

    def test_unknown_child_raises(self, router, today):
        with pytest.raises(StaleChildReferenceError):
            _next(router, "child-information", self._state(), today, "c9")


# =====================================================================
# Edit mode and defects
# =====================================================================


class TestEditModeOverride:

    def test_editable_step_returns_to_review(self, router, today):
        state = make_state(
            type_of_application="adult",
            applicant_information=APPLICANT_MARRIED,
            edit_mode=True,
        )
        target = _next(router, "applicant-information", state, today)
        assert target.step_id == "review-information", (
            "Edit mode must override the partner-information branch"
        )

    def test_edit_mode_beats_age_branch(self, router, today):
        state = make_state(
            type_of_application="adult", date_of_birth=YOUTH_DOB, edit_mode=True,
        )
        assert _next(router, "date-of-birth", state, today).step_id == "review-information"

    def test_return_step(self, router, today):
        state = make_state(
            type_of_application="adult",
            edit_mode=True,
            edit_mode_return_step="communication-preference",
        )
        assert _next(router, "contact-information", state, today).step_id == (
            "communication-preference"
        )

    def test_non_editable_step_routes_normally(self, router, today):
        state = make_state(type_of_application="adult", has_filed_taxes=False, edit_mode=True)
        assert _next(router, "tax-filing", state, today).step_id == "file-taxes"

    def test_new_child_keeps_walking_its_steps(self, router, today):
        state = make_state(
            type_of_application="child",
            edit_mode=True,
            children=[{"id": "c1", "information": CHILD_INFO}],
        )
        target = _next(router, "child-information", state, today, "c1")
        assert (target.step_id, target.child_id) == ("child-dental-insurance", "c1")

    def test_answered_child_returns_to_review(self, router, today):
        state = make_state(
            type_of_application="child",
            edit_mode=True,
            children=[complete_child("c1")],
        )
        target = _next(router, "child-information", state, today, "c1")
        assert target == StepTarget(step_id="review-information")


class TestRouterErrors:

    def test_terminal_step_has_no_next(self, router, today):
        with pytest.raises(ValueError):
            _next(router, "file-taxes", make_state(), today)

    def test_no_rule_matches(self, router, today):
        # Filed taxes but no applicant type: no tax-filing rule applies.
        state = make_state(has_filed_taxes=True)
        with pytest.raises(ValueError, match="No branch rule"):
            _next(router, "tax-filing", state, today)

    def test_unknown_step(self, router, today):
        with pytest.raises(KeyError):
            _next(router, "no-such-step", make_state(), today)


# =====================================================================
# Renewal
# =====================================================================


class TestRenewalBranches:

    def test_no_client_application(self, router, today):
        state = make_state("renewal", applicant_information=APPLICANT)
        assert _next(router, "applicant-information", state, today).step_id == (
            "renewal-not-eligible"
        )

    def test_client_application_found(self, router, today):
        state = make_state(
            "renewal", applicant_information=APPLICANT, client_application={"client_number": "1"},
        )
        assert _next(router, "applicant-information", state, today).step_id == "type-renewal"

    def test_marital_status_changed_with_partner(self, router, today):
        state = make_state(
            "renewal",
            type_of_application="adult",
            has_marital_status_changed=True,
            applicant_information=APPLICANT_MARRIED,
        )
        assert _next(router, "confirm-marital-status", state, today).step_id == (
            "partner-information"
        )

    @pytest.mark.parametrize(
        "changed,same,expected",
        [
            (True, False, "home-address"),
            (True, True, "communication-preference"),
            (False, None, "communication-preference"),
        ],
    )
    def test_confirm_address(self, router, today, changed, same, expected):
        state = make_state(
            "renewal",
            type_of_application="adult",
            has_address_changed=changed,
            is_home_address_same_as_mailing_address=same,
        )
        assert _next(router, "confirm-address", state, today).step_id == expected

    def test_child_renewal_starts_with_children(self, router, today):
        state = make_state("renewal", type_of_application="child", has_filed_taxes=True)
        assert _next(router, "tax-filing", state, today).step_id == "children"
