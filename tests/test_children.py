"""Child collection manager: add / remove / update, all as value updates."""

import pytest

from dental_flow import children as child_ops
from dental_flow.errors import StaleChildReferenceError
from dental_flow.identifiers import is_valid_id

from helpers.flows import CHILD_INFO, DENTAL_BENEFITS, complete_child, make_state


class TestAddChild:

    def test_add_returns_new_state(self):
        state = make_state()
        updated, child = child_ops.add_child(state)
        assert state.children == [], "Input state must not be modified"
        assert [c.id for c in updated.children] == [child.id]
        assert is_valid_id(child.id)
        assert child.is_new

    def test_ids_pairwise_distinct(self):
        state = make_state()
        for _ in range(25):
            state, _ = child_ops.add_child(state)
        ids = [c.id for c in state.children]
        assert len(set(ids)) == len(ids)

    def test_insertion_order_kept(self):
        state = make_state()
        state, first = child_ops.add_child(state)
        state, second = child_ops.add_child(state)
        assert [c.id for c in state.children] == [first.id, second.id]


class TestRemoveChild:

    def test_remove_first_of_two(self):
        state = make_state()
        state, first = child_ops.add_child(state)
        state, second = child_ops.add_child(state)

        state = child_ops.remove_child(state, first.id)
        assert len(state.children) == 1
        assert state.children[0].id == second.id, "Second child's id must be kept"

    def test_remove_unknown_id_is_identity(self):
        state, _ = child_ops.add_child(make_state())
        result = child_ops.remove_child(state, "not-a-child")
        assert result == state
        assert result is state


class TestUpdateChild:

    def test_update_touches_one_child(self):
        state = make_state(children=[complete_child("c1"), complete_child("c2")])
        updated = child_ops.update_child(state, "c2", {"dental_insurance": False})
        assert updated.children[0].dental_insurance is True
        assert updated.children[1].dental_insurance is False
        assert state.children[1].dental_insurance is True

    def test_update_validates_sections(self):
        state = make_state(children=[{"id": "c1"}])
        bad = {**CHILD_INFO, "has_social_insurance_number": True}
        with pytest.raises(ValueError):
            child_ops.update_child(state, "c1", {"information": bad})

    def test_unknown_child_is_hard_failure(self):
        state = make_state(children=[{"id": "c1"}])
        with pytest.raises(StaleChildReferenceError) as exc_info:
            child_ops.update_child(state, "gone", {"dental_insurance": True})
        assert exc_info.value.child_id == "gone"

    def test_non_child_section_rejected(self):
        state = make_state(children=[{"id": "c1"}])
        with pytest.raises(ValueError, match="Not child sections"):
            child_ops.update_child(state, "c1", {"mailing_address": {}})

    def test_remove_sections(self):
        state = make_state(
            children=[
                complete_child(
                    "c1",
                    has_federal_provincial_territorial_benefits=True,
                    dental_benefits=DENTAL_BENEFITS,
                )
            ]
        )
        updated = child_ops.update_child(state, "c1", {}, remove=["dental_benefits"])
        assert updated.children[0].dental_benefits is None

    def test_is_new_tracks_required_sections(self):
        state = make_state(children=[{"id": "c1", "information": CHILD_INFO}])
        assert state.children[0].is_new
        state = child_ops.update_child(
            state,
            "c1",
            {"dental_insurance": True, "has_federal_provincial_territorial_benefits": False},
        )
        assert not state.children[0].is_new

    def test_section_completeness(self):
        state = make_state(children=[{"id": "c1", "information": CHILD_INFO}])
        done = child_ops.section_completeness(state.children[0])
        assert done["information"] is True
        assert done["dental_insurance"] is False


class TestChildIdsUniqueInState:

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            make_state(children=[{"id": "c1"}, {"id": "c1"}])
