"""Tests for the phase graph manager.

Coverage:
  1. create_phase: append default, closed type set, gap/duplicate indices accepted
  2. update_phase: type immutable, order_index via reorder only, branch keys kept
  3. update_branching: same-template targets only, Decision/Review only
  4. reorder_phases: full permutation required, post-condition 0..n-1
  5. delete_phase: compaction and dangling branch cleanup
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from pathway_studio.core.exceptions import (
    AuthenticationError,
    InvalidBranchTargetError,
    NotFoundError,
    PersistenceError,
    UnauthorizedReadError,
    UnauthorizedWriteError,
    ValidationError,
)
from pathway_studio.models.pathway import BRANCH_FAILURE_KEY, BRANCH_SUCCESS_KEY
from pathway_studio.services import phase_service, template_service
from pathway_studio.services.helpers import template_repository as repo


def _indices(template_id):
    return [p.order_index for p in repo.list_phases(template_id)]


def _names(template_id):
    return [p.name for p in repo.list_phases(template_id)]


class TestCreatePhase:

    def test_append_when_index_omitted(self, alice, two_phase_template):
        template, application, review = two_phase_template
        assert application.order_index == 0
        assert review.order_index == 1
        third = phase_service.create_phase(alice, template.id, {"name": "Interview", "type": "Scheduling"})
        assert third.order_index == 2

    def test_unknown_type_rejected(self, alice, template):
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {"name": "X", "type": "Quiz"})

    def test_name_required(self, alice, template):
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {"type": "Form"})

    @pytest.mark.parametrize("bad", [-1, "1", 1.5, True])
    def test_order_index_must_be_non_negative_int(self, alice, template, bad):
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {"name": "X", "type": "Form", "order_index": bad})

    def test_duplicate_index_accepted_with_warning(self, alice, two_phase_template, caplog):
        template, _, _ = two_phase_template
        with caplog.at_level(logging.WARNING, logger="pathway_studio.services.phase_service"):
            phase = phase_service.create_phase(
                alice, template.id, {"name": "Dup", "type": "Form", "order_index": 0},
            )
        assert phase.order_index == 0
        assert "gap or duplicate" in caplog.text

    def test_config_must_be_object(self, alice, template):
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {"name": "X", "type": "Form", "config": [1]})

    def test_branch_keys_rejected_on_form(self, alice, two_phase_template):
        template, application, _ = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {
                "name": "X", "type": "Form",
                "config": {BRANCH_SUCCESS_KEY: application.id},
            })

    def test_decision_with_valid_target(self, alice, two_phase_template):
        template, application, _ = two_phase_template
        decision = phase_service.create_phase(alice, template.id, {
            "name": "Decide", "type": "Decision",
            "config": {BRANCH_FAILURE_KEY: application.id, "threshold": 3},
        })
        assert decision.config[BRANCH_FAILURE_KEY] == application.id
        assert decision.config["threshold"] == 3

    def test_phase_dates_ordered(self, alice, template):
        with pytest.raises(ValidationError):
            phase_service.create_phase(alice, template.id, {
                "name": "X", "type": "Form",
                "phase_start_date": "2024-03-02", "phase_end_date": "2024-03-01",
            })

    def test_stranger_cannot_create(self, bob, template):
        with pytest.raises(UnauthorizedWriteError):
            phase_service.create_phase(bob, template.id, {"name": "X", "type": "Form"})


class TestReadPhases:

    def test_list_ordered(self, alice, two_phase_template):
        template, _, _ = two_phase_template
        assert [p.name for p in phase_service.list_phases(alice, template.id)] == ["Application", "Review"]

    def test_get_phase_requires_read(self, bob, two_phase_template):
        _, application, _ = two_phase_template
        with pytest.raises(UnauthorizedReadError):
            phase_service.get_phase(bob, application.id)

    def test_get_unknown_phase(self, alice):
        with pytest.raises(NotFoundError):
            phase_service.get_phase(alice, "missing")


class TestUpdatePhase:

    def test_patch_fields(self, alice, two_phase_template):
        _, application, _ = two_phase_template
        updated = phase_service.update_phase(alice, application.id, {
            "name": "Apply", "applicant_instructions": "Fill everything in",
        })
        assert updated.name == "Apply"
        assert updated.applicant_instructions == "Fill everything in"
        assert updated.last_updated_by == "user-alice"

    def test_type_is_immutable(self, alice, two_phase_template):
        _, application, _ = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.update_phase(alice, application.id, {"type": "Email"})

    def test_same_type_echo_allowed(self, alice, two_phase_template):
        _, application, _ = two_phase_template
        updated = phase_service.update_phase(alice, application.id, {"type": "Form", "name": "Renamed"})
        assert updated.name == "Renamed"

    def test_order_index_change_refused(self, alice, two_phase_template):
        _, application, _ = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.update_phase(alice, application.id, {"order_index": 1})

    def test_config_replace_keeps_branch_targets(self, alice, two_phase_template):
        _, application, review = two_phase_template
        phase_service.update_branching(alice, review.id, failure_target_id=application.id)
        updated = phase_service.update_phase(alice, review.id, {"config": {"rubric": "v2"}})
        assert updated.config == {
            "rubric": "v2",
            BRANCH_FAILURE_KEY: application.id,
        }

    def test_config_replace_can_clear_branch_target(self, alice, two_phase_template):
        _, application, review = two_phase_template
        phase_service.update_branching(alice, review.id, failure_target_id=application.id)
        updated = phase_service.update_phase(alice, review.id, {"config": {BRANCH_FAILURE_KEY: None}})
        assert updated.config[BRANCH_FAILURE_KEY] is None


class TestUpdateBranching:

    def test_sibling_target_accepted(self, alice, two_phase_template):
        _, application, review = two_phase_template
        updated = phase_service.update_branching(
            alice, review.id, success_target_id=None, failure_target_id=application.id,
        )
        assert updated.branch_targets() == {
            BRANCH_SUCCESS_KEY: None,
            BRANCH_FAILURE_KEY: application.id,
        }

    def test_foreign_template_target_rejected(self, alice, two_phase_template):
        _, _, review = two_phase_template
        other = template_service.create_template(alice, {"name": "Other"})
        foreign = phase_service.create_phase(alice, other.id, {"name": "Elsewhere", "type": "Form"})
        with pytest.raises(InvalidBranchTargetError):
            phase_service.update_branching(alice, review.id, failure_target_id=foreign.id)

    def test_nonexistent_target_rejected(self, alice, two_phase_template):
        _, _, review = two_phase_template
        with pytest.raises(InvalidBranchTargetError):
            phase_service.update_branching(alice, review.id, success_target_id="does-not-exist")

    def test_self_target_rejected(self, alice, two_phase_template):
        _, _, review = two_phase_template
        with pytest.raises(InvalidBranchTargetError):
            phase_service.update_branching(alice, review.id, success_target_id=review.id)

    def test_non_branching_type_rejected(self, alice, two_phase_template):
        _, application, review = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.update_branching(alice, application.id, success_target_id=review.id)

    def test_invalid_target_leaves_config_untouched(self, alice, two_phase_template):
        _, application, review = two_phase_template
        phase_service.update_branching(alice, review.id, success_target_id=application.id)
        with pytest.raises(InvalidBranchTargetError):
            phase_service.update_branching(alice, review.id, success_target_id="nope")
        assert repo.get_phase(review.id).config[BRANCH_SUCCESS_KEY] == application.id


class TestReorderPhases:

    def test_swap(self, alice, two_phase_template):
        template, application, review = two_phase_template
        phases = phase_service.reorder_phases(alice, template.id, [
            {"id": review.id, "order_index": 0},
            {"id": application.id, "order_index": 1},
        ])
        assert [p.name for p in phases] == ["Review", "Application"]
        assert _indices(template.id) == [0, 1]

    def test_partial_set_rejected(self, alice, two_phase_template):
        template, _, review = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.reorder_phases(alice, template.id, [{"id": review.id, "order_index": 0}])
        assert _names(template.id) == ["Application", "Review"]

    def test_non_permutation_rejected(self, alice, two_phase_template):
        template, application, review = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.reorder_phases(alice, template.id, [
                {"id": review.id, "order_index": 0},
                {"id": application.id, "order_index": 2},
            ])

    def test_duplicate_index_rejected(self, alice, two_phase_template):
        template, application, review = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.reorder_phases(alice, template.id, [
                {"id": review.id, "order_index": 0},
                {"id": application.id, "order_index": 0},
            ])

    def test_foreign_phase_rejected(self, alice, two_phase_template):
        template, application, review = two_phase_template
        other = template_service.create_template(alice, {"name": "Other"})
        foreign = phase_service.create_phase(alice, other.id, {"name": "F", "type": "Form"})
        with pytest.raises(ValidationError):
            phase_service.reorder_phases(alice, template.id, [
                {"id": review.id, "order_index": 0},
                {"id": application.id, "order_index": 1},
                {"id": foreign.id, "order_index": 2},
            ])

    def test_repairs_gapped_indices(self, alice, template):
        a = phase_service.create_phase(alice, template.id, {"name": "A", "type": "Form", "order_index": 0})
        b = phase_service.create_phase(alice, template.id, {"name": "B", "type": "Form", "order_index": 5})
        phase_service.reorder_phases(alice, template.id, [
            {"id": b.id, "order_index": 0},
            {"id": a.id, "order_index": 1},
        ])
        assert _names(template.id) == ["B", "A"]
        assert _indices(template.id) == [0, 1]

    @pytest.mark.parametrize("bad_id", [["x"], {"x": 1}, 7, None])
    def test_non_string_id_rejected(self, alice, two_phase_template, bad_id):
        template, application, _ = two_phase_template
        with pytest.raises(ValidationError):
            phase_service.reorder_phases(alice, template.id, [
                {"id": bad_id, "order_index": 0},
                {"id": application.id, "order_index": 1},
            ])

    def test_failed_write_keeps_original_order(self, alice, two_phase_template):
        template, application, review = two_phase_template
        template_id = template.id
        with patch.object(repo, "update_fields", side_effect=SQLAlchemyError("lock timeout")):
            with pytest.raises(PersistenceError) as exc:
                phase_service.reorder_phases(alice, template_id, [
                    {"id": review.id, "order_index": 0},
                    {"id": application.id, "order_index": 1},
                ])
        assert exc.value.operation == "reorder_phases"
        assert exc.value.step == "apply_indices"
        assert _names(template_id) == ["Application", "Review"]

    def test_stranger_cannot_reorder(self, bob, two_phase_template):
        template, application, review = two_phase_template
        with pytest.raises(UnauthorizedWriteError):
            phase_service.reorder_phases(bob, template.id, [
                {"id": review.id, "order_index": 0},
                {"id": application.id, "order_index": 1},
            ])


class TestDeletePhase:

    def test_compacts_indices(self, alice, two_phase_template):
        template, application, _ = two_phase_template
        phase_service.create_phase(alice, template.id, {"name": "Interview", "type": "Scheduling"})
        phase_service.delete_phase(alice, application.id)
        assert _names(template.id) == ["Review", "Interview"]
        assert _indices(template.id) == [0, 1]

    def test_clears_dangling_branch_targets(self, alice, two_phase_template):
        template, application, review = two_phase_template
        decision = phase_service.create_phase(alice, template.id, {"name": "Decide", "type": "Decision"})
        application_id = application.id
        phase_service.update_branching(alice, review.id, success_target_id=decision.id,
                                       failure_target_id=application_id)

        phase_service.delete_phase(alice, application_id)

        targets = repo.get_phase(review.id).branch_targets()
        assert targets == {BRANCH_SUCCESS_KEY: decision.id, BRANCH_FAILURE_KEY: None}

    def test_delete_unknown_phase(self, alice):
        with pytest.raises(NotFoundError):
            phase_service.delete_phase(alice, "missing")

    def test_stranger_cannot_delete(self, bob, two_phase_template):
        _, application, _ = two_phase_template
        with pytest.raises(UnauthorizedWriteError):
            phase_service.delete_phase(bob, application.id)

    def test_failed_compaction_keeps_phase(self, alice, two_phase_template):
        template, application, _ = two_phase_template
        template_id, application_id = template.id, application.id
        with patch.object(repo, "update_fields", side_effect=SQLAlchemyError("lock timeout")):
            with pytest.raises(PersistenceError) as exc:
                phase_service.delete_phase(alice, application_id)
        assert exc.value.operation == "delete_phase"
        assert exc.value.step == "compact_indices"
        assert repo.get_phase(application_id) is not None
        assert _names(template_id) == ["Application", "Review"]
        assert _indices(template_id) == [0, 1]


class TestPrincipalFirst:

    def test_get_unknown_phase_without_principal(self):
        with pytest.raises(AuthenticationError):
            phase_service.get_phase(None, "no-such-phase")

    def test_delete_unknown_phase_without_principal(self):
        with pytest.raises(AuthenticationError):
            phase_service.delete_phase(None, "no-such-phase")

    def test_update_branching_without_principal(self, two_phase_template):
        _, _, review = two_phase_template
        with pytest.raises(AuthenticationError):
            phase_service.update_branching(None, review.id)
