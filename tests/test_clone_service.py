"""Tests for cloning and deep copy to campaign instances.

Coverage:
  1. clone_template: draft status, caller ownership, same phase shape, fresh ids
  2. Clone branch targets point at the clone's own phases
  3. A readable (public, published) template can be cloned by a non-owner
  4. deep_copy_phases_to_instance: provenance pointers, verbatim config, empty template
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from pathway_studio.core.exceptions import (
    PersistenceError,
    UnauthorizedReadError,
    UnauthorizedWriteError,
    ValidationError,
)
from pathway_studio.models import db
from pathway_studio.models.pathway import BRANCH_FAILURE_KEY, PathwayTemplate
from pathway_studio.services import (
    campaign_service,
    clone_service,
    phase_service,
    template_service,
    versioning_service,
)
from pathway_studio.services.helpers import template_repository as repo


class TestCloneTemplate:

    def test_clone_is_independent_draft(self, alice, two_phase_template):
        template, application, review = two_phase_template
        versioning_service.publish(alice, template.id)

        clone = clone_service.clone_template(alice, template.id, "Fellowship 2024 Copy")

        assert clone.id != template.id
        assert clone.name == "Fellowship 2024 Copy"
        assert clone.status == "draft"
        assert clone.is_private is True
        source_phases = repo.list_phases(template.id)
        clone_phases = repo.list_phases(clone.id)
        assert [(p.name, p.type, p.order_index, p.config) for p in clone_phases] == [
            (p.name, p.type, p.order_index, p.config) for p in source_phases
        ]
        assert {p.id for p in clone_phases}.isdisjoint({application.id, review.id})

    def test_default_name(self, alice, template):
        clone = clone_service.clone_template(alice, template.id)
        assert clone.name == "Fellowship 2024 (Copy)"

    def test_blank_name_rejected(self, alice, template):
        with pytest.raises(ValidationError):
            clone_service.clone_template(alice, template.id, "   ")

    def test_tags_and_instructions_copied(self, alice):
        source = template_service.create_template(alice, {
            "name": "Src", "tags": ["a", "b"], "general_instructions": "Read carefully",
        })
        clone = clone_service.clone_template(alice, source.id)
        assert clone.tags == ["a", "b"]
        assert clone.general_instructions == "Read carefully"

    def test_branch_targets_point_into_clone(self, alice, two_phase_template):
        template, application, review = two_phase_template
        phase_service.update_branching(alice, review.id, failure_target_id=application.id)

        clone = clone_service.clone_template(alice, template.id)

        cloned_application, cloned_review = repo.list_phases(clone.id)
        assert cloned_review.config[BRANCH_FAILURE_KEY] == cloned_application.id
        # source untouched
        assert repo.get_phase(review.id).config[BRANCH_FAILURE_KEY] == application.id

    def test_stranger_clones_public_published(self, alice, bob, two_phase_template):
        template, _, _ = two_phase_template
        template_service.update_template(alice, template.id, {"is_private": False})
        versioning_service.publish(alice, template.id)

        clone = clone_service.clone_template(bob, template.id)

        assert clone.creator_id == bob.id
        assert len(repo.list_phases(clone.id)) == 2
        # bob owns the clone, not the source
        phase_service.create_phase(bob, clone.id, {"name": "Bob's step", "type": "Email"})
        with pytest.raises(UnauthorizedWriteError):
            phase_service.create_phase(bob, template.id, {"name": "Nope", "type": "Email"})

    def test_stranger_cannot_clone_private(self, bob, template):
        with pytest.raises(UnauthorizedReadError):
            clone_service.clone_template(bob, template.id)

    def test_failed_phase_copy_leaves_no_template(self, alice, two_phase_template):
        template, _, _ = two_phase_template
        template_id = template.id
        with patch.object(repo, "add_phase", side_effect=SQLAlchemyError("constraint")):
            with pytest.raises(PersistenceError) as exc:
                clone_service.clone_template(alice, template_id, "Broken copy")
        assert exc.value.operation == "clone_template"
        assert exc.value.step == "copy_phases"
        assert [t.id for t in db.session.query(PathwayTemplate).all()] == [template_id]
        assert len(repo.list_phases(template_id)) == 2


class TestDeepCopyToInstance:

    def test_provenance_and_config(self, alice, two_phase_template):
        template, application, review = two_phase_template
        phase_service.update_branching(alice, review.id, failure_target_id=application.id)
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})

        copies = clone_service.deep_copy_phases_to_instance(alice, campaign.id, template.id)

        assert [c.original_phase_id for c in copies] == [application.id, review.id]
        assert [c.order_index for c in copies] == [0, 1]
        # config copied verbatim, targets still name the template phases
        assert copies[1].config[BRANCH_FAILURE_KEY] == application.id

    def test_empty_template_returns_empty_list(self, alice, template):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        assert clone_service.deep_copy_phases_to_instance(alice, campaign.id, template.id) == []

    def test_second_copy_appends(self, alice, two_phase_template):
        template, _, _ = two_phase_template
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        clone_service.deep_copy_phases_to_instance(alice, campaign.id, template.id)
        clone_service.deep_copy_phases_to_instance(alice, campaign.id, template.id)
        phases = campaign_service.list_campaign_phases(alice, campaign.id)
        assert [p.order_index for p in phases] == [0, 1, 2, 3]

    def test_requires_campaign_write(self, alice, bob, two_phase_template):
        template, _, _ = two_phase_template
        template_service.update_template(alice, template.id, {"is_private": False})
        versioning_service.publish(alice, template.id)
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort", "is_public": True})
        with pytest.raises(UnauthorizedWriteError):
            clone_service.deep_copy_phases_to_instance(bob, campaign.id, template.id)

    def test_requires_template_read(self, alice, bob, template):
        campaign, _ = campaign_service.create_campaign(bob, {"name": "Bob's cohort"})
        with pytest.raises(UnauthorizedReadError):
            clone_service.deep_copy_phases_to_instance(bob, campaign.id, template.id)
