"""Tests for the campaign service.

Coverage:
  1. create_campaign with and without a template; provenance on copies
  2. Field validation (name, dates, config)
  3. Campaign status lifecycle
  4. Read rules for campaign phases
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from pathway_studio.core.exceptions import (
    NotFoundError,
    PersistenceError,
    UnauthorizedReadError,
    UnauthorizedWriteError,
    ValidationError,
)
from pathway_studio.models import db
from pathway_studio.models.campaign import Campaign
from pathway_studio.services import campaign_service, clone_service
from pathway_studio.services.helpers import template_repository as repo


class TestCreateCampaign:

    def test_without_template(self, alice):
        campaign, copies = campaign_service.create_campaign(alice, {"name": " Spring cohort "})
        assert campaign.name == "Spring cohort"
        assert campaign.status == "draft"
        assert campaign.creator_id == alice.id
        assert campaign.pathway_template_id is None
        assert copies == []

    def test_from_template_copies_phases(self, alice, two_phase_template):
        template, application, review = two_phase_template
        campaign, copies = campaign_service.create_campaign(
            alice, {"name": "Cohort", "pathway_template_id": template.id},
        )
        assert campaign.pathway_template_id == template.id
        assert [(c.name, c.type, c.order_index) for c in copies] == [
            ("Application", "Form", 0),
            ("Review", "Review", 1),
        ]
        assert [c.original_phase_id for c in copies] == [application.id, review.id]
        assert all(c.campaign_id == campaign.id for c in copies)

    def test_from_empty_template(self, alice, template):
        _, copies = campaign_service.create_campaign(
            alice, {"name": "Cohort", "pathway_template_id": template.id},
        )
        assert copies == []

    def test_unreadable_template_rejected(self, bob, template):
        with pytest.raises(UnauthorizedReadError):
            campaign_service.create_campaign(
                bob, {"name": "Cohort", "pathway_template_id": template.id},
            )
        assert db.session.query(Campaign).count() == 0

    def test_unknown_template_rejected(self, alice):
        with pytest.raises(NotFoundError):
            campaign_service.create_campaign(
                alice, {"name": "Cohort", "pathway_template_id": "missing"},
            )

    def test_name_required(self, alice):
        with pytest.raises(ValidationError):
            campaign_service.create_campaign(alice, {"description": "x"})

    def test_end_before_start_rejected(self, alice):
        with pytest.raises(ValidationError):
            campaign_service.create_campaign(alice, {
                "name": "Cohort", "start_date": "2024-06-01", "end_date": "2024-05-01",
            })

    def test_config_must_be_object(self, alice):
        with pytest.raises(ValidationError):
            campaign_service.create_campaign(alice, {"name": "Cohort", "config": "x"})

    def test_copy_failure_leaves_no_campaign(self, alice, two_phase_template):
        template, _, _ = two_phase_template
        with patch.object(repo, "add_campaign_phase", side_effect=SQLAlchemyError("boom")):
            with pytest.raises(PersistenceError) as exc:
                campaign_service.create_campaign(
                    alice, {"name": "Cohort", "pathway_template_id": template.id},
                )
        assert exc.value.step == "copy_phases"
        assert db.session.query(Campaign).count() == 0


class TestCampaignStatus:

    def test_lifecycle(self, alice):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        for status in ("active", "completed", "archived", "draft"):
            assert campaign_service.update_campaign_status(alice, campaign.id, status).status == status

    def test_invalid_transition(self, alice):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        with pytest.raises(ValidationError) as exc:
            campaign_service.update_campaign_status(alice, campaign.id, "completed")
        assert exc.value.details == {"allowed": ["active", "archived"]}

    def test_template_status_not_accepted(self, alice):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        with pytest.raises(ValidationError):
            campaign_service.update_campaign_status(alice, campaign.id, "published")

    def test_stranger_cannot_change_status(self, alice, bob):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort", "is_public": True})
        with pytest.raises(UnauthorizedWriteError):
            campaign_service.update_campaign_status(bob, campaign.id, "active")


class TestCampaignPhases:

    def test_list_in_order(self, alice, two_phase_template):
        template, _, _ = two_phase_template
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        clone_service.deep_copy_phases_to_instance(alice, campaign.id, template.id)
        phases = campaign_service.list_campaign_phases(alice, campaign.id)
        assert [p.name for p in phases] == ["Application", "Review"]

    def test_private_campaign_phases_hidden(self, alice, bob):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        with pytest.raises(UnauthorizedReadError):
            campaign_service.list_campaign_phases(bob, campaign.id)

    def test_get_campaign(self, alice):
        campaign, _ = campaign_service.create_campaign(alice, {"name": "Cohort"})
        assert campaign_service.get_campaign(alice, campaign.id).id == campaign.id
