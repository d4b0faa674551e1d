#!/usr/bin/env python3
"""
Pathway Studio — Demo Seed.

Creates a published "Fellowship 2024" pathway with a Decision branch,
a draft clone of it, and a campaign instantiated from the published
template. Everything goes through the service layer, so authorization,
versioning and the activity log behave exactly as they do over HTTP.

Usage:
    python scripts/seed_demo_pathway.py                 # seed into APP_ENV database
    python scripts/seed_demo_pathway.py --reset         # drop + recreate tables first
    python scripts/seed_demo_pathway.py --owner user-42 # seed as a specific principal
"""

import argparse
import sys

sys.path.insert(0, ".")

from pathway_studio import create_app
from pathway_studio.auth import Principal
from pathway_studio.models import db
from pathway_studio.services import (
    campaign_service,
    clone_service,
    phase_service,
    template_service,
    versioning_service,
)

DEMO_PHASES = [
    ("Application", "Form", {"fields": ["motivation", "cv"]}),
    ("Screening", "Screening", {"auto_reject_incomplete": True}),
    ("Recommendation", "Recommendation", {"letters_required": 2}),
    ("Panel review", "Review", {"rubric": "fellowship-v1"}),
    ("Interview", "Scheduling", {"slot_minutes": 30}),
    ("Final decision", "Decision", {}),
    ("Outcome email", "Email", {"template": "fellowship-outcome"}),
]


def seed(owner: Principal):
    template = template_service.create_template(owner, {
        "name": "Fellowship 2024",
        "description": "Annual research fellowship",
        "is_private": False,
        "tags": ["fellowship", "research"],
        "application_open_date": "2024-01-15",
        "participation_deadline": "2024-03-31",
        "general_instructions": "Complete every phase before the deadline.",
    })
    phases = {}
    for name, phase_type, config in DEMO_PHASES:
        phases[name] = phase_service.create_phase(owner, template.id, {
            "name": name, "type": phase_type, "config": config,
        })

    phase_service.update_branching(
        owner, phases["Final decision"].id,
        success_target_id=phases["Outcome email"].id,
        failure_target_id=phases["Panel review"].id,
    )
    template, version = versioning_service.publish(owner, template.id)
    print(f"Published {template.name} as v{version.version_number} ({len(phases)} phases)")

    clone = clone_service.clone_template(owner, template.id, "Fellowship 2025 (draft)")
    print(f"Cloned draft: {clone.name} [{clone.id}]")

    campaign, copies = campaign_service.create_campaign(owner, {
        "name": "Fellowship 2024 — Spring cohort",
        "pathway_template_id": template.id,
        "start_date": "2024-01-15",
        "end_date": "2024-06-30",
    })
    print(f"Campaign: {campaign.name} ({len(copies)} phases copied)")


def main():
    parser = argparse.ArgumentParser(description="Pathway Studio demo seed")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    parser.add_argument("--owner", default="demo-admin", help="Principal id that owns the demo data")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            print("Database reset")
        seed(Principal(id=args.owner, role=app.config.get("ADMIN_ROLE", "admin")))


if __name__ == "__main__":
    main()
