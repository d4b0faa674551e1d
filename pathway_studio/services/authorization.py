"""
Authorization guard — the single choke point for template and campaign access.

Every service operation calls ``authorize`` (or ``authorize_campaign``)
before touching state. The returned grant is a capability token: the
repository write helpers refuse to add, change or delete rows unless they
are handed a grant that covers the row's template or campaign with a
modifying action. Skipping the guard therefore fails loudly instead of
silently writing.

Template rules:
    read        admin, creator, or (not is_private and status == published)
    write       admin or creator
    version     admin or creator
    admin_only  admin

Campaign rules:
    read        admin, creator, or is_public
    write       admin or creator
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pathway_studio.auth import Principal
from pathway_studio.core.exceptions import (
    AuthenticationError,
    NotFoundError,
    UnauthorizedReadError,
    UnauthorizedWriteError,
)
from pathway_studio.models.campaign import Campaign
from pathway_studio.models.pathway import PathwayTemplate
from pathway_studio.services.helpers import template_repository as repo

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"
VERSION = "version"
ADMIN_ONLY = "admin_only"

TEMPLATE_ACTIONS = frozenset({READ, WRITE, VERSION, ADMIN_ONLY})
MODIFYING_ACTIONS = frozenset({WRITE, VERSION, ADMIN_ONLY})
CAMPAIGN_ACTIONS = frozenset({READ, WRITE})


@dataclass(frozen=True)
class TemplateGrant:
    """Proof that ``principal`` passed the guard for ``action`` on ``template``.

    ``template`` is None only for a template-less write (creating a new
    template), which requires nothing beyond authentication.
    """

    principal: Principal
    template: PathwayTemplate | None
    is_admin: bool
    action: str

    @property
    def template_id(self) -> str | None:
        return self.template.id if self.template is not None else None

    @property
    def can_modify(self) -> bool:
        return self.action in MODIFYING_ACTIONS

    def require_modify(self, template_id: str | None) -> None:
        """Raise unless this grant allows modifying ``template_id``.

        A template-less write grant only covers inserting a brand-new
        template (whose id is unassigned until flush).
        """
        if not self.can_modify:
            raise UnauthorizedWriteError(
                f"A '{self.action}' grant cannot modify template data", resource_id=template_id,
            )
        if self.template is None:
            if template_id is not None:
                raise UnauthorizedWriteError(
                    "Grant is not bound to an existing template", resource_id=template_id,
                )
        elif template_id != self.template.id:
            raise UnauthorizedWriteError(
                "Grant does not cover this template", resource_id=template_id,
            )


@dataclass(frozen=True)
class CampaignGrant:
    """Proof that ``principal`` passed the guard for ``action`` on ``campaign``."""

    principal: Principal
    campaign: Campaign | None
    is_admin: bool
    action: str

    def require_modify(self, campaign_id: str | None) -> None:
        if self.action != WRITE:
            raise UnauthorizedWriteError(
                f"A '{self.action}' grant cannot modify campaign data", resource_id=campaign_id,
            )
        if self.campaign is None:
            if campaign_id is not None:
                raise UnauthorizedWriteError(
                    "Grant is not bound to an existing campaign", resource_id=campaign_id,
                )
        elif campaign_id != self.campaign.id:
            raise UnauthorizedWriteError(
                "Grant does not cover this campaign", resource_id=campaign_id,
            )


# ── Predicates ───────────────────────────────────────────────────────────────


def require_principal(principal: Principal | None) -> Principal:
    if principal is None or not principal.id:
        raise AuthenticationError()
    return principal


def can_read_template(principal: Principal, template: PathwayTemplate) -> bool:
    return (
        principal.is_admin
        or template.creator_id == principal.id
        or template.is_publicly_readable
    )


def can_modify_template(principal: Principal, template: PathwayTemplate) -> bool:
    return principal.is_admin or template.creator_id == principal.id


def can_read_campaign(principal: Principal, campaign: Campaign) -> bool:
    return principal.is_admin or campaign.creator_id == principal.id or bool(campaign.is_public)


# ── Guards ───────────────────────────────────────────────────────────────────


def authorize(principal: Principal | None, template_id: str | None, action: str) -> TemplateGrant:
    """Resolve and check access to a template.

    Args:
        principal: The acting principal, or None when unauthenticated.
        template_id: Template to check, or None for a template-less write
            (creating a new template).
        action: One of ``read``, ``write``, ``version``, ``admin_only``.

    Returns:
        A TemplateGrant carrying the loaded template.

    Raises:
        AuthenticationError: No principal.
        NotFoundError: ``template_id`` does not resolve.
        UnauthorizedReadError: ``read`` denied.
        UnauthorizedWriteError: ``write`` / ``version`` / ``admin_only`` denied.
    """
    if action not in TEMPLATE_ACTIONS:
        raise ValueError(f"Unknown authorization action: {action}")

    principal = require_principal(principal)
    is_admin = principal.is_admin

    if template_id is None:
        if action == ADMIN_ONLY and not is_admin:
            raise UnauthorizedWriteError("Admin role required")
        if action == READ:
            raise ValueError("A read grant requires a template id")
        return TemplateGrant(principal=principal, template=None, is_admin=is_admin, action=action)

    template = repo.get_template(template_id)
    if template is None:
        raise NotFoundError(resource="PathwayTemplate", resource_id=template_id)

    if action == READ:
        if not can_read_template(principal, template):
            logger.info(
                "Read denied on private template",
                extra={"template_id": template_id, "actor_id": principal.id},
            )
            raise UnauthorizedReadError(
                "You do not have access to this template", resource_id=template_id,
            )
    elif action in (WRITE, VERSION):
        if not can_modify_template(principal, template):
            logger.info(
                "Write denied on template",
                extra={"template_id": template_id, "actor_id": principal.id},
            )
            raise UnauthorizedWriteError(
                "Only the template creator or an admin may modify this template",
                resource_id=template_id,
            )
    elif action == ADMIN_ONLY and not is_admin:
        raise UnauthorizedWriteError("Admin role required", resource_id=template_id)

    return TemplateGrant(principal=principal, template=template, is_admin=is_admin, action=action)


def authorize_campaign(principal: Principal | None, campaign_id: str | None, action: str) -> CampaignGrant:
    """Resolve and check access to a campaign. Same contract as ``authorize``."""
    if action not in CAMPAIGN_ACTIONS:
        raise ValueError(f"Unknown campaign authorization action: {action}")

    principal = require_principal(principal)
    is_admin = principal.is_admin

    if campaign_id is None:
        if action == READ:
            raise ValueError("A read grant requires a campaign id")
        return CampaignGrant(principal=principal, campaign=None, is_admin=is_admin, action=action)

    campaign = repo.get_campaign(campaign_id)
    if campaign is None:
        raise NotFoundError(resource="Campaign", resource_id=campaign_id)

    if action == READ and not can_read_campaign(principal, campaign):
        raise UnauthorizedReadError("You do not have access to this campaign", resource_id=campaign_id)
    if action == WRITE and not (is_admin or campaign.creator_id == principal.id):
        raise UnauthorizedWriteError(
            "Only the campaign creator or an admin may modify this campaign",
            resource_id=campaign_id,
        )

    return CampaignGrant(principal=principal, campaign=campaign, is_admin=is_admin, action=action)
