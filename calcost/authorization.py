"""
Authorization policy: who may do what.

Plans and admin status map to a set of capabilities. The policy is built from
settings and injected into handlers with get_authorization_policy(), so tests
and deployments swap it instead of editing module-level lists.
"""

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from fastapi import Depends, HTTPException, status

from . import models
from .auth import get_current_user
from .config import settings


class Capability(str, enum.Enum):
    UNLIMITED_PROJECTS = "unlimited_projects"
    WORKSHOP = "workshop"  # public online orders
    ADMIN = "admin"


PLAN_CAPABILITIES = {
    models.Plan.FREE: frozenset(),
    models.Plan.PREMIUM: frozenset({Capability.UNLIMITED_PROJECTS}),
    models.Plan.ENTERPRISE: frozenset({Capability.UNLIMITED_PROJECTS, Capability.WORKSHOP}),
}


def _lower_set(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(v.strip().lower() for v in values if v)


@dataclass(frozen=True)
class AuthorizationPolicy:
    admin_user_ids: FrozenSet[int] = field(default_factory=frozenset)
    premium_emails: FrozenSet[str] = field(default_factory=frozenset)
    enterprise_emails: FrozenSet[str] = field(default_factory=frozenset)
    free_project_limit: int = 5

    @classmethod
    def from_settings(cls, config=settings) -> "AuthorizationPolicy":
        return cls(
            admin_user_ids=frozenset(config.ADMIN_USER_IDS),
            premium_emails=_lower_set(config.PREMIUM_EMAILS),
            enterprise_emails=_lower_set(config.ENTERPRISE_EMAILS),
            free_project_limit=config.FREE_PLAN_PROJECT_LIMIT,
        )

    def plan_for(self, email: str) -> models.Plan:
        """Initial plan for a new account."""
        email = (email or "").strip().lower()
        if email in self.enterprise_emails:
            return models.Plan.ENTERPRISE
        if email in self.premium_emails:
            return models.Plan.PREMIUM
        return models.Plan.FREE

    def capabilities_for(self, user: models.User) -> FrozenSet[Capability]:
        try:
            plan = models.Plan(user.plan or models.Plan.FREE.value)
        except ValueError:
            plan = models.Plan.FREE
        caps = set(PLAN_CAPABILITIES[plan])
        if user.id in self.admin_user_ids:
            caps.update(Capability)
        return frozenset(caps)

    def allows(self, user: models.User, capability: Capability) -> bool:
        return capability in self.capabilities_for(user)

    def can_create_project(self, user: models.User, existing_projects: int) -> bool:
        if self.allows(user, Capability.UNLIMITED_PROJECTS):
            return True
        return existing_projects < self.free_project_limit


def get_authorization_policy() -> AuthorizationPolicy:
    """FastAPI dependency: override in tests via app.dependency_overrides."""
    return AuthorizationPolicy.from_settings()


def require_capability(capability: Capability):
    """Dependency factory: current user, or 403 without the capability."""

    def dependency(
        current_user: models.User = Depends(get_current_user),
        policy: AuthorizationPolicy = Depends(get_authorization_policy),
    ) -> models.User:
        if not policy.allows(current_user, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Your plan does not include '{capability.value}'",
            )
        return current_user

    return dependency
