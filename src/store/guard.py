from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from store.session import SessionReader

LOGIN_PATH = "/auth"

ROLE_HOME = {
    "admin": "/admin/dashboard",
    "seller": "/seller/dashboard",
    "buyer": "/buyer/dashboard",
}


def home_for(role: Optional[str]) -> str:
    """Landing page of a role; unknown roles land on the storefront."""
    return ROLE_HOME.get(role or "", "/")


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect: Optional[str] = None
    reason: str = ""


class RoleGuard:
    """
    Decides whether the current session may see a role restricted screen.
    The decision is recomputed on every call; only the user lookup behind
    it goes through the cache.
    """

    def __init__(self, session: SessionReader) -> None:
        self._session = session

    async def check(self, required_role: Optional[str]) -> GuardDecision:
        if required_role is None:
            return GuardDecision(allowed=True)

        user = await self._session.current_user()
        if user is None:
            return GuardDecision(False, LOGIN_PATH, "Please log in to continue.")
        if user.role != required_role:
            return GuardDecision(
                False,
                home_for(user.role),
                f"This page is only available to {required_role} accounts.",
            )
        return GuardDecision(allowed=True)
