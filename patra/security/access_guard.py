"""
ACCESS CONTROLLER (FINAL NAVIGATION DECISION)

This is the SINGLE ENTRYPOINT for route gating.

States per protected view:
- UNAUTHENTICATED           → redirect to sign-in
- AUTHENTICATED_MISMATCHED  → cached role disagrees with the credential;
                              adopt the fresh role, redirect to its landing
- AUTHENTICATED             → render, or redirect to landing if the role
                              is not allowed on the route

Rules:
- Re-run on every navigation, not only on first render
- landing_route() is the only place that maps a role to its dashboard
- No rendering, no mutation of letters
- Within the re-auth buffer of expiry the decision carries reauth_due
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Literal, Mapping, Optional

from patra.security.roles import ALL_ROLES, HEAD, INWARD_USER
from patra.security.session_authority import SessionAuthority, VerificationResult

# ==================================================
# ROUTES
# ==================================================
SIGN_IN_ROUTE = "/login"
FORGOT_PASSWORD_ROUTE = "/forgot-password"
INWARD_DASHBOARD = "/inward-dashboard"
HEAD_DASHBOARD = "/head-dashboard"
OUTWARD_DASHBOARD = "/outward-dashboard"

PUBLIC_ROUTES: FrozenSet[str] = frozenset({SIGN_IN_ROUTE, FORGOT_PASSWORD_ROUTE})

OUTWARD_ROLES: FrozenSet[str] = frozenset(ALL_ROLES - {INWARD_USER, HEAD})

# Route prefix → roles allowed. Empty set means any authenticated role.
ROUTE_ROLE_REQUIREMENTS: Dict[str, FrozenSet[str]] = {
    INWARD_DASHBOARD: frozenset({INWARD_USER}),
    HEAD_DASHBOARD: frozenset({HEAD}),
    OUTWARD_DASHBOARD: OUTWARD_ROLES,
    "/track-application": frozenset(),
}

# ==================================================
# DENIAL REASON CONSTANTS (ENUM-SAFE)
# ==================================================
DENIAL_NO_SESSION: Literal["NO_SESSION"] = "NO_SESSION"
DENIAL_SESSION_EXPIRED: Literal["SESSION_EXPIRED"] = "SESSION_EXPIRED"
DENIAL_REMOTE_REJECTED: Literal["REMOTE_REJECTED"] = "REMOTE_REJECTED"
DENIAL_REMOTE_UNREACHABLE: Literal["REMOTE_UNREACHABLE"] = "REMOTE_UNREACHABLE"
DENIAL_ROLE_MISMATCH: Literal["ROLE_MISMATCH"] = "ROLE_MISMATCH"
DENIAL_ROLE_NOT_PERMITTED: Literal["ROLE_NOT_PERMITTED"] = "ROLE_NOT_PERMITTED"
DENIAL_ALREADY_SIGNED_IN: Literal["ALREADY_SIGNED_IN"] = "ALREADY_SIGNED_IN"


class AccessState(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED_MISMATCHED = "AUTHENTICATED_MISMATCHED"
    AUTHENTICATED = "AUTHENTICATED"


@dataclass(frozen=True)
class AccessDecision:
    state: AccessState
    route: str
    redirect_to: Optional[str] = None
    role: Optional[str] = None
    reason: Optional[str] = None
    reauth_due: bool = False

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


def landing_route(role: Optional[str]) -> str:
    """Canonical landing route for a role (sign-in, mismatch and denial redirects)."""
    if role == INWARD_USER:
        return INWARD_DASHBOARD
    if role == HEAD:
        return HEAD_DASHBOARD
    return OUTWARD_DASHBOARD


def required_roles(
    route: str,
    requirements: Mapping[str, FrozenSet[str]] = ROUTE_ROLE_REQUIREMENTS,
) -> FrozenSet[str]:
    """Roles required by the longest matching route prefix."""
    best: Optional[str] = None
    for prefix in requirements:
        if route == prefix or route.startswith(prefix.rstrip("/") + "/"):
            if best is None or len(prefix) > len(best):
                best = prefix
    return requirements[best] if best is not None else frozenset()


class AccessController:
    """
    Gates navigation using identity from the SessionAuthority.

    `cached_role` is the role the previous render was produced for.
    """

    def __init__(
        self,
        authority: SessionAuthority,
        *,
        route_requirements: Optional[Mapping[str, FrozenSet[str]]] = None,
        verify_remote: bool = True,
    ):
        self.authority = authority
        self.route_requirements = route_requirements or ROUTE_ROLE_REQUIREMENTS
        self.verify_remote = verify_remote
        self.cached_role: Optional[str] = None

    def _unauthenticated(self, route: str, reason: str) -> AccessDecision:
        self.cached_role = None
        redirect = None if route in PUBLIC_ROUTES else SIGN_IN_ROUTE
        return AccessDecision(
            state=AccessState.UNAUTHENTICATED,
            route=route,
            redirect_to=redirect,
            reason=reason,
        )

    def navigate(self, route: str) -> AccessDecision:
        """Route-change hook: revalidate identity and decide allow/redirect."""
        if not self.authority.is_alive():
            return self._unauthenticated(route, DENIAL_NO_SESSION)

        identity = self.authority.current_identity()
        if identity is None:
            return self._unauthenticated(route, DENIAL_NO_SESSION)

        if identity.is_expired(self.authority.now()):
            self.authority.clear()
            return self._unauthenticated(route, DENIAL_SESSION_EXPIRED)

        if self.verify_remote:
            result = self.authority.verify_remote()
            if result is VerificationResult.EXPIRED:
                return self._unauthenticated(route, DENIAL_SESSION_EXPIRED)
            if result is VerificationResult.UNREACHABLE:
                return self._unauthenticated(route, DENIAL_REMOTE_UNREACHABLE)
            if result is not VerificationResult.VALID:
                return self._unauthenticated(route, DENIAL_REMOTE_REJECTED)

        self.authority.refresh_activity()
        # Inside the re-auth buffer the view still renders, with a prompt
        reauth_due = self.authority.needs_reauth()
        role = identity.role

        if self.cached_role is not None and self.cached_role != role:
            self.cached_role = role
            return AccessDecision(
                state=AccessState.AUTHENTICATED_MISMATCHED,
                route=route,
                redirect_to=landing_route(role),
                role=role,
                reauth_due=reauth_due,
                reason=DENIAL_ROLE_MISMATCH,
            )

        self.cached_role = role

        if route in PUBLIC_ROUTES:
            return AccessDecision(
                state=AccessState.AUTHENTICATED,
                route=route,
                redirect_to=landing_route(role),
                role=role,
                reauth_due=reauth_due,
                reason=DENIAL_ALREADY_SIGNED_IN,
            )

        # A role's own landing route is always renderable for it
        home = landing_route(role)
        on_home = route == home or route.startswith(home + "/")

        allowed_roles = required_roles(route, self.route_requirements)
        if allowed_roles and role not in allowed_roles and not on_home:
            return AccessDecision(
                state=AccessState.AUTHENTICATED,
                route=route,
                redirect_to=landing_route(role),
                role=role,
                reauth_due=reauth_due,
                reason=DENIAL_ROLE_NOT_PERMITTED,
            )

        return AccessDecision(
            state=AccessState.AUTHENTICATED, route=route, role=role, reauth_due=reauth_due
        )
