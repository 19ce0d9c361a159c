"""
Access Guards

Gate a protected area on an auth state that resolves asynchronously.

A guard is evaluated every time the auth state changes. While the state
is loading it asks for a placeholder; once resolved it either lets the
children render, or navigates away. Guards never raise.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol, Set

from pydantic import BaseModel

from subie.domain.users import AuthUser


logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "You don't have permission to access this area."


class AuthStatus(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class AuthState(BaseModel):
    """Snapshot of the auth layer as seen by a guard."""
    status: AuthStatus
    user: Optional[AuthUser] = None

    @classmethod
    def loading(cls) -> "AuthState":
        return cls(status=AuthStatus.LOADING)

    @classmethod
    def anonymous(cls) -> "AuthState":
        return cls(status=AuthStatus.UNAUTHENTICATED)

    @classmethod
    def authenticated(cls, user: AuthUser) -> "AuthState":
        return cls(status=AuthStatus.AUTHENTICATED, user=user)


class RenderMode(str, Enum):
    PLACEHOLDER = "placeholder"
    NOTHING = "nothing"
    CHILDREN = "children"
    ACCESS_DENIED = "access_denied"


class GuardDecision(BaseModel):
    render: RenderMode
    redirect_to: Optional[str] = None
    message: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.render == RenderMode.CHILDREN


class Navigator(Protocol):
    def push(self, route: str) -> None:
        ...


class RecordingNavigator:
    """Navigator that only remembers where it was sent."""

    def __init__(self):
        self.history: List[str] = []

    def push(self, route: str) -> None:
        self.history.append(route)

    @property
    def current(self) -> Optional[str]:
        return self.history[-1] if self.history else None


class AuthGuard:
    """
    Requires an authenticated identity.

    Each redirect target is pushed at most once over the guard's lifetime.
    """

    def __init__(self, navigator: Navigator, redirect_to: str = "/login"):
        self._navigator = navigator
        self._redirect_to = redirect_to
        self._redirected: Set[str] = set()

    def evaluate(self, state: AuthState) -> GuardDecision:
        if state.status == AuthStatus.LOADING:
            return GuardDecision(render=RenderMode.PLACEHOLDER)

        if state.status == AuthStatus.UNAUTHENTICATED or state.user is None:
            self._redirect(self._redirect_to)
            return GuardDecision(render=RenderMode.NOTHING, redirect_to=self._redirect_to)

        return GuardDecision(render=RenderMode.CHILDREN)

    def _redirect(self, route: str) -> None:
        if route in self._redirected:
            return
        self._redirected.add(route)
        logger.debug(f"Guard redirecting to {route}")
        self._navigator.push(route)


class RoleGuard(AuthGuard):
    """
    Requires an authenticated identity with admin rights.

    With `require_admin` only admins pass; otherwise moderators pass too.
    A rejected identity is sent to `fallback` and shown an explicit
    denial.
    """

    def __init__(
        self,
        navigator: Navigator,
        fallback: str = "/subscriptions",
        require_admin: bool = False,
        login_route: str = "/login",
    ):
        super().__init__(navigator, redirect_to=login_route)
        self._fallback = fallback
        self._require_admin = require_admin

    @property
    def required_role(self) -> str:
        return "admin" if self._require_admin else "admin_or_moderator"

    def evaluate(self, state: AuthState) -> GuardDecision:
        decision = super().evaluate(state)
        if decision.render != RenderMode.CHILDREN:
            return decision

        user = state.user
        has_access = user.is_admin if self._require_admin else user.has_elevated_access
        if has_access:
            return decision

        logger.info(f"Access denied for user {user.id}, requires {self.required_role}")
        self._redirect(self._fallback)
        return GuardDecision(
            render=RenderMode.ACCESS_DENIED,
            redirect_to=self._fallback,
            message=ACCESS_DENIED_MESSAGE,
        )
