"""
Session Context

Injectable holder of the authenticated identity for one session.
Only the auth layer sets the identity; other components subscribe and
react when it changes.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from subie.domain.users import AuthUser


logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[AuthUser]], Awaitable[None]]


class SessionContext:
    """
    Identity plus change notification.

    Lifecycle:
        context = SessionContext(identity)
        provider = SomeProvider(context)   # subscribes
        await context.init()               # listeners see the first identity
        await context.set_identity(other)  # listeners re-run on a new id
        context.dispose()
    """

    def __init__(self, identity: Optional[AuthUser] = None):
        self._identity = identity
        self._listeners: List[IdentityListener] = []
        self._initialized = False
        self._disposed = False

    @property
    def identity(self) -> Optional[AuthUser]:
        return self._identity

    @property
    def user_id(self) -> Optional[str]:
        return self._identity.id if self._identity else None

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Announce the initial identity to every listener, once."""
        if self._initialized or self._disposed:
            return
        self._initialized = True
        await self._notify()

    async def set_identity(self, identity: Optional[AuthUser]) -> None:
        """
        Replace the identity.

        Listeners run only when the identity id changes; a refreshed copy
        of the same user (e.g. a new role) is stored silently.
        """
        previous_id = self.user_id
        self._identity = identity
        if not self._initialized or self._disposed:
            return
        if previous_id == self.user_id:
            return

        logger.info(f"Session identity changed from {previous_id} to {self.user_id}")
        await self._notify()

    def on_identity_change(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispose(self) -> None:
        self._listeners.clear()
        self._disposed = True

    async def _notify(self) -> None:
        # Registration order; a failing listener stops the chain
        for listener in list(self._listeners):
            await listener(self._identity)
