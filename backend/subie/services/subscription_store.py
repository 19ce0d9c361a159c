"""
Subscription Store

Session-scoped data-access layer over the subscription repository.

The store keeps the caller's collection in `subscriptions` and refreshes it
with a full re-list after every successful mutation, so it never holds a
write the database rejected. `loading` and `error` mirror the state a UI
would bind to.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel as PydanticModel
from pydantic import ValidationError as PydanticValidationError

from subie.config.settings import settings
from subie.domain.subscription import (
    REQUIRED_FIELDS,
    SpendingAnalytics,
    Subscription,
    SubscriptionCategory,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
    advance_payment_date,
    compute_spending_analytics,
    is_reminder_due,
)
from subie.domain.transactions import (
    TransactionCreate,
    TransactionStatus,
    TransactionType,
)
from subie.infrastructure.db.repositories import (
    CategoryRepository,
    SubscriptionRepository,
    TransactionRepository,
)
from subie.infrastructure.exceptions import (
    AccessDeniedError,
    NotFoundError,
    SubieError,
    ValidationError,
)
from subie.services.session import SessionContext


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=PydanticModel)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def parse_fields(model: Type[ModelT], fields: Union[ModelT, Dict[str, Any]]) -> ModelT:
    """
    Validate raw input into a DTO.

    Raises:
        ValidationError: with the offending field paths
    """
    if isinstance(fields, model):
        return fields
    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        names = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ValidationError(
            f"Invalid fields: {', '.join(names)}",
            fields=names,
            original_error=e,
        )


class SubscriptionStore:
    """
    Subscriptions of the session's identity.

    Args:
        repository: Owner-scoped subscription repository
        context: Session context providing the identity
        categories: Optional category repository for the lookup list
        transactions: Optional transaction repository; when present,
            recorded payments are also written to the billing history
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        context: SessionContext,
        categories: Optional[CategoryRepository] = None,
        transactions: Optional[TransactionRepository] = None,
    ):
        self._repository = repository
        self._context = context
        self._categories = categories
        self._transactions = transactions

        self.subscriptions: List[Subscription] = []
        self.loading: bool = False
        self.error: Optional[str] = None

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def list(self) -> List[Subscription]:
        """
        Load every subscription owned by the identity.

        Ordered by next_payment_date; empty when there is no identity.
        """
        user_id = self._context.user_id
        if user_id is None:
            self.subscriptions = []
            return []

        self.loading = True
        try:
            rows = await self._repository.list_for_user(user_id)
        finally:
            self.loading = False

        self.subscriptions = rows
        self.error = None
        return rows

    async def refresh(self) -> List[Subscription]:
        """Re-list, recording failures in `error` instead of raising."""
        try:
            return await self.list()
        except Exception as e:
            self.error = e.message if isinstance(e, SubieError) else str(e)
            logger.error(f"Failed to load subscriptions: {e}", exc_info=True)
            return self.subscriptions

    async def upcoming(
        self,
        days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[Subscription]:
        """Active subscriptions due within `days` of `today`."""
        user_id = self._context.user_id
        if user_id is None:
            return []

        today = today or today_utc()
        window = settings.upcoming_window_days if days is None else days
        rows = await self._repository.list_for_user(
            user_id,
            status=SubscriptionStatus.ACTIVE,
            due_on_or_before=today + timedelta(days=window),
        )
        return [sub for sub in rows if sub.next_payment_date >= today]

    async def due_reminders(self, today: Optional[date] = None) -> List[Subscription]:
        """Active subscriptions whose reminder window contains `today`."""
        user_id = self._context.user_id
        if user_id is None:
            return []

        today = today or today_utc()
        rows = await self._repository.list_for_user(user_id, status=SubscriptionStatus.ACTIVE)
        return [sub for sub in rows if is_reminder_due(sub, today)]

    async def spending_analytics(self) -> SpendingAnalytics:
        user_id = self._context.user_id
        rows = await self._repository.list_for_user(user_id) if user_id else []
        return compute_spending_analytics(rows)

    async def list_categories(self) -> List[SubscriptionCategory]:
        if self._categories is None:
            return []
        return await self._categories.list_all()

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create(
        self,
        fields: Union[SubscriptionCreate, Dict[str, Any]],
    ) -> Subscription:
        """
        Register a subscription for the identity.

        Raises:
            ValidationError: a required field is missing or invalid
        """
        try:
            user_id = self._require_user()
            if isinstance(fields, dict):
                missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
                if missing:
                    raise ValidationError(
                        f"Missing required fields: {', '.join(missing)}",
                        fields=missing,
                    )
            data = parse_fields(SubscriptionCreate, fields)
        except SubieError as e:
            self.error = e.message
            raise

        return await self._mutate(lambda: self._repository.create_for_user(user_id, data))

    async def update(
        self,
        subscription_id: str,
        fields: Union[SubscriptionUpdate, Dict[str, Any]],
    ) -> Subscription:
        """
        Patch one subscription. Fields absent from the patch are unchanged.

        Raises:
            ValidationError: the patch is invalid
            NotFoundError: no such subscription for this identity
        """
        try:
            user_id = self._require_user()
            data = parse_fields(SubscriptionUpdate, fields)
        except SubieError as e:
            self.error = e.message
            raise

        async def apply() -> Subscription:
            updated = await self._repository.update_for_user(user_id, subscription_id, data)
            if updated is None:
                raise NotFoundError(
                    f"Subscription {subscription_id} not found",
                    operation="update",
                    table="subscriptions",
                )
            return updated

        return await self._mutate(apply)

    async def delete(self, subscription_id: str) -> None:
        """Remove one subscription. Unknown or foreign ids are a no-op."""
        try:
            user_id = self._require_user()
        except SubieError as e:
            self.error = e.message
            raise

        await self._mutate(lambda: self._repository.delete_for_user(user_id, subscription_id))

    async def record_payment(
        self,
        subscription_id: str,
        paid_on: Optional[date] = None,
    ) -> Subscription:
        """
        Mark a charge as paid and roll the schedule forward one cycle.

        Raises:
            NotFoundError: no such subscription for this identity
        """
        try:
            user_id = self._require_user()
        except SubieError as e:
            self.error = e.message
            raise

        paid_on = paid_on or today_utc()

        async def apply() -> Subscription:
            current = await self._repository.get_for_user(user_id, subscription_id)
            if current is None:
                raise NotFoundError(
                    f"Subscription {subscription_id} not found",
                    operation="record_payment",
                    table="subscriptions",
                )

            patch = SubscriptionUpdate(
                last_payment_date=paid_on,
                next_payment_date=advance_payment_date(paid_on, current.billing_cycle),
            )
            updated = await self._repository.update_for_user(user_id, subscription_id, patch)

            if self._transactions is not None:
                await self._transactions.create_for_user(
                    user_id,
                    TransactionCreate(
                        subscription_id=current.id,
                        amount=current.amount,
                        currency=current.currency,
                        status=TransactionStatus.COMPLETED,
                        transaction_type=TransactionType.SUBSCRIPTION_PAYMENT,
                        description=f"{current.name} payment",
                        processed_at=datetime.now(timezone.utc),
                    ),
                )
            return updated

        return await self._mutate(apply)

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_user(self) -> str:
        user_id = self._context.user_id
        if user_id is None:
            raise AccessDeniedError("User not authenticated", required="authenticated")
        return user_id

    async def _mutate(self, action):
        """Run a write, then re-list. A failed write leaves the collection as is."""
        self.loading = True
        try:
            result = await action()
            self.subscriptions = await self._repository.list_for_user(self._context.user_id)
            self.error = None
            return result
        except SubieError as e:
            self.error = e.message
            logger.warning(f"Subscription mutation failed: {e.message}")
            raise
        finally:
            self.loading = False
