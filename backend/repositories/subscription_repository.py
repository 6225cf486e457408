"""
Subscription Repository - store catalog and per-user subscriptions

Storage: PostgreSQL (subscription_plans, credit_packages, user_subscriptions)

user_subscriptions is keyed by user_id: every write (user checkout, free
plan, admin assignment) replaces the previous row, so the last write wins.
"""
import json
import logging
from typing import List, Optional
import asyncpg

from models.domain.ledger import Transaction, TransactionType
from models.domain.subscription import CreditPackage, SubscriptionPlan, UserSubscription
from repositories.ledger_repository import claim_payment_event, credit_balance, insert_transaction
from services.errors import UserNotFoundError

logger = logging.getLogger(__name__)


def _plan_to_json(plan: SubscriptionPlan) -> str:
    return json.dumps({
        "id": plan.id,
        "name": plan.name,
        "price": plan.price,
        "currency": plan.currency.value,
        "credits": plan.credits,
        "features": list(plan.features),
        "stripe_product_id": plan.stripe_product_id,
    })


def _plan_from_json(value) -> SubscriptionPlan:
    data = json.loads(value) if isinstance(value, str) else value
    return SubscriptionPlan(**data)


def _row_to_plan(row) -> SubscriptionPlan:
    features = row['features']
    return SubscriptionPlan(
        id=row['id'],
        name=row['name'],
        price=float(row['price']),
        currency=row['currency'],
        credits=row['credits'],
        features=json.loads(features) if isinstance(features, str) else list(features or []),
        stripe_product_id=row['stripe_product_id'],
    )


def _row_to_package(row) -> CreditPackage:
    return CreditPackage(
        id=row['id'],
        credits=row['credits'],
        price=float(row['price']),
        bonus=row['bonus'],
        best_value=row['best_value'],
        stripe_product_id=row['stripe_product_id'],
    )


def _row_to_subscription(row) -> UserSubscription:
    return UserSubscription(
        user_id=str(row['user_id']),
        plan=_plan_from_json(row['plan']),
        renews_on=row['renews_on'],
        payment_method=row['payment_method'],
        created_at=row['created_at'],
    )


class SubscriptionRepository:
    """
    Repository for plans, credit packages and user subscriptions
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def list_plans(self) -> List[SubscriptionPlan]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, name, price, currency, credits, features, stripe_product_id
                FROM subscription_plans
                ORDER BY price ASC
            """)
            return [_row_to_plan(row) for row in rows]

    async def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT id, name, price, currency, credits, features, stripe_product_id
                FROM subscription_plans
                WHERE id = $1
            """, plan_id)
            return _row_to_plan(row) if row else None

    async def upsert_plan(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO subscription_plans (id, name, price, currency, credits, features, stripe_product_id)
                VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name,
                    price = EXCLUDED.price,
                    currency = EXCLUDED.currency,
                    credits = EXCLUDED.credits,
                    features = EXCLUDED.features,
                    stripe_product_id = EXCLUDED.stripe_product_id
            """,
                plan.id,
                plan.name,
                plan.price,
                plan.currency.value,
                plan.credits,
                json.dumps(plan.features),
                plan.stripe_product_id
            )

            logger.info(f"Saved subscription plan {plan.id}")
            return plan

    async def list_packages(self) -> List[CreditPackage]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, credits, price, bonus, best_value, stripe_product_id
                FROM credit_packages
                ORDER BY credits ASC
            """)
            return [_row_to_package(row) for row in rows]

    async def get_package(self, package_id: str) -> Optional[CreditPackage]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT id, credits, price, bonus, best_value, stripe_product_id
                FROM credit_packages
                WHERE id = $1
            """, package_id)
            return _row_to_package(row) if row else None

    async def upsert_package(self, package: CreditPackage) -> CreditPackage:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO credit_packages (id, credits, price, bonus, best_value, stripe_product_id)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE
                SET credits = EXCLUDED.credits,
                    price = EXCLUDED.price,
                    bonus = EXCLUDED.bonus,
                    best_value = EXCLUDED.best_value,
                    stripe_product_id = EXCLUDED.stripe_product_id
            """,
                package.id,
                package.credits,
                package.price,
                package.bonus,
                package.best_value,
                package.stripe_product_id
            )

            logger.info(f"Saved credit package {package.id}")
            return package

    # =========================================================================
    # USER SUBSCRIPTIONS
    # =========================================================================

    async def get_for_user(self, user_id: str) -> Optional[UserSubscription]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT user_id, plan, renews_on, payment_method, created_at
                FROM user_subscriptions
                WHERE user_id = $1
            """, user_id)
            return _row_to_subscription(row) if row else None

    async def list_all(self) -> List[UserSubscription]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT user_id, plan, renews_on, payment_method, created_at
                FROM user_subscriptions
                ORDER BY created_at DESC
            """)
            return [_row_to_subscription(row) for row in rows]

    async def save_subscription(self, subscription: UserSubscription,
                                payment_event_id: Optional[str] = None) -> Optional[Transaction]:
        """
        Write the user's subscription and grant the plan's credits.

        Args:
            subscription: New subscription (replaces any existing one)
            payment_event_id: Gateway event that paid for it, if any

        Returns:
            The SUBSCRIPTION transaction, or None if payment_event_id was
            already processed

        Raises:
            UserNotFoundError: the user does not exist
        """
        plan = subscription.plan
        description = f"Subscribed to {plan.name} plan"

        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                if payment_event_id and not await claim_payment_event(
                    conn, payment_event_id, "subscription", subscription.user_id
                ):
                    return None

                try:
                    await conn.execute("""
                        INSERT INTO user_subscriptions (user_id, plan, renews_on, payment_method, created_at)
                        VALUES ($1, $2::jsonb, $3, $4, $5)
                        ON CONFLICT (user_id) DO UPDATE
                        SET plan = EXCLUDED.plan,
                            renews_on = EXCLUDED.renews_on,
                            payment_method = EXCLUDED.payment_method,
                            created_at = EXCLUDED.created_at
                    """,
                        subscription.user_id,
                        _plan_to_json(plan),
                        subscription.renews_on,
                        subscription.payment_method,
                        subscription.created_at
                    )
                except asyncpg.ForeignKeyViolationError:
                    raise UserNotFoundError(subscription.user_id)

                if plan.credits > 0:
                    transaction = await credit_balance(
                        conn, subscription.user_id, plan.credits,
                        TransactionType.SUBSCRIPTION, description, plan.id
                    )
                else:
                    transaction = await self._zero_transaction(conn, subscription.user_id, description, plan.id)

                if transaction is None:
                    raise UserNotFoundError(subscription.user_id)

            logger.info(
                f"User {subscription.user_id} subscribed to {plan.id} "
                f"via {subscription.payment_method} (+{plan.credits} credits)"
            )
            return transaction

    async def delete_for_user(self, user_id: str) -> Optional[Transaction]:
        """
        Cancel the user's subscription.

        Returns:
            Zero-amount SUBSCRIPTION transaction, or None if there was none
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                plan_json = await conn.fetchval("""
                    DELETE FROM user_subscriptions WHERE user_id = $1 RETURNING plan
                """, user_id)

                if plan_json is None:
                    return None

                plan = _plan_from_json(plan_json)
                transaction = await self._zero_transaction(
                    conn, user_id, f"Cancelled {plan.name} plan", plan.id
                )

            logger.info(f"Cancelled subscription {plan.id} of user {user_id}")
            return transaction

    async def _zero_transaction(self, conn, user_id: str, description: str,
                                reference_id: str) -> Optional[Transaction]:
        balance = await conn.fetchval(
            "SELECT credits_balance FROM users WHERE user_id = $1", user_id
        )
        if balance is None:
            return None
        transaction = Transaction(
            user_id=user_id,
            type=TransactionType.SUBSCRIPTION,
            amount=0,
            description=description,
            balance_after=balance,
            reference_id=reference_id,
        )
        await insert_transaction(conn, transaction)
        return transaction
