"""
User Repository - PostgreSQL storage for user accounts and the follow graph

Storage: PostgreSQL (users, follows tables)
"""
import logging
from typing import Optional, List
import asyncpg

from models.domain.ledger import Transaction, TransactionType
from models.domain.user import User
from repositories.ledger_repository import insert_transaction

logger = logging.getLogger(__name__)

_USER_COLUMNS = """
    user_id, email, username, role, password_hash, profile_picture_url,
    full_name, date_of_birth, gender, phone, vitrine_slug,
    credits_balance, created_at, last_login
"""


class UserRepository:
    """
    Repository for User domain model

    Handles accounts, profiles and follow edges.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """
        Retrieve user by ID, including follower/following sets.

        Args:
            user_id: User UUID

        Returns:
            User model or None
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE user_id = $1
            """, user_id)

            if not row:
                return None

            return await self._to_user(conn, row)

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {_USER_COLUMNS} FROM users WHERE lower(email) = lower($1)
            """, email)

            if not row:
                return None

            return await self._to_user(conn, row)

    async def get_by_vitrine_slug(self, slug: str) -> Optional[User]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {_USER_COLUMNS} FROM users WHERE vitrine_slug = $1
            """, slug)

            if not row:
                return None

            return await self._to_user(conn, row)

    async def list_all(self, limit: int = 500) -> List[User]:
        """List all users, newest first (admin panel)"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {_USER_COLUMNS}
                FROM users
                ORDER BY created_at DESC
                LIMIT $1
            """, limit)

            return [await self._to_user(conn, row) for row in rows]

    async def _to_user(self, conn, row) -> User:
        user_id = row['user_id']
        followers = await conn.fetch(
            "SELECT follower_id FROM follows WHERE followee_id = $1", user_id
        )
        following = await conn.fetch(
            "SELECT followee_id FROM follows WHERE follower_id = $1", user_id
        )
        return User(
            user_id=str(user_id),
            email=row['email'],
            username=row['username'],
            role=row['role'],
            password_hash=row['password_hash'],
            profile_picture_url=row['profile_picture_url'],
            full_name=row['full_name'],
            date_of_birth=row['date_of_birth'],
            gender=row['gender'],
            phone=row['phone'],
            vitrine_slug=row['vitrine_slug'],
            credits_balance=row['credits_balance'],
            followers={str(r['follower_id']) for r in followers},
            following={str(r['followee_id']) for r in following},
            created_at=row['created_at'],
            last_login=row['last_login']
        )

    # =========================================================================
    # CREATE OPERATION
    # =========================================================================

    async def create(self, user: User, initial_balance: int = 0) -> User:
        """
        Create a new user with its starting balance.

        The starting grant is recorded as a REWARD transaction in the same
        database transaction, so it happens exactly once per account.

        Args:
            user: User model (id generated in __post_init__)
            initial_balance: Credits granted at creation

        Returns:
            Created user with timestamps
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow("""
                    INSERT INTO users (
                        user_id, email, username, role, password_hash,
                        profile_picture_url, full_name, date_of_birth, gender, phone,
                        vitrine_slug, credits_balance, created_at, last_login
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, NOW(), NOW())
                    RETURNING created_at, last_login
                """,
                    user.user_id,
                    user.email,
                    user.username,
                    user.role.value,
                    user.password_hash,
                    user.profile_picture_url,
                    user.full_name,
                    user.date_of_birth,
                    user.gender,
                    user.phone,
                    user.vitrine_slug,
                    initial_balance
                )

                if initial_balance > 0:
                    await insert_transaction(conn, Transaction(
                        user_id=user.user_id,
                        type=TransactionType.REWARD,
                        amount=initial_balance,
                        description="Welcome credits",
                        balance_after=initial_balance,
                    ))

            user.credits_balance = initial_balance
            user.created_at = row['created_at']
            user.last_login = row['last_login']

            logger.info(f"Created user {user.user_id} ({user.email})")
            return user

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update_profile(self, user: User) -> User:
        """
        Persist profile fields. Balance and role are not touched here.

        Raises:
            asyncpg.UniqueViolationError: vitrine slug taken
        """
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                UPDATE users
                SET username = $2,
                    profile_picture_url = $3,
                    full_name = $4,
                    date_of_birth = $5,
                    gender = $6,
                    phone = $7,
                    vitrine_slug = $8
                WHERE user_id = $1
            """,
                user.user_id,
                user.username,
                user.profile_picture_url,
                user.full_name,
                user.date_of_birth,
                user.gender,
                user.phone,
                user.vitrine_slug
            )

            logger.info(f"Updated profile of user {user.user_id}")
            return user

    async def update_password(self, user_id: str, password_hash: str) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                UPDATE users SET password_hash = $2 WHERE user_id = $1
            """, user_id, password_hash)

            logger.info(f"Updated password of user {user_id}")

    async def update_role(self, user_id: str, role: str) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                UPDATE users SET role = $2 WHERE user_id = $1
            """, user_id, role)

            logger.info(f"Set role of user {user_id} to {role}")

    async def update_last_login(self, user_id: str) -> None:
        """
        Update user's last login timestamp.

        Args:
            user_id: User UUID
        """
        async with self.db_pool.acquire() as conn:
            await conn.execute("""
                UPDATE users SET last_login = NOW() WHERE user_id = $1
            """, user_id)

    # =========================================================================
    # FOLLOW GRAPH
    # =========================================================================

    async def add_follow(self, follower_id: str, followee_id: str) -> bool:
        """
        Returns:
            True if the edge was created, False if it already existed
        """
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                INSERT INTO follows (follower_id, followee_id, created_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (follower_id, followee_id) DO NOTHING
            """, follower_id, followee_id)

            created = int(result.split()[-1]) > 0
            if created:
                logger.info(f"User {follower_id} now follows {followee_id}")
            return created

    async def remove_follow(self, follower_id: str, followee_id: str) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("""
                DELETE FROM follows WHERE follower_id = $1 AND followee_id = $2
            """, follower_id, followee_id)

            removed = int(result.split()[-1]) > 0
            if removed:
                logger.info(f"User {follower_id} unfollowed {followee_id}")
            return removed
