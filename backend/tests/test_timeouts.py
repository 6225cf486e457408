"""
Moderation tests: timeouts and showcase curation
"""

from datetime import timedelta

import pytest

from models.domain.platform import UserTimeout
from services.errors import PermissionDeniedError, UserNotFoundError, UserTimedOutError
from services.moderation_service import ModerationService
from tests.fakes import add_user
from utils.datetime_utils import utc_now


@pytest.fixture
def moderation(moderation_repo, user_repo):
    return ModerationService(moderation_repo, user_repo)


class TestUserTimeout:

    def test_for_hours(self):
        now = utc_now()
        timeout = UserTimeout.for_hours("u1", 2, "Spam", now=now)

        assert timeout.end_time == now + timedelta(hours=2)
        assert timeout.is_active(now)
        assert not timeout.is_active(now + timedelta(hours=2))

    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            UserTimeout.for_hours("u1", 0, "Spam")


class TestAccessChecks:

    @pytest.mark.asyncio
    async def test_no_timeout_passes(self, db, moderation):
        user = add_user(db, "user@funfans.com")
        await moderation.check_access(user.user_id)

    @pytest.mark.asyncio
    async def test_active_timeout_blocks(self, db, moderation, developer):
        user = add_user(db, "user@funfans.com")
        await moderation.set_timeout(developer, user.user_id, 24, "Cool down")

        with pytest.raises(UserTimedOutError) as exc:
            await moderation.check_access(user.user_id)

        assert exc.value.message == "Cool down"
        assert exc.value.end_time > utc_now()
        assert (await moderation.active_timeout(user.user_id)).message == "Cool down"

    @pytest.mark.asyncio
    async def test_expired_timeout_passes(self, db, moderation):
        user = add_user(db, "user@funfans.com")
        db.timeouts[user.user_id] = UserTimeout(user.user_id, utc_now() - timedelta(minutes=1), "Old")

        await moderation.check_access(user.user_id)
        assert await moderation.active_timeout(user.user_id) is None

    @pytest.mark.asyncio
    async def test_clear_timeout(self, db, moderation, developer):
        user = add_user(db, "user@funfans.com")
        await moderation.set_timeout(developer, user.user_id, 1, "Wait")

        assert await moderation.clear_timeout(developer, user.user_id)
        await moderation.check_access(user.user_id)
        assert not await moderation.clear_timeout(developer, user.user_id)

    @pytest.mark.asyncio
    async def test_only_admins_set_timeouts(self, db, moderation):
        user = add_user(db, "user@funfans.com")
        other = add_user(db, "other@funfans.com")

        with pytest.raises(PermissionDeniedError):
            await moderation.set_timeout(user, other.user_id, 1, "No")

    @pytest.mark.asyncio
    async def test_timeout_unknown_user(self, moderation, developer):
        with pytest.raises(UserNotFoundError):
            await moderation.set_timeout(developer, "missing", 1, "No")


class TestShowcase:

    @pytest.mark.asyncio
    async def test_set_showcase_deduplicates(self, db, moderation, developer, creator):
        saved = await moderation.set_showcase_ids(developer, [creator.user_id, creator.user_id])

        assert saved == [creator.user_id]
        assert await moderation.get_showcase_ids() == [creator.user_id]

    @pytest.mark.asyncio
    async def test_showcase_requires_known_users(self, db, moderation, developer):
        with pytest.raises(UserNotFoundError):
            await moderation.set_showcase_ids(developer, ["missing"])
        assert db.showcase == []

    @pytest.mark.asyncio
    async def test_showcase_admin_only(self, moderation, creator):
        with pytest.raises(PermissionDeniedError):
            await moderation.set_showcase_ids(creator, [creator.user_id])
