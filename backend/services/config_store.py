"""
Visibility/Config Store

Admin-tunable platform settings (commission, media caps, withdrawal cooldown)
and sidebar feature flags, plus capability resolution for a role.

Readers get a point-in-time snapshot (frozen DevSettings). There is no
transactional coupling with in-flight purchases: a purchase uses whichever
commission it read when it started.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from models.domain.platform import DevSettings, SidebarVisibility
from models.domain.user import User, UserRole
from services.cache import SimpleCache, settings_cache
from services.errors import InvalidSettingError, PermissionDeniedError

logger = logging.getLogger(__name__)

DEV_SETTINGS_KEY = "dev_settings"
SIDEBAR_KEY = "sidebar_visibility"


class Capability(str, Enum):
    HOME = "home"
    STORE = "store"
    OUTFIT_GENERATOR = "outfit_generator"
    THEME_GENERATOR = "theme_generator"
    ACCOUNT = "account"
    MANAGE_SUBSCRIPTION = "manage_subscription"
    HISTORY = "history"
    EARN_CREDITS = "earn_credits"
    CREATE_CONTENT = "create_content"
    MY_CREATIONS = "my_creations"
    CREATOR_PAYOUTS = "creator_payouts"
    DEVELOPER_PANEL = "developer_panel"
    USER_PLAN_MANAGEMENT = "user_plan_management"
    SHOWCASE_MANAGEMENT = "showcase_management"


_ALL_ROLES = frozenset(UserRole)
_MEMBERS = frozenset({UserRole.USER, UserRole.CREATOR})
_DEVELOPERS = frozenset({UserRole.DEVELOPER})

# capability -> (roles allowed, sidebar flag gating it or None)
CAPABILITY_RULES: Dict[Capability, Tuple[FrozenSet[UserRole], Optional[str]]] = {
    Capability.HOME: (_ALL_ROLES, None),
    Capability.STORE: (_ALL_ROLES, "store"),
    Capability.OUTFIT_GENERATOR: (_ALL_ROLES, "outfit_generator"),
    Capability.THEME_GENERATOR: (_ALL_ROLES, "theme_generator"),
    Capability.ACCOUNT: (_ALL_ROLES, None),
    Capability.MANAGE_SUBSCRIPTION: (_MEMBERS, "manage_subscription"),
    Capability.HISTORY: (_ALL_ROLES, None),
    Capability.EARN_CREDITS: (_MEMBERS, "earn_credits"),
    Capability.CREATE_CONTENT: (_ALL_ROLES, "create_content"),
    Capability.MY_CREATIONS: (_ALL_ROLES, "my_creations"),
    Capability.CREATOR_PAYOUTS: (_ALL_ROLES, "creator_payouts"),
    Capability.DEVELOPER_PANEL: (_DEVELOPERS, None),
    Capability.USER_PLAN_MANAGEMENT: (_DEVELOPERS, None),
    Capability.SHOWCASE_MANAGEMENT: (_DEVELOPERS, None),
}


def resolve_visibility(role: UserRole, flags: SidebarVisibility) -> FrozenSet[Capability]:
    """
    Capabilities available to a role under the current sidebar flags.

    A capability is granted when the role is allowed and its gating flag
    (if any) is on.
    """
    role = UserRole(role)
    granted = set()
    for capability, (roles, flag) in CAPABILITY_RULES.items():
        if role not in roles:
            continue
        if flag is not None and not getattr(flags, flag):
            continue
        granted.add(capability)
    return frozenset(granted)


class ConfigStore:
    """
    Cached read / admin-only write access to platform settings.

    Args:
        settings_repo: SettingsRepository (or any object with the same methods)
        defaults: DevSettings used until an admin saves a value
    """

    def __init__(self, settings_repo, defaults: Optional[DevSettings] = None,
                 cache: Optional[SimpleCache] = None):
        self.settings_repo = settings_repo
        self.defaults = defaults or DevSettings()
        self.cache = cache if cache is not None else settings_cache

    # =========================================================================
    # DEV SETTINGS
    # =========================================================================

    async def get_dev_settings(self) -> DevSettings:
        cached = self.cache.get(DEV_SETTINGS_KEY)
        if cached is not None:
            return cached
        stored = await self.settings_repo.get_dev_settings()
        snapshot = stored or self.defaults
        self.cache.set(DEV_SETTINGS_KEY, snapshot)
        return snapshot

    async def update_dev_settings(self, actor: User, changes: dict) -> DevSettings:
        """
        Apply a partial update.

        Raises:
            PermissionDeniedError: actor is not a developer
            InvalidSettingError: unknown key or value out of range
        """
        require_developer(actor)
        current = await self.get_dev_settings()
        try:
            updated = current.updated(**changes)
        except (TypeError, ValueError) as e:
            raise InvalidSettingError(str(e))

        await self.settings_repo.save_dev_settings(updated)
        self.cache.set(DEV_SETTINGS_KEY, updated)
        logger.info(f"Dev settings updated by {actor.user_id}: {sorted(changes)}")
        return updated

    # =========================================================================
    # SIDEBAR VISIBILITY
    # =========================================================================

    async def get_sidebar_visibility(self) -> SidebarVisibility:
        cached = self.cache.get(SIDEBAR_KEY)
        if cached is not None:
            return cached
        stored = await self.settings_repo.get_sidebar_visibility()
        snapshot = stored or SidebarVisibility()
        self.cache.set(SIDEBAR_KEY, snapshot)
        return snapshot

    async def update_sidebar_visibility(self, actor: User, changes: dict) -> SidebarVisibility:
        require_developer(actor)
        current = await self.get_sidebar_visibility()
        try:
            updated = current.updated(**{k: bool(v) for k, v in changes.items()})
        except (TypeError, ValueError) as e:
            raise InvalidSettingError(str(e))

        await self.settings_repo.save_sidebar_visibility(updated)
        self.cache.set(SIDEBAR_KEY, updated)
        logger.info(f"Sidebar visibility updated by {actor.user_id}: {sorted(changes)}")
        return updated

    async def capabilities_for(self, user: User) -> FrozenSet[Capability]:
        return resolve_visibility(user.role, await self.get_sidebar_visibility())

    async def require_capability(self, user: User, capability: Capability):
        if capability not in await self.capabilities_for(user):
            raise PermissionDeniedError(f"{capability.value} is not available")


def require_developer(actor: User):
    """Raise PermissionDeniedError unless actor is an admin"""
    if not actor.is_developer:
        raise PermissionDeniedError("Admin access required")
