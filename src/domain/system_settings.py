"""
Operational toggles backed by the settings store.

Values are read from the store on every call so that several app
instances never disagree about whether approval mode is on.
"""

import json
import logging
from dataclasses import dataclass

from .exceptions import StoreFailure
from .ports import Setting, SettingsRepository

logger = logging.getLogger(__name__)

APPROVAL_ENABLED_KEY = "user_approval_enabled"
NOTIFICATION_EMAIL_KEY = "approval_notification_email"

APPROVAL_ENABLED_DESCRIPTION = "Enable/disable user approval mode for new signups"
NOTIFICATION_EMAIL_DESCRIPTION = "Address(es) that receive approval request emails"


def coerce_setting(value: str) -> str | bool:
    """Stored strings "true"/"false" read back as booleans."""
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def serialize_setting(value: str | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_addresses(raw: str | bool | None) -> list[str]:
    """
    Parse the notification address setting.

    Accepts a single address, a JSON-encoded list, or a comma separated list.
    """
    if not raw or not isinstance(raw, str):
        return []
    raw = raw.strip()
    if raw.startswith("["):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Malformed JSON in %s setting: %s", NOTIFICATION_EMAIL_KEY, raw)
            return []
        candidates = [str(item) for item in decoded] if isinstance(decoded, list) else []
    else:
        candidates = raw.split(",")
    return [address.strip() for address in candidates if address.strip()]


@dataclass
class SystemSettings:
    """Typed access to the approval workflow settings."""

    repository: SettingsRepository
    default_notification_email: str | None = None

    async def approval_enabled(self) -> bool:
        """
        Whether new registrations require approval.

        A store failure is logged and read as disabled.
        """
        try:
            value = await self.repository.get(APPROVAL_ENABLED_KEY, False)
        except StoreFailure:
            logger.exception("Error checking approval mode setting")
            return False
        return value is True

    async def set_approval_enabled(self, enabled: bool, updated_by: int | None = None) -> Setting:
        setting = await self.repository.set(
            APPROVAL_ENABLED_KEY, enabled, APPROVAL_ENABLED_DESCRIPTION, updated_by
        )
        logger.info("Approval mode setting updated: enabled=%s updated_by=%s", enabled, updated_by)
        return setting

    async def notification_addresses(self) -> list[str]:
        """Configured reviewer addresses, falling back to the default address."""
        try:
            raw = await self.repository.get(NOTIFICATION_EMAIL_KEY, None)
        except StoreFailure:
            logger.warning("Error reading %s setting, using default", NOTIFICATION_EMAIL_KEY)
            raw = None
        addresses = parse_addresses(raw)
        if not addresses and self.default_notification_email:
            addresses = parse_addresses(self.default_notification_email)
        return addresses

    async def set_notification_addresses(
        self, addresses: list[str], updated_by: int | None = None
    ) -> Setting:
        cleaned = [address.strip() for address in addresses if address.strip()]
        value = cleaned[0] if len(cleaned) == 1 else json.dumps(cleaned)
        setting = await self.repository.set(
            NOTIFICATION_EMAIL_KEY, value, NOTIFICATION_EMAIL_DESCRIPTION, updated_by
        )
        logger.info("Notification addresses updated: count=%d updated_by=%s", len(cleaned), updated_by)
        return setting

    async def all(self) -> list[Setting]:
        return await self.repository.all()
