"""Shared-secret bot protection for AI endpoints.

Optional: skipped unless BOT_PROTECTION_ENABLED is set. When enabled without
a BOT_PROTECTION_TOKEN every request is rejected.
"""
import hmac
import logging
from collections.abc import Mapping

from reframe.config import Settings, get_settings

logger = logging.getLogger(__name__)


class BotProtectionError(Exception):
    """Raised when the bot-protection header is missing or wrong."""

    def __init__(self, message: str = "Bot protection check failed."):
        self.message = message
        super().__init__(message)


def verify_bot_protection(
    headers: Mapping[str, str],
    settings: Settings | None = None,
) -> None:
    """Compare the bot-protection header against the shared secret.

    No-op if bot protection is disabled.
    """
    settings = settings or get_settings()
    if not settings.bot_protection_enabled:
        return

    expected = settings.bot_protection_token
    if not expected:
        logger.warning("Bot protection enabled without BOT_PROTECTION_TOKEN; rejecting request")
        raise BotProtectionError()

    provided = headers.get(settings.bot_protection_header) or ""
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise BotProtectionError()
