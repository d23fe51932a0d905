"""Authorization gating on pre-resolved actor capabilities."""

from ..errors import PermissionDenied
from ..models import ActorRole
from .localization import Localizer
from .logging_config import get_logger

logger = get_logger("permissions")


class PermissionService:
    """Checks an ActorRole before an operation runs.

    No authentication happens here; the chat platform decides what the
    actor may do and this service only enforces it.
    """

    def __init__(self, localizer: Localizer = None):
        self._localizer = localizer or Localizer()

    def require_moderator(self, actor: ActorRole, action: str, lang: str = "en") -> None:
        """Raise PermissionDenied unless the actor may moderate."""
        if not actor.can_moderate:
            self._deny(actor, action, self.denied_message(action, lang))

    def require_add_items(self, actor: ActorRole, lang: str = "en") -> None:
        """Raise PermissionDenied unless the actor may add agenda items."""
        if not actor.can_add_items:
            self._deny(actor, "add agenda items", self.add_denied_message(lang))

    def _header(self, lang: str) -> str:
        return f"🔒 **{self._localizer.t(lang, 'Permission Denied')}**\n\n"

    def denied_message(self, action: str, lang: str = "en") -> str:
        return self._header(lang) + self._localizer.t(
            lang, "Only room moderators and owners can %s.", action
        )

    def add_denied_message(self, lang: str = "en") -> str:
        return self._header(lang) + self._localizer.t(
            lang, "Only moderators, owners, and regular users can add agenda items."
        )

    def _deny(self, actor: ActorRole, action: str, message: str) -> None:
        logger.info(f"Denied '{action}' for actor {actor.actor_id}")
        raise PermissionDenied(message, action=action)
