"""Localization hook for user-facing strings.

Translation tables live outside this package. The bot only supplies English
source strings with %-style placeholders; a deployment plugs in a Localizer
subclass that looks them up per room language.
"""

from typing import Any

from .logging_config import get_logger

logger = get_logger("l10n")


class Localizer:
    """English passthrough localizer."""

    def translate(self, text: str, lang: str) -> str:
        """Return the translation of ``text`` for ``lang``."""
        return text

    def t(self, lang: str, text: str, *args: Any) -> str:
        """Translate ``text`` and substitute ``args``."""
        translated = self.translate(text, lang)
        if not args:
            return translated
        try:
            return translated % args
        except (TypeError, ValueError) as e:
            logger.warning(f"Bad placeholders in translation for '{text}' ({lang}): {e}")
            return text % args
