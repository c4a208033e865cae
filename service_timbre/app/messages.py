"""
Localized messages used by Timbre Service.
"""

from typing import Dict

VOICE_CLONE_PREFIX = "VOICE_CLONE_PREFIX"

DEFAULT_LOCALE = "zh-CN"

MESSAGES: Dict[str, Dict[str, str]] = {
    "zh-CN": {
        VOICE_CLONE_PREFIX: "克隆音色：",
    },
    "zh-TW": {
        VOICE_CLONE_PREFIX: "克隆音色：",
    },
    "en-US": {
        VOICE_CLONE_PREFIX: "Cloned voice: ",
    },
}


class MessageProvider:
    """Looks up message text by code for a fixed locale."""

    def __init__(self, locale: str = DEFAULT_LOCALE, messages: Dict[str, Dict[str, str]] = None):
        self.locale = locale
        self.messages = messages if messages is not None else MESSAGES

    def get_message(self, code: str) -> str:
        """Return the text for ``code``, falling back to the default locale and then the code itself."""
        for locale in (self.locale, DEFAULT_LOCALE):
            text = self.messages.get(locale, {}).get(code)
            if text is not None:
                return text
        return code

    @property
    def voice_clone_prefix(self) -> str:
        return self.get_message(VOICE_CLONE_PREFIX)
