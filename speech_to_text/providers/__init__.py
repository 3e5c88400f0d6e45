"""Provider registry — closed set of transcription services.

WHY: The CLI selects a service by name once at startup. A closed enum
keeps the set of valid names in one place, and create_provider() is the
only spot that knows which class backs which name.

HOW: ProviderKind values are the CLI spellings. PROVIDERS maps each kind
to its TranscriptionProvider class.

RULES:
- Adding a provider = one enum member, one class, one PROVIDERS entry
- Unknown names raise ConfigurationError listing the valid ones
"""

from __future__ import annotations

import enum
from typing import Optional

from speech_to_text.config import GoogleCloudSettings
from speech_to_text.errors import ConfigurationError
from speech_to_text.providers.base import TranscriptionProvider
from speech_to_text.providers.google_speech import GoogleSpeechProvider
from speech_to_text.providers.vertex_ai import VertexAISpeechProvider


class ProviderKind(str, enum.Enum):
    GOOGLE_SPEECH = "google-speech"
    VERTEX_AI = "vertex-ai"

    @classmethod
    def parse(cls, value: str | ProviderKind) -> ProviderKind:
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ConfigurationError(f"Unknown provider: {value} (expected one of: {valid})") from None


PROVIDERS: dict[ProviderKind, type[TranscriptionProvider]] = {
    ProviderKind.GOOGLE_SPEECH: GoogleSpeechProvider,
    ProviderKind.VERTEX_AI: VertexAISpeechProvider,
}


def create_provider(
    kind: str | ProviderKind,
    settings: Optional[GoogleCloudSettings] = None,
) -> TranscriptionProvider:
    provider_cls = PROVIDERS[ProviderKind.parse(kind)]
    return provider_cls(settings or GoogleCloudSettings.from_env())


__all__ = [
    "GoogleSpeechProvider",
    "PROVIDERS",
    "ProviderKind",
    "TranscriptionProvider",
    "VertexAISpeechProvider",
    "create_provider",
]
