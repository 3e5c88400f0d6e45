"""Error taxonomy shared by the engine, providers, and the CLI.

WHY: The orchestration engine has to tell a retryable network hiccup from
a request that will never succeed, and callers need one terminal error to
catch when nothing usable came back.

HOW: A small hierarchy rooted at SpeechToTextError. Input and
configuration problems also subclass ValueError so callers that already
catch ValueError (as the CLI does) keep working.

RULES:
- InvalidParameters: bad chunking/processing inputs, raised immediately
- ConfigurationError: missing language/credentials, raised before any network call
- TransientError: retryable per-segment failure (network, timeout, 429, 5xx)
- FatalError: non-retryable per-segment failure (bad request, malformed audio)
- AllSegmentsFailed: no segment produced a result; propagated to the caller
"""

from __future__ import annotations


class SpeechToTextError(Exception):
    """Base class for all errors raised by this package."""


class InvalidParameters(SpeechToTextError, ValueError):
    """Raised when chunking or processing parameters are out of range."""


class ConfigurationError(SpeechToTextError, ValueError):
    """Raised when a provider cannot run with the supplied configuration."""


class AudioProcessingError(SpeechToTextError):
    """Raised when ffmpeg/ffprobe cannot read or convert the input."""


class ProviderError(SpeechToTextError):
    """A failed transcription call.

    Carries the provider name and, when the failure came from an HTTP
    response, the status code.
    """

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"{provider} error {status_code}: {message}")
        else:
            super().__init__(f"{provider} error: {message}")


class TransientError(ProviderError):
    """Retryable failure: network error, timeout, rate limit, server error."""


class FatalError(ProviderError):
    """Non-retryable failure: the same request will fail again."""


class AllSegmentsFailed(SpeechToTextError):
    """Raised when no segment produced a usable result."""

    def __init__(self, segment_count: int) -> None:
        self.segment_count = segment_count
        super().__init__(f"All {segment_count} chunks failed to transcribe")


def is_retryable(exc: BaseException) -> bool:
    """Return True unless the error is known to be permanent.

    Providers that do not classify their failures are treated as
    transient; the retry cap bounds the cost.
    """
    return not isinstance(exc, (FatalError, ConfigurationError, InvalidParameters))
