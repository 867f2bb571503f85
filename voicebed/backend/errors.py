from __future__ import annotations


class ClientInputError(ValueError):
    """Raised when a request cannot be served because of what the caller sent."""


class DecodeError(ClientInputError):
    """Malformed base64, misaligned PCM payload, or an undecodable upload."""


class ConfigurationError(ClientInputError):
    """A request is missing a setting it needs; detected before any network call."""


class GenerationError(RuntimeError):
    """The upstream speech generation call failed or returned no audio."""


class PlaybackError(RuntimeError):
    pass


class PlaybackStoppedError(PlaybackError):
    """Stopping a voice that already stopped or finished."""


class PlaybackIdleError(PlaybackError):
    """The analysis tap was queried while nothing is playing."""
