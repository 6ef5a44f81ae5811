from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(eq=False)
class SamplerError(Exception):
    """
    Base class for everything that can go wrong around the sampler process.
    """
    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}; cause={type(self.cause).__name__}: {self.cause}"
        return self.message


class SpawnFailure(SamplerError):
    """Sampler binary missing or not executable."""


class StreamUnavailable(SpawnFailure):
    """Process spawned but one of stdin/stdout/stderr is missing."""


class ProtocolParseError(SamplerError):
    """A line from the sampler is not a valid frame."""


class SamplerRuntimeError(SamplerError):
    """The sampler reported {"error": ...}."""


class StartupTimeout(SamplerError):
    """No frame arrived before the ensure_started() deadline."""


class CommandSendFailure(SamplerError):
    """A command could not be written to the sampler's stdin."""
