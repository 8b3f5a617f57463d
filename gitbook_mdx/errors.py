"""Error taxonomy shared by the mirror pipeline."""

from __future__ import annotations

import enum
from typing import Optional


class MirrorError(Exception):
    """Base class for every error raised by the mirror."""


class NavigationErrorKind(enum.Enum):
    AUTH = "auth"
    CERTIFICATE = "certificate"
    CONNECTION = "connection"


class NavigationError(MirrorError):
    """A document engine failed to load a URL."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        kind: Optional[NavigationErrorKind] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.kind = kind


class ExtractionError(MirrorError):
    """A conversion rule failed on a DOM node."""


class ImageError(MirrorError):
    """A single image could not be fetched, decoded or stored."""


class PersistenceError(MirrorError):
    """Writing an artifact to disk failed."""
