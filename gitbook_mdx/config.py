"""Configuration objects and constants for the mirror."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_CONCURRENCY = 4


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic credentials, also used for form-based login."""

    username: str
    password: str


@dataclass
class MirrorConfig:
    """Top-level settings that control crawling and conversion behaviour."""

    output_root: Path
    download_images: bool = True
    auth: Optional[BasicAuth] = None
    concurrency: int = DEFAULT_CONCURRENCY
    all_pages: bool = False
    navigation_timeout: float = 30.0
    content_timeout: float = 30.0
    login_timeout: float = 10.0
    headless: bool = True

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {self.concurrency}")
