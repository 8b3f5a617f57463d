"""Data models used throughout the mirror pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class PageDescriptor:
    """One entry of the discovered table of contents."""

    title: str
    url: str
    level: int


@dataclass
class ContentFragment:
    """Title, subtitle and body markup extracted from a sanitized page."""

    title_markup: str
    subtitle_markup: str
    body_markup: str

    @property
    def markup(self) -> str:
        return f"{self.title_markup}\n{self.subtitle_markup}\n{self.body_markup}"


@dataclass
class ImageReference:
    """A single occurrence of an image reference in converted Markdown."""

    original_src: str
    resolved_absolute_url: Optional[str]
    local_relative_path: str
    alt_text: str = ""
    start: int = 0
    end: int = 0
    downloaded: bool = False
    destination: Optional[Path] = None


@dataclass
class OutputArtifact:
    """A Markdown file written for one page, plus its downloaded images."""

    descriptor: PageDescriptor
    markdown_path: Path
    image_paths: List[Path] = field(default_factory=list)


@dataclass
class MirrorResult:
    """Summary of a full mirror run."""

    title: str
    index_path: Optional[Path]
    artifacts: List[OutputArtifact] = field(default_factory=list)
    skipped: int = 0
