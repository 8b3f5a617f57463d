"""Rule-driven HTML to Markdown conversion built on markdownify."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from bs4 import Tag
from markdownify import ATX, ASTERISK, MarkdownConverter

from .errors import ExtractionError

logger = logging.getLogger("gitbook_mdx")

CODE_BLOCK_CLASS = "group/codeblock"
SEPARATOR_LINE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")

_LINE_BREAKS = re.compile(r"(\r?\n)+")
_EDGE_NEWLINES = re.compile(r"^\n+|\n+$")
_LANGUAGE_CLASS = re.compile(r"language-(\w+)")
_UNESCAPED_PIPE = re.compile(r"(?<!\\)\|")
_FENCE = re.compile(r"^\s*(```|~~~)")


@dataclass
class ConversionRule:
    """A node predicate paired with the Markdown it produces."""

    name: str
    filter: Callable[[Tag], bool]
    replacement: Callable[[str, Tag], str]


class GitBookMarkdownConverter(MarkdownConverter):
    """markdownify converter that consults an ordered rule list first.

    Rules are tried in registration order for the element types routed
    through :meth:`_convert_with_rules`; the first matching rule wins and
    everything else falls back to markdownify's own conversion.
    """

    def __init__(self, **options) -> None:
        options.setdefault("heading_style", ATX)
        options.setdefault("strong_em_symbol", ASTERISK)
        options.setdefault("bullets", "*")
        super().__init__(**options)
        self.rules: List[ConversionRule] = []

    def add_rule(
        self,
        name: str,
        filter: Callable[[Tag], bool],
        replacement: Callable[[str, Tag], str],
    ) -> "GitBookMarkdownConverter":
        self.rules.append(ConversionRule(name, filter, replacement))
        return self

    def _convert_with_rules(self, el, text, *args, **kwargs):
        for rule in self.rules:
            if rule.filter(el):
                return rule.replacement(text, el)
        default = getattr(super(), f"convert_{el.name}", None)
        if default is None:
            return text
        return default(el, text, *args, **kwargs)

    convert_table = _convert_with_rules
    convert_pre = _convert_with_rules
    convert_div = _convert_with_rules
    convert_ul = _convert_with_rules
    convert_ol = _convert_with_rules
    convert_script = _convert_with_rules
    convert_style = _convert_with_rules


def _normalize_cell_text(text: str) -> str:
    return _LINE_BREAKS.sub(" ", text or "").replace("|", "\\|").strip()


def _table_line(cells: Sequence[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _is_table(node: Tag) -> bool:
    return node.name == "table"


def table_replacement(content: str, node: Tag) -> str:
    """Render a table from its cells, re-aligning every row to the header."""
    try:
        # Rows of nested tables belong to their own table.
        rows = [row for row in node.find_all("tr") if row.find_parent("table") is node]
        if not rows:
            return ""
        header_row = next((row for row in rows if row.find("th", recursive=False) is not None), rows[0])
        headers = [
            _normalize_cell_text(cell.get_text())
            for cell in header_row.find_all(["th", "td"], recursive=False)
        ]

        lines = [_table_line(headers), _table_line(["---"] * len(headers))]
        for row in rows:
            if row is header_row:
                continue
            cells = row.find_all(["th", "td"], recursive=False)
            lines.append(
                _table_line(
                    [
                        _normalize_cell_text(cells[idx].get_text()) if idx < len(cells) else ""
                        for idx in range(len(headers))
                    ]
                )
            )
        return "\n\n" + "\n".join(lines) + "\n\n"
    except Exception as exc:  # pylint: disable=broad-except
        logger.debug("%s", ExtractionError(f"Table conversion failed, using default output: {exc}"))
        return "\n" + (content or "") + "\n"


def _is_code_block(node: Tag) -> bool:
    if node.name == "pre" and node.find("code") is not None:
        return True
    return CODE_BLOCK_CLASS in (node.get("class") or [])


def code_block_replacement(content: str, node: Tag) -> str:
    code = node.find("code")
    if code is None:
        return ""
    text = _EDGE_NEWLINES.sub("", code.get_text())
    match = _LANGUAGE_CLASS.search(" ".join(code.get("class") or []))
    language = match.group(1) if match else ""
    return f"\n```{language}\n{text}\n```\n"


def _is_list(node: Tag) -> bool:
    return node.name in ("ul", "ol")


def compact_list_replacement(content: str, node: Tag) -> str:
    lines = [line for line in str(content).strip().split("\n") if line.strip()]
    return "\n" + "\n".join(lines) + "\n"


def _is_script_or_style(node: Tag) -> bool:
    return node.name in ("script", "style")


def create_converter(**options) -> GitBookMarkdownConverter:
    """Build a converter with the table, code, list and noise rules registered."""
    converter = GitBookMarkdownConverter(**options)
    converter.add_rule("dom_table", _is_table, table_replacement)
    converter.add_rule("fenced_code_block", _is_code_block, code_block_replacement)
    converter.add_rule("compact_lists", _is_list, compact_list_replacement)
    converter.add_rule("remove_script_style", _is_script_or_style, lambda content, node: "")
    return converter


def html_to_markdown(html: str, converter: Optional[GitBookMarkdownConverter] = None) -> str:
    """Convert an HTML fragment to trimmed Markdown."""
    converter = converter or create_converter()
    return converter.convert(html or "").strip()


def _column_count(line: str) -> int:
    stripped = line.strip()
    pipes = len(_UNESCAPED_PIPE.findall(stripped))
    if stripped.startswith("|"):
        pipes -= 1
    if len(stripped) > 1 and stripped.endswith("|") and not stripped.endswith("\\|"):
        pipes -= 1
    return max(pipes + 1, 1)


def normalize_tables(markdown: str) -> str:
    """Insert a separator row under pipe-table headers that lack one."""
    lines = markdown.split("\n")
    out: List[str] = []
    in_fence = False
    previous_has_pipe = False
    for idx, line in enumerate(lines):
        out.append(line)
        if _FENCE.match(line):
            in_fence = not in_fence
            previous_has_pipe = False
            continue
        if in_fence:
            continue

        has_pipe = "|" in line
        following = lines[idx + 1] if idx + 1 < len(lines) else None
        if (
            has_pipe
            and not previous_has_pipe
            and following is not None
            and "|" in following
            and not _FENCE.match(following)
            and not SEPARATOR_LINE.match(line)
            and not SEPARATOR_LINE.match(following)
        ):
            out.append(_table_line(["---"] * _column_count(line)))
        previous_has_pipe = has_pipe
    return "\n".join(out)
