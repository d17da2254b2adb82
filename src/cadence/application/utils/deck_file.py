"""Parsing of deck files: YAML documents or Markdown with YAML frontmatter.

A deck lists its cards under a top-level ``cards`` key::

    cards:
      - front: What does SM-2 stand for?
        back: SuperMemo 2
      - id: card_01J...
        front: ...
        back: ...
"""

from dataclasses import dataclass
from typing import Any

import yaml  # type: ignore
import yaml.constructor

from cadence.domain.errors import DeckFileError


@dataclass(frozen=True)
class DeckCard:
    front: str
    back: str
    id: str | None = None
    line: int | None = None


class UniqueKeyLoader(yaml.SafeLoader):
    """Custom YAML loader that forbids duplicate keys."""

    def construct_mapping(self, node, deep=False):
        mapping = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            mapping.add(key)

        result = super().construct_mapping(node, deep)
        if isinstance(result, dict):
            # Inject line number (1-based)
            result["__line__"] = node.start_mark.line + 1
        return result


def split_frontmatter(md_text: str) -> tuple[str, int]:
    """
    Extract the YAML between the opening and closing '---' lines.

    Returns (raw_yaml, line_offset). Text without frontmatter is returned
    unchanged with offset 0.
    """
    # Handle potential BOM (Byte Order Mark)
    md_text = md_text.lstrip("\ufeff")
    lines = md_text.split("\n")

    if not lines or lines[0].strip() != "---":
        return md_text, 0

    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return "\n".join(lines[1:i]), 1

    raise DeckFileError("Unclosed YAML frontmatter. Found starting '---' but no closing '---'.")


def parse_deck(text: str) -> list[DeckCard]:
    """
    Parse deck text into cards.

    Raises:
        DeckFileError: Invalid YAML, duplicate keys, or a card missing front/back.
    """
    raw, offset = split_frontmatter(text)

    # Fix tabs (common user error)
    if "\t" in raw:
        raw = raw.replace("\t", "  ")

    try:
        meta = yaml.load(raw, Loader=UniqueKeyLoader) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 + offset if mark is not None else None
        problem = getattr(e, "problem", None) or str(e)
        raise DeckFileError(problem, line=line) from e

    if not isinstance(meta, dict) or "cards" not in meta:
        raise DeckFileError("No 'cards' list found")

    items = meta["cards"]
    if not isinstance(items, list):
        raise DeckFileError("'cards' must be a list", line=_line(meta, offset))

    return [_to_card(item, offset) for item in items]


def _to_card(item: Any, offset: int) -> DeckCard:
    if not isinstance(item, dict):
        raise DeckFileError("Each card must be a mapping with front and back")

    fields = {str(k).lower(): v for k, v in item.items() if not str(k).startswith("__")}
    line = _line(item, offset)

    front = fields.get("front")
    back = fields.get("back")
    if not front or back is None:
        raise DeckFileError("Card is missing 'front' or 'back'", line=line)

    card_id = fields.get("id")
    return DeckCard(
        front=str(front).strip(),
        back=str(back).strip(),
        id=str(card_id) if card_id else None,
        line=line,
    )


def _line(d: dict[str, Any], offset: int) -> int | None:
    if "__line__" in d:
        return d["__line__"] + offset
    return None
