"""
Resolve provider variants into canonical (size, color) pairs.

Provider variants reference their option values by id; the product carries
the option schema (ordered groups such as "Colors" and "Sizes"). Several
shapes exist in the wild, so resolution is a pipeline of pure strategies
tried in order, each filling only what is still unresolved:

1. ``resolve_by_lookup``: id -> (group, value) lookup across the schema
2. ``resolve_by_position``: selected id i is paired with option group i
3. ``resolve_by_title``: the variant title split on "/" (size / color)
4. defaults: "One Size" / "Default"

The result never has an empty size or color, so ``variant_key`` always
produces a usable lookup key.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol, Sequence

DEFAULT_SIZE = "One Size"
DEFAULT_COLOR = "Default"

SIZE_ORDER = ["XXS", "XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "5XL"]
SIZE_ALIASES = {"XXL": "2XL", "XXXL": "3XL", "XXXXL": "4XL", "XXXXXL": "5XL"}

FALLBACK_COLOR_HEX = "#808080"
COLOR_HEX = {
    "black": "#000000",
    "white": "#FFFFFF",
    "navy": "#001f3f",
    "royal": "#0074D9",
    "sky": "#87CEEB",
    "red": "#FF4136",
    "maroon": "#85144b",
    "pink": "#FFB6C1",
    "pink lemonade": "#FFB3D9",
    "forest green": "#228B22",
    "lime": "#32CD32",
    "yellow": "#FFEB3B",
    "yellow haze": "#F4E87C",
    "mustard": "#FFDB58",
    "orange": "#FF851B",
    "daisy": "#FFEB3B",
    "purple": "#B10DC9",
    "lavender": "#E6E6FA",
    "brown": "#8B4513",
    "cocoa": "#6F4E37",
    "sand": "#C2B280",
    "heather grey": "#B0B0B0",
    "grey": "#808080",
    "charcoal": "#36454F",
    "ash": "#B2BEB5",
}

_SIZE_NAME = re.compile(r"size", re.IGNORECASE)
_COLOR_NAME = re.compile(r"colou?r", re.IGNORECASE)


@dataclass
class PartialResolution:
    """What one strategy could determine. ``None`` means unresolved."""

    size: Optional[str] = None
    color: Optional[str] = None
    option_values: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedVariant:
    size: str
    color: str
    option_values: dict[str, str]

    @property
    def key(self) -> str:
        return variant_key(self.size, self.color)

    @property
    def name(self) -> str:
        return f"{self.size} / {self.color}"


class SizedVariant(Protocol):
    size: str
    color: str


@dataclass
class VariantOptions:
    colors: list[str]
    sizes: list[str]
    variant_map: dict[str, Any]


def variant_key(size: str, color: str) -> str:
    return f"{size}|{color}"


# ---------------------------------------------------------------------------
# Option schema helpers
# ---------------------------------------------------------------------------


def is_size_group(group: dict) -> bool:
    return (group.get("type") or "").lower() == "size" or bool(
        _SIZE_NAME.search(group.get("name") or "")
    )


def is_color_group(group: dict) -> bool:
    return (group.get("type") or "").lower() == "color" or bool(
        _COLOR_NAME.search(group.get("name") or "")
    )


def _find_group(options: Sequence[dict], group_type: str, pattern: re.Pattern) -> Optional[dict]:
    by_type = next(
        (o for o in options if (o.get("type") or "").lower() == group_type), None
    )
    if by_type is not None:
        return by_type
    return next((o for o in options if pattern.search(o.get("name") or "")), None)


def _value_title(group: dict, value_id: Any) -> Optional[str]:
    for value in group.get("values") or []:
        if value.get("id") == value_id:
            return value.get("title")
    return None


def canonical_size(size: str) -> Optional[str]:
    """Map a size label onto the canonical ladder, or None if unknown."""
    normalized = size.strip().upper()
    normalized = SIZE_ALIASES.get(normalized, normalized)
    return normalized if normalized in SIZE_ORDER else None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def resolve_by_lookup(variant: dict, options: Sequence[dict]) -> PartialResolution:
    """Look each selected option id up across every group of the schema."""
    lookup: dict[Any, tuple[str, str]] = {}
    for group in options:
        for value in group.get("values") or []:
            lookup[value.get("id")] = (group.get("name") or "", value.get("title") or "")

    option_values: dict[str, str] = {}
    for value_id in variant.get("options") or []:
        found = lookup.get(value_id)
        if found:
            option_values[found[0]] = found[1]

    size_group = _find_group(options, "size", _SIZE_NAME)
    color_group = _find_group(options, "color", _COLOR_NAME)
    return PartialResolution(
        size=(option_values.get(size_group.get("name")) or None) if size_group else None,
        color=(option_values.get(color_group.get("name")) or None) if color_group else None,
        option_values=option_values,
    )


def resolve_by_position(variant: dict, options: Sequence[dict]) -> PartialResolution:
    """Pair selected option id ``i`` with option group ``i``."""
    result = PartialResolution()
    for index, value_id in enumerate(variant.get("options") or []):
        if index >= len(options):
            break
        group = options[index]
        title = _value_title(group, value_id)
        if not title:
            continue
        result.option_values[group.get("name") or f"option_{index}"] = title
        if result.size is None and is_size_group(group):
            result.size = title
        elif result.color is None and is_color_group(group):
            result.color = title
    return result


def resolve_by_title(variant: dict) -> PartialResolution:
    """Parse a "{size} / {color}" title; a lone segment counts only as a known size."""
    parts = [p.strip() for p in (variant.get("title") or "").split("/") if p.strip()]
    if len(parts) == 2:
        return PartialResolution(size=parts[0], color=parts[1])
    if len(parts) == 1 and canonical_size(parts[0]):
        return PartialResolution(size=parts[0])
    return PartialResolution()


def resolve_variant(variant: dict, options: Sequence[dict]) -> ResolvedVariant:
    """Run the strategies in order, filling only unresolved fields."""
    size: Optional[str] = None
    color: Optional[str] = None
    option_values: dict[str, str] = {}

    strategies = (
        lambda: resolve_by_lookup(variant, options),
        lambda: resolve_by_position(variant, options),
        lambda: resolve_by_title(variant),
    )
    for strategy in strategies:
        partial = strategy()
        size = size or partial.size
        color = color or partial.color
        for name, title in partial.option_values.items():
            option_values.setdefault(name, title)
        if size and color:
            break

    return ResolvedVariant(
        size=size or DEFAULT_SIZE,
        color=color or DEFAULT_COLOR,
        option_values=option_values,
    )


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


def size_sort_key(size: str) -> tuple:
    """Known sizes small->large first, then unknown sizes alphabetically."""
    canonical = canonical_size(size)
    if canonical is not None:
        return (0, SIZE_ORDER.index(canonical), "", size)
    return (1, 0, size.casefold(), size)


def organize_variants(variants: Iterable[SizedVariant]) -> VariantOptions:
    colors: list[str] = []
    sizes: list[str] = []
    variant_map: dict[str, Any] = {}

    for variant in variants:
        if variant.color not in colors:
            colors.append(variant.color)
        if variant.size not in sizes:
            sizes.append(variant.size)
        variant_map.setdefault(variant_key(variant.size, variant.color), variant)

    return VariantOptions(
        colors=colors,
        sizes=sorted(sizes, key=size_sort_key),
        variant_map=variant_map,
    )


def color_hex(color: str) -> str:
    return COLOR_HEX.get(color.strip().lower(), FALLBACK_COLOR_HEX)
