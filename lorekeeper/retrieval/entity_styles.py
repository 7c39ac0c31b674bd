"""Display lookups for open entity type tags.

Entity types are free-form strings, so every lookup falls back to a value
derived from the tag itself instead of failing on an unknown type.
"""

from typing import Mapping

TYPE_GROUPS: Mapping[str, int] = {
    "npc": 1,
    "location": 2,
    "item": 3,
    "quest": 4,
    "faction": 5,
    "lore": 6,
    "session": 7,
    "player_character": 8,
    "freeform": 9,
}

TYPE_COLORS: Mapping[str, str] = {
    # Characters
    "npc": "#4a7c59",
    "player_character": "#2d5a3d",
    "creature": "#6b8e4e",
    # Places
    "location": "#c4883a",
    "region": "#a67c3d",
    # Items and magic
    "item": "#7b5ea7",
    "artifact": "#9b6bb5",
    "spell": "#8e6faf",
    "ability": "#a077bf",
    # Quests and events
    "quest": "#8b3a3a",
    "event": "#a04545",
    # Organizations
    "faction": "#b5651d",
    "organization": "#cd7f32",
    # Knowledge
    "lore": "#4a5568",
    "session": "#3d5a80",
    # Divine and racial
    "deity": "#d4a942",
    "race": "#457b6d",
    "class": "#5c7a5e",
    # Conditions and materials
    "condition": "#8b4513",
    "material": "#6b5344",
}

FALLBACK_COLORS = ("#6b5344", "#5c5c5c", "#7a6a5a", "#4a5568", "#5a4a3a")

TYPE_ICONS: Mapping[str, str] = {
    "npc": "👤",
    "location": "🏰",
    "item": "💎",
    "quest": "📜",
    "session": "📖",
    "creature": "🐉",
    "faction": "⚔",
    "lore": "📚",
    "spell": "✨",
    "deity": "☀",
    "event": "⚡",
    "player_character": "🛡",
    "freeform": "📝",
}

DEFAULT_ICON = "📝"


def get_type_group(entity_type: str) -> int:
    """Numeric color group for graph rendering; 0 for unknown types."""
    return TYPE_GROUPS.get(entity_type, 0)


def get_type_color(entity_type: str) -> str:
    """Known color, otherwise a stable pick from the fallback palette."""
    if entity_type in TYPE_COLORS:
        return TYPE_COLORS[entity_type]
    code_sum = sum(ord(char) for char in entity_type)
    return FALLBACK_COLORS[code_sum % len(FALLBACK_COLORS)]


def get_type_icon(entity_type: str) -> str:
    return TYPE_ICONS.get(entity_type, DEFAULT_ICON)


def format_entity_type(entity_type: str) -> str:
    """``player_character`` -> ``Player Character``."""
    return " ".join(word[:1].upper() + word[1:] for word in entity_type.split("_"))
