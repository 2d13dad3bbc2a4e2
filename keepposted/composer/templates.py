"""Built-in postcard styles."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PostcardTemplate:
    id: int
    name: str
    border_color: str
    background_color: str


# Background colors are the border hue at low opacity (#RRGGBBAA)
TEMPLATES: tuple[PostcardTemplate, ...] = (
    PostcardTemplate(1, "Classic Blue", "#007AFF", "#007AFF1A"),
    PostcardTemplate(2, "Nature Green", "#34C759", "#34C7591A"),
    PostcardTemplate(3, "Sunny Yellow", "#FF9500", "#FFCC001A"),
    PostcardTemplate(4, "Elegant Pink", "#FF2D55", "#FF2D5508"),
)

DEFAULT_TEMPLATE = TEMPLATES[0]


def get_template(template_id: int) -> PostcardTemplate:
    for template in TEMPLATES:
        if template.id == template_id:
            return template
    raise KeyError(f"Unknown postcard template: {template_id}")
