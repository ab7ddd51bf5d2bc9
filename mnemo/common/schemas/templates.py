"""
Context Block Templates

Renders memory units into the labeled blocks the answer prompt is built from.
Absent fields are omitted rather than printed empty.
"""

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .memory_unit import MemoryUnit


CONTEXT_HEADER = "[Context {number}]"

CONTEXT_FIELDS = [
    ("Time", "timestamp"),
    ("Location", "location"),
    ("Persons", "persons"),
    ("Entities", "entities"),
    ("Topic", "topic"),
]


def _format_value(value) -> str:
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


def render_context_block(unit: "MemoryUnit", number: int) -> str:
    """Render one unit as a numbered context block"""
    lines = [CONTEXT_HEADER.format(number=number), f"Content: {unit.content}"]

    for label, attr in CONTEXT_FIELDS:
        value = getattr(unit, attr, None)
        if value:
            lines.append(f"{label}: {_format_value(value)}")

    return "\n".join(lines)


def render_context(units: List["MemoryUnit"]) -> str:
    """Render all units, blank-line separated, numbered from 1"""
    return "\n\n".join(
        render_context_block(unit, i) for i, unit in enumerate(units, 1)
    )
