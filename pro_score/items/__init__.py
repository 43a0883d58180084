"""Response item flattening, answer reading and definition walking."""

from pro_score.items.answers import (
    Coding,
    codeable_concept_text,
    coding_of,
    display_value,
    is_number,
    primitive_of,
)
from pro_score.items.definition import (
    ANSWER_TYPES,
    find_definition_item,
    is_calculated_item,
    is_help_item,
    iter_definition_items,
)
from pro_score.items.flatten import first_answer, flatten_items, has_answer

__all__ = [
    "ANSWER_TYPES",
    "Coding",
    "codeable_concept_text",
    "coding_of",
    "display_value",
    "find_definition_item",
    "first_answer",
    "flatten_items",
    "has_answer",
    "is_calculated_item",
    "is_help_item",
    "is_number",
    "iter_definition_items",
    "primitive_of",
]
