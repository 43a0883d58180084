"""CallableResult model for the pro-score callable protocol."""

from __future__ import annotations

from pydantic import BaseModel, model_validator


class CallableResult(BaseModel):
    """Result returned by the pro-score execute() interface.

    Exactly one of `items` or `items_ref` must be set.

    Attributes:
        schema_version: Version of the CallableResult schema.
        items: Questionnaire summaries (inline payload).
        items_ref: Reference to an external artifact holding the items.
        stats: Processing statistics.
    """

    schema_version: str = "1.0"
    items: list[dict] | None = None
    items_ref: str | None = None
    stats: dict = {}

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_items_xor_items_ref(self) -> CallableResult:
        """Ensure exactly one of items or items_ref is set."""
        if (self.items is None) == (self.items_ref is None):
            raise ValueError("Exactly one of 'items' or 'items_ref' must be set")
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary, excluding unset payload fields."""
        return self.model_dump(exclude_none=True, exclude_defaults=False)
