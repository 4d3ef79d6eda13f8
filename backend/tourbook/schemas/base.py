"""
Shared base for partial-update request bodies.
"""

from typing import ClassVar

from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """
    Omitted fields are left untouched. An explicit null is only accepted for
    fields listed in `nullable_fields`, the rest map onto NOT NULL columns.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_nulls(self):
        nulls = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable_fields
        )
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
