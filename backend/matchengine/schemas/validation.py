from pydantic import BaseModel, Field, computed_field
from typing import List


class ValidationResult(BaseModel):
    """Outcome of a validator run. Errors block, warnings are advisory."""
    errors: List[str] = Field(default_factory=list, description="Blocking problems")
    warnings: List[str] = Field(default_factory=list, description="Non-blocking observations")

    @computed_field(alias="isValid")
    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0
