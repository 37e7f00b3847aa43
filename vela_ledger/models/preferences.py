"""Per-user preferences stored alongside the ledger."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="User id")
    theme: str = "system"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'UserPreferences':
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
