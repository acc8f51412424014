"""
Update Models
=============
Typed rows of ``podman auto-update --format json`` output.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class UpdateState(str, Enum):
    """Value of the ``Updated`` column."""
    FALSE = "false"
    PENDING = "pending"


class UpdateRecord(BaseModel):
    """One unit/container reported by the update command."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    unit: str = Field(alias="Unit")
    container: str = Field(alias="Container")
    image: str = Field(alias="Image")
    container_name: str = Field(alias="ContainerName")
    container_id: str = Field(alias="ContainerID")
    policy: str = Field(alias="Policy")
    updated: UpdateState = Field(alias="Updated")

    def to_wire(self) -> dict:
        """Serialize with the exact field names the command emits."""
        return self.model_dump(by_alias=True, mode="json")


UpdateRecordList = TypeAdapter(List[UpdateRecord])
