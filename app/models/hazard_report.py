from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class HazardReport(BaseModel):
    """A hazard report as stored in the ``hazardreports`` collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    reportType: str
    description: str
    status: str
    images: List[str] = []
    user: str  # owning user id, fixed at creation
    createdAt: datetime

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
