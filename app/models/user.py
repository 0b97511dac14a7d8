from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    firstName: str = ""
    lastName: str = ""
    userName: str
    email: str
    password: str  # bcrypt hash
    role: str = "user"
    reports: List[str] = []
    createdAt: Optional[datetime] = None

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude={"password"})
