from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class BoardPostCreateRequest(BaseModel):
    type: str = Field("free", max_length=20)
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=50)
    brand: Optional[str] = Field(None, max_length=100)


class BoardPostPatchRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=50)
    brand: Optional[str] = Field(None, max_length=100)
    client_seen_date: Optional[datetime] = None
    if_unmodified_since: Optional[datetime] = None

    @model_validator(mode="after")
    def _has_changes(self):
        if not self.changes():
            raise ValueError("nothing to update")
        return self

    def changes(self) -> dict:
        return self.model_dump(
            exclude_none=True, exclude={"client_seen_date", "if_unmodified_since"}
        )


class BoardPostResponse(BaseModel):
    id: int
    author_id: int
    type: str
    title: str
    content: str
    category: Optional[str] = None
    brand: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
