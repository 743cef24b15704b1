from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class MaterialCreate(BaseModel):
    subject_key: str = Field(..., min_length=1, max_length=100)
    chapter_key: Optional[str] = Field(None, max_length=100)
    kind: str = Field("material", pattern="^(material|video)$")
    title: str = Field(..., min_length=1, max_length=200)
    url: HttpUrl


class MaterialResponse(BaseModel):
    id: int
    subject_key: str
    chapter_key: Optional[str] = None
    kind: str
    title: str
    url: str
    uploaded_by: Optional[int] = None
    view_count: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
