from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class FilterSpecModel(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    kind: str = "Todos"
    categories: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    search_text: str = ""


class ChatRequest(BaseModel):
    message: str
