from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)


class GenerateAPIRequest(BaseModel):
    tables: Optional[List[str]] = None
