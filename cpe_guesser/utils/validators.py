# cpe_guesser/utils/validators.py
"""
Request Validation Schemas
"""

from pydantic import BaseModel, Field, field_validator
from typing import List


class SearchRequest(BaseModel):
    query: List[str] = Field(..., min_length=1, description="Keywords, e.g. [\"apache\", \"tomcat\"]")

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        if not any(keyword.strip() for keyword in v):
            raise ValueError('Query must contain at least one non-blank keyword')
        return v
