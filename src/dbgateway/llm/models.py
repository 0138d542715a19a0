from typing import Literal, Optional

from pydantic import BaseModel, SecretStr


class LLMConfig(BaseModel):
    """Configuration for the metadata description model."""
    provider: Literal["template", "openai"] = "template"
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    api_key: Optional[SecretStr] = None
