from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EndpointDescriptor(BaseModel):
    """An HTTP method/path paired with a parameterized query template.

    An empty `query` marks a built-in endpoint dispatched to a dedicated
    handler instead of generic query execution.
    """
    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    description: str
    query: str = ""
    parameters: Dict[str, str] = Field(default_factory=dict)
    defaults: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method.upper(), self.path)

    @property
    def is_builtin(self) -> bool:
        return self.query == ""


class APIGeneratorConfig(BaseModel):
    enable_llm: bool = False
    api_prefix: str = "/api/db"
    include_metadata: bool = True
