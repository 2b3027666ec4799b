"""Records owned by external collaborators and read by the engine."""

from typing import (
    Any,
    Dict,
    Literal,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Credential(BaseModel):
    """Secret material for one platform, looked up by id."""

    model_config = ConfigDict(frozen=True)

    id: str
    platform: str
    title: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class MemoryTurn(BaseModel):
    """One message of an agent conversation."""

    role: Literal["human", "ai"]
    content: str
