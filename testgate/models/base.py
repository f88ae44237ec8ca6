"""Base model configuration for serialized testgate data."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model that rejects unknown fields on load."""

    model_config = ConfigDict(frozen=True, extra="forbid")
