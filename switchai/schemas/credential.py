"""OpenRouter key and model listing schemas."""

from pydantic import BaseModel


class ApiKeyIn(BaseModel):
    api_key: str


class ApiKeyStatusOut(BaseModel):
    configured: bool


class ModelOut(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}
