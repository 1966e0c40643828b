"""Provider-agnostic request, response and catalog types for LLM completion."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ModelCapabilities(BaseModel):
    """What a model can do and how much it can take."""
    max_tokens: int
    context_window: int
    streaming: bool = True
    function_calling: bool = False
    vision: bool = False
    structured_output: bool = False
    json_mode: bool = False


class TokenCost(BaseModel):
    """USD cost per 1k tokens."""
    input: float
    output: float


class ModelInfo(BaseModel):
    """Catalog entry for one model offered by a provider."""
    id: str
    name: str
    provider: str
    is_default: bool = False
    capabilities: ModelCapabilities
    cost_per_1k_tokens: Optional[TokenCost] = None


class ResponseFormat(BaseModel):
    """Requested output format.

    ``json_schema`` carries ``{"name", "strict", "schema"}`` when ``type`` is
    ``json_schema``; it is omitted for plain JSON mode.
    """
    type: Literal["json_object", "json_schema"]
    json_schema: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class LLMRequest(BaseModel):
    prompt: str
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stream: bool = False
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None
    response_format: Optional[ResponseFormat] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    content: str
    usage: Usage = Field(default_factory=Usage)
    model: str


class ProviderConfig(BaseModel):
    """Static description of a provider: endpoint, default model and catalog."""
    name: str
    requires_key: bool = True
    default_model: str
    chat_endpoint: str
    models: List[ModelInfo]


class ProviderSettings(BaseModel):
    """User-supplied credentials and preferences for one provider."""
    api_key: str = ""
    selected_model: str = ""
    custom_endpoint: Optional[str] = None
    organization_id: Optional[str] = None
    enabled_models: Dict[str, bool] = Field(default_factory=dict)
