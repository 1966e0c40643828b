"""Static per-provider model catalogs."""

from typing import Dict, List

from deep_synthesis.schemas.llm import ModelCapabilities, ModelInfo, TokenCost

PROVIDER_ORDER = ["openai", "anthropic", "grok", "openrouter", "gemini"]


def _model(
    id: str,
    name: str,
    provider: str,
    max_tokens: int,
    context_window: int,
    cost: tuple[float, float],
    vision: bool = True,
    structured_output: bool = False,
    json_mode: bool = False,
    is_default: bool = False,
) -> ModelInfo:
    return ModelInfo(
        id=id,
        name=name,
        provider=provider,
        is_default=is_default,
        capabilities=ModelCapabilities(
            max_tokens=max_tokens,
            context_window=context_window,
            streaming=True,
            function_calling=True,
            vision=vision,
            structured_output=structured_output,
            json_mode=json_mode,
        ),
        cost_per_1k_tokens=TokenCost(input=cost[0], output=cost[1]),
    )


OPENAI_MODELS: List[ModelInfo] = [
    _model("chatgpt-4o-latest", "GPT-4o Latest", "OpenAI", 128000, 128000, (0.01, 0.03), structured_output=True, json_mode=True),
    _model("gpt-3.5-turbo", "GPT-3.5 Turbo", "OpenAI", 4096, 16384, (0.0005, 0.0015), vision=False, json_mode=True),
    _model("gpt-4", "GPT-4", "OpenAI", 8192, 8192, (0.03, 0.06), vision=False, json_mode=True),
    _model("gpt-4-turbo", "GPT-4 Turbo", "OpenAI", 128000, 128000, (0.01, 0.03), json_mode=True),
    _model("gpt-4.5-preview", "GPT-4.5 Preview", "OpenAI", 128000, 128000, (0.01, 0.03), structured_output=True, json_mode=True),
    _model("gpt-4o", "GPT-4o", "OpenAI", 128000, 128000, (0.01, 0.03), structured_output=True, json_mode=True),
    _model("gpt-4o-mini", "GPT-4o Mini", "OpenAI", 128000, 128000, (0.00025, 0.00075), structured_output=True, json_mode=True),
    _model("o1", "O1", "OpenAI", 128000, 128000, (0.03, 0.06), structured_output=True, json_mode=True),
    _model("o1-mini", "O1 Mini", "OpenAI", 128000, 128000, (0.005, 0.015), structured_output=True, json_mode=True),
    _model("o1-preview", "O1 Preview", "OpenAI", 128000, 128000, (0.03, 0.06), structured_output=True, json_mode=True),
    _model("o3-mini", "O3 Mini", "OpenAI", 128000, 128000, (0.01, 0.03), structured_output=True, json_mode=True),
]

ANTHROPIC_MODELS: List[ModelInfo] = [
    _model("claude-3-7-sonnet-latest", "Claude 3.7 Sonnet", "Anthropic", 200000, 200000, (0.003, 0.015)),
    _model("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet", "Anthropic", 200000, 200000, (0.003, 0.015)),
    _model("claude-3-5-haiku-latest", "Claude 3.5 Haiku", "Anthropic", 200000, 200000, (0.0008, 0.004), is_default=True),
    _model("claude-3-opus-latest", "Claude 3 Opus", "Anthropic", 200000, 200000, (0.015, 0.075)),
    _model("claude-3-haiku-20240307", "Claude 3 Haiku", "Anthropic", 200000, 200000, (0.00025, 0.00125)),
]

GEMINI_MODELS: List[ModelInfo] = [
    _model("gemini-1.5-flash", "Gemini 1.5 Flash", "Gemini", 8192, 1000000, (0.0001, 0.0003)),
    _model("gemini-1.5-pro", "Gemini 1.5 Pro", "Gemini", 8192, 1000000, (0.0005, 0.0015)),
    _model("gemini-1.0-pro", "Gemini 1.0 Pro", "Gemini", 8192, 32000, (0.00025, 0.0005)),
]

# $2.00 / $10.00 per million tokens
GROK_MODELS: List[ModelInfo] = [
    _model("grok-2-1212", "Grok-2-1212", "Grok", 131072, 131072, (0.002, 0.01), vision=False),
]

OPENROUTER_MODELS: List[ModelInfo] = [
    _model("anthropic/claude-3-opus", "Claude 3 Opus (OpenRouter)", "OpenRouter", 200000, 200000, (0.015, 0.075)),
    _model("anthropic/claude-3-sonnet", "Claude 3 Sonnet (OpenRouter)", "OpenRouter", 200000, 200000, (0.003, 0.015)),
    _model("anthropic/claude-3-haiku", "Claude 3 Haiku (OpenRouter)", "OpenRouter", 200000, 200000, (0.00025, 0.00125)),
    _model("openai/gpt-4-turbo", "GPT-4 Turbo (OpenRouter)", "OpenRouter", 128000, 128000, (0.01, 0.03)),
    _model("mistralai/mistral-large", "Mistral Large (OpenRouter)", "OpenRouter", 32000, 32000, (0.0027, 0.0081), vision=False),
    _model("mistralai/mistral-medium", "Mistral Medium (OpenRouter)", "OpenRouter", 32000, 32000, (0.0006, 0.0018), vision=False),
    _model("cohere/command-r", "Cohere Command-R (OpenRouter)", "OpenRouter", 128000, 128000, (0.0005, 0.0015), vision=False),
]

CATALOG: Dict[str, List[ModelInfo]] = {
    "openai": OPENAI_MODELS,
    "anthropic": ANTHROPIC_MODELS,
    "grok": GROK_MODELS,
    "openrouter": OPENROUTER_MODELS,
    "gemini": GEMINI_MODELS,
}

