"""LiteLLM Router for retry, fallback and cooldown.

Unit-level retries of a whole work unit belong to the job runtime. The Router
only smooths over transient provider errors inside a single LLM call.

Providers:
- OpenRouter (default): OPENROUTER_API_KEY
- Azure OpenAI: AZURE_API_KEY, AZURE_API_BASE, AZURE_API_VERSION
"""

import os

from litellm import Router

from tiered_extractor.core.config import (
    LLM_PROVIDER,
    API_KEY_ENV_VAR,
    SMART_MODEL,
    FAST_MODEL,
)

_OPENROUTER_MODELS = (
    "openrouter/openai/gpt-4o-mini",
    "openrouter/openai/gpt-4o",
    "openrouter/openai/gpt-4-turbo",
)


def _build_openrouter_model_list() -> list[dict]:
    api_key_ref = f"os.environ/{API_KEY_ENV_VAR}"
    return [
        {"model_name": model, "litellm_params": {"model": model, "api_key": api_key_ref}}
        for model in _OPENROUTER_MODELS
    ]


def _build_azure_model_list() -> list[dict]:
    """Build the Azure deployment list for the fast and smart tiers."""
    params = {
        "api_key": os.environ.get("AZURE_API_KEY", ""),
        "api_base": os.environ.get("AZURE_API_BASE", ""),
        "api_version": os.environ.get("AZURE_API_VERSION", "2024-02-15-preview"),
    }
    return [
        {"model_name": model, "litellm_params": {"model": model, **params}}
        for model in (FAST_MODEL, SMART_MODEL)
    ]


def _build_fallbacks() -> list[dict]:
    if LLM_PROVIDER == "azure":
        return [{FAST_MODEL: [SMART_MODEL]}]
    return [{"openrouter/openai/gpt-4o-mini": ["openrouter/openai/gpt-4-turbo"]}]


def build_router() -> Router:
    """Build the Router for the provider selected by LLM_PROVIDER."""
    if LLM_PROVIDER == "azure":
        model_list = _build_azure_model_list()
    else:
        model_list = _build_openrouter_model_list()

    return Router(
        model_list=model_list,
        num_retries=2,
        retry_after=4,
        cooldown_time=60,
        allowed_fails=2,
        fallbacks=_build_fallbacks(),
    )


router = build_router()
