"""
LLM Module - Provider Abstraction Layer

Supports Hugging Face Inference, OpenAI-compatible and LM Studio providers.
"""

from typing import Optional

import httpx

from policy_server.config import ModelEndpoint
from policy_server.llm.base_provider import BaseLLMProvider
from policy_server.llm.huggingface_provider import HuggingFaceProvider
from policy_server.llm.lm_studio_provider import LMStudioProvider
from policy_server.llm.openai_provider import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "HuggingFaceProvider",
    "LMStudioProvider",
    "OpenAIProvider",
    "get_provider",
]


def get_provider(
    endpoint: ModelEndpoint,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMProvider:
    """Factory function to get the provider for one endpoint descriptor."""
    if endpoint.provider == "huggingface":
        return HuggingFaceProvider(endpoint, transport=transport)
    elif endpoint.provider == "lm_studio":
        return LMStudioProvider(endpoint, transport=transport)
    elif endpoint.provider == "openai":
        return OpenAIProvider(endpoint, transport=transport)
    else:
        raise ValueError(f"Unknown LLM provider: {endpoint.provider}")
