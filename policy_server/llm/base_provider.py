"""
LLM - Base Provider

Abstract base class for LLM providers.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict

import httpx

from policy_server.config import ModelEndpoint


class BaseLLMProvider(ABC):
    """Base class for LLM provider implementations.
    
    One provider instance serves one endpoint descriptor. Implementations
    raise httpx errors for transport failures and non-2xx responses, and
    ValueError when a 2xx response carries no readable completion.
    """
    
    def __init__(
        self,
        endpoint: ModelEndpoint,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.base_url = endpoint.base_url.rstrip("/")
        self.model = endpoint.model
        self.api_key = endpoint.api_key
        self.timeout = endpoint.timeout_seconds
        self._transport = transport
    
    def _client(self) -> httpx.AsyncClient:
        # Redirects are never followed; a 3xx surfaces as a status error
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=False,
        )
    
    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        stop: Optional[List[str]] = None,
    ) -> str:
        """
        Generate completion from prompt.
        
        Args:
            prompt: Input prompt text
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            stop: Stop sequences
            
        Returns:
            Generated text
        """
        pass
    
    @abstractmethod
    async def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """
        Generate chat completion.
        
        Args:
            messages: List of {"role": "...", "content": "..."} dicts
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            
        Returns:
            Assistant message content
        """
        pass


def read_chat_content(data) -> str:
    """Pull the assistant text out of an OpenAI-style chat response."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ValueError(f"Malformed chat completion envelope: {e}") from e
    if not isinstance(content, str):
        raise ValueError("Chat completion content is not text")
    return content
