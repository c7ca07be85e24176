"""
LLM - LM Studio Provider

Local LLM provider using LM Studio's OpenAI-compatible API.
"""

from typing import Optional, List, Dict

from policy_server.llm.base_provider import BaseLLMProvider, read_chat_content


class LMStudioProvider(BaseLLMProvider):
    """LM Studio local LLM provider."""
    
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        stop: Optional[List[str]] = None,
    ) -> str:
        """Generate completion using LM Studio."""
        # Use chat completion with single message
        messages = [{"role": "user", "content": prompt}]
        return await self.chat(messages, max_tokens, temperature)
    
    async def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """Generate chat completion using LM Studio."""
        url = f"{self.base_url}/chat/completions"
        
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        
        async with self._client() as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            return read_chat_content(response.json())
