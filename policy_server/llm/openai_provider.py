"""
LLM - OpenAI Provider

OpenAI-compatible chat completions provider.
"""

from typing import Optional, List, Dict

from policy_server.llm.base_provider import BaseLLMProvider, read_chat_content


class OpenAIProvider(BaseLLMProvider):
    """OpenAI (or compatible gateway) provider."""
    
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        stop: Optional[List[str]] = None,
    ) -> str:
        """Generate completion using OpenAI API."""
        messages = [{"role": "user", "content": prompt}]
        return await self.chat(messages, max_tokens, temperature)
    
    async def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """Generate chat completion using OpenAI API."""
        url = f"{self.base_url}/chat/completions"
        
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }
        
        async with self._client() as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            return read_chat_content(response.json())
