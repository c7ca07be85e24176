"""
LLM - Hugging Face Provider

Text generation through the Hugging Face Inference API.
"""

from typing import Optional, List, Dict

from policy_server.llm.base_provider import BaseLLMProvider


class HuggingFaceProvider(BaseLLMProvider):
    """Hugging Face Inference API provider (text-generation task)."""
    
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        stop: Optional[List[str]] = None,
    ) -> str:
        """Generate completion using the Inference API."""
        url = f"{self.base_url}/{self.model}"
        
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        
        parameters = {
            "max_new_tokens": max_tokens,
            "temperature": temperature,
            "return_full_text": False,
            "top_p": 0.9,
            "repetition_penalty": 1.2,
        }
        if stop:
            parameters["stop"] = stop
        
        payload = {"inputs": prompt, "parameters": parameters}
        
        async with self._client() as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            return self._read_generated_text(response.json())
    
    async def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """Render messages to an instruction prompt and complete it."""
        return await self.complete(
            self.render_instruction_prompt(messages), max_tokens, temperature
        )
    
    @staticmethod
    def render_instruction_prompt(messages: List[Dict[str, str]]) -> str:
        """Render chat messages in the [INST] format used by instruct models."""
        system = "\n\n".join(
            m["content"] for m in messages if m.get("role") == "system"
        )
        turns = [m["content"] for m in messages if m.get("role") != "system"]
        body = "\n\n".join(part for part in [system, *turns] if part)
        return f"<s>[INST] {body} [/INST]"
    
    @staticmethod
    def _read_generated_text(data) -> str:
        # The API answers with [{"generated_text": ...}] or a bare object
        item = data[0] if isinstance(data, list) and data else data
        if not isinstance(item, dict):
            raise ValueError("Unexpected text-generation response shape")
        text = item.get("generated_text")
        if not isinstance(text, str):
            raise ValueError("Text-generation response has no generated_text")
        return text
