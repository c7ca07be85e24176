"""
Shared fixtures: settings, seeded storage and scripted model providers.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import pytest

from policy_server.config import (
    AuthSettings,
    LLMSettings,
    ModelEndpoint,
    SearchSettings,
    Settings,
)
from policy_server.llm import BaseLLMProvider
from policy_server.services.auth_service import hash_password
from policy_server.storage import MemoryStorage


TEST_PASSWORD = "correct horse battery staple"


def make_settings(**auth_overrides) -> Settings:
    """Settings independent of the environment, with cheap bcrypt."""
    auth = {
        "session_cookie_secure": False,
        "bcrypt_rounds": 4,
    }
    auth.update(auth_overrides)
    return Settings(
        llm=LLMSettings(
            provider="openai",
            base_url="http://model.test/v1",
            api_key="sk-test",
            model="primary-model",
            fallback_models=[],
            fallback_endpoints=[],
        ),
        search=SearchSettings(),
        auth=AuthSettings(**auth),
    )


class ScriptedProvider(BaseLLMProvider):
    """Provider that returns a fixed reply or raises a fixed error."""

    def __init__(self, name: str, reply: Union[str, BaseException], timeout_ms: int = 1000):
        super().__init__(
            ModelEndpoint(
                name=name,
                provider="openai",
                base_url="http://model.test/v1",
                model=name,
                timeout_ms=timeout_ms,
            )
        )
        self.reply = reply
        self.calls: List[List[Dict[str, str]]] = []

    async def complete(self, prompt, max_tokens=500, temperature=0.7, stop=None) -> str:
        return await self.chat([{"role": "user", "content": prompt}], max_tokens, temperature)

    async def chat(self, messages, max_tokens=500, temperature=0.7) -> str:
        self.calls.append(messages)
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply


def add_policy(
    storage: MemoryStorage,
    policy_id: int,
    title: str,
    content: str,
    updated_at: Optional[datetime] = None,
):
    return storage.add_policy(
        title=title,
        content=content,
        policy_id=policy_id,
        updated_at=updated_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def storage() -> MemoryStorage:
    """Storage with one user and a small policy corpus."""
    store = MemoryStorage()
    store.add_user(
        username="alice",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        name="Alice Example",
        email="alice@example.com",
    )
    add_policy(
        store, 7, "Remote Work Policy",
        "Employees may work remotely up to 3 days/week.",
    )
    add_policy(
        store, 3, "Expense Reimbursement",
        "Expenses must be submitted within 30 days with receipts attached.",
    )
    add_policy(
        store, 12, "Information Security",
        "Laptops must use full disk encryption. Passwords must be rotated every 90 days.",
    )
    return store
