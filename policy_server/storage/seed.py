"""
Storage - Seed Loader

Loads users and policies from a JSON seed file into MemoryStorage:

    {
      "users": [{"username": "...", "password": "...", "name": "...", "email": "..."}],
      "policies": [{"id": 7, "title": "...", "content": "...", "category_id": 1,
                    "updated_at": "2024-01-01T00:00:00Z"}]
    }

Plaintext passwords are hashed on load and never kept.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Union

from policy_server.services.auth_service import hash_password
from policy_server.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


def load_seed(
    storage: MemoryStorage,
    source: Union[Path, str, Dict[str, Any]],
    bcrypt_rounds: int = 12,
) -> Dict[str, int]:
    """
    Populate storage from a seed file or an already-parsed mapping.

    Returns:
        Counts of loaded users and policies
    """
    if isinstance(source, dict):
        data = source
    else:
        path = Path(source)
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"Loading seed data from {path}")

    if not isinstance(data, dict):
        raise ValueError("Seed data must be a JSON object")

    users = 0
    for entry in data.get("users", []):
        storage.add_user(
            username=entry["username"],
            password_hash=hash_password(entry["password"], rounds=bcrypt_rounds),
            name=entry.get("name", ""),
            email=entry.get("email", ""),
        )
        users += 1

    policies = 0
    for entry in data.get("policies", []):
        updated_at = entry.get("updated_at")
        storage.add_policy(
            title=entry["title"],
            content=entry.get("content", ""),
            category_id=entry.get("category_id", 1),
            updated_at=_parse_datetime(updated_at) if updated_at else None,
            policy_id=entry.get("id"),
            description=entry.get("description"),
            policy_ref=entry.get("policy_ref"),
        )
        policies += 1

    logger.info(f"Seeded {users} users and {policies} policies")
    return {"users": users, "policies": policies}


def _parse_datetime(value: str) -> datetime:
    # fromisoformat before 3.11 rejects a trailing Z
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
