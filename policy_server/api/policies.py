"""
API - Policy Routes

Policy analysis and the activity feed.
"""

import logging

from fastapi import APIRouter, Depends

from policy_server.api.deps import ServiceContainer, get_container, session_user
from policy_server.errors import PolicyNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["policies"])

ACTIVITY_FEED_LIMIT = 50


@router.post("/policies/{policy_id}/analyze")
async def analyze_policy(
    policy_id: int,
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    """Summary and key points for one policy."""
    policy = container.storage.get_policy(policy_id)
    if policy is None:
        raise PolicyNotFound(f"policy {policy_id}")

    analysis = await container.analyzer.analyze(policy)
    container.storage.record_activity(
        user_id=user_id,
        action="analyzed",
        resource_type="policy",
        resource_id=policy.id,
        details=f"Analyzed policy: {policy.title}",
    )
    logger.info(f"Policy {policy.id} analyzed for user {user_id} ({analysis.source})")
    return analysis.model_dump(by_alias=True, exclude={"policy_id"})


@router.get("/activities")
async def list_activities(
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    """Most recent activity entries, newest first, each with its user."""
    activities = container.storage.list_activities(ACTIVITY_FEED_LIMIT)

    users = {}
    for activity in activities:
        if activity.user_id in users:
            continue
        user = container.storage.get_user(activity.user_id)
        users[activity.user_id] = (
            {"id": user.id, "name": user.name, "username": user.username}
            if user
            else {"id": activity.user_id, "name": "Unknown", "username": "unknown"}
        )

    return [
        {**activity.model_dump(mode="json", by_alias=True), "user": users[activity.user_id]}
        for activity in activities
    ]
