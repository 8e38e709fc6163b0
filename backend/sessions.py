"""
Login sessions.

Opaque tokens stand in for the external identity provider: each token maps to
the user id and the role claim that the admin endpoints are guarded on. Tokens
travel in the X-Session-Token header and expire after SESSION_TIMEOUT_MINUTES
of inactivity.
"""

from fastapi import HTTPException, status, Request
from typing import Dict, Optional
from datetime import datetime, timedelta, timezone
import secrets
import logging

import config

logger = logging.getLogger(__name__)

# token -> {"user_id", "username", "role", "created_at", "last_active"}
sessions: Dict[str, dict] = {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_idle(data: dict, now: datetime) -> bool:
    return now - data["last_active"] > timedelta(minutes=config.SESSION_TIMEOUT_MINUTES)


def create_session(user_id: int, username: str, role: str) -> str:
    token = secrets.token_urlsafe(config.SESSION_TOKEN_LENGTH)
    now = _now()
    sessions[token] = {
        "user_id": user_id,
        "username": username,
        "role": role,
        "created_at": now,
        "last_active": now,
    }
    logger.info(f"Session opened for {username} (user {user_id}, role {role})")
    return token


def get_session(token: str) -> Optional[dict]:
    """
    Session data for a live token, refreshing its idle timer.
    Idle tokens are dropped and yield None.
    """
    data = sessions.get(token)
    if data is None:
        return None

    now = _now()
    if _is_idle(data, now):
        sessions.pop(token, None)
        logger.info(f"Session for {data['username']} expired after inactivity")
        return None

    data["last_active"] = now
    return data


def delete_session(token: str) -> bool:
    data = sessions.pop(token, None)
    if data is None:
        return False
    logger.info(f"Session closed for {data['username']}")
    return True


def update_session_role(user_id: int, role: str) -> int:
    """Rewrite the role claim on every live session of a user. Returns how many changed."""
    touched = [data for data in sessions.values() if data["user_id"] == user_id]
    for data in touched:
        data["role"] = role
    if touched:
        logger.info(f"Role claim of user {user_id} set to {role} on {len(touched)} session(s)")
    return len(touched)


def verify_session(request: Request) -> dict:
    token = request.headers.get(config.SESSION_HEADER)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No session token provided"
        )

    data = get_session(token)
    if not data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session"
        )
    return data


def cleanup_expired_sessions() -> int:
    """Drop every idle session. Returns the number removed."""
    now = _now()
    idle = [token for token, data in sessions.items() if _is_idle(data, now)]
    for token in idle:
        del sessions[token]
    if idle:
        logger.info(f"Removed {len(idle)} idle session(s)")
    return len(idle)


def get_active_sessions_count() -> int:
    return len(sessions)
