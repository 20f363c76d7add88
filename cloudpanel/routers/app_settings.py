"""
Cloud Console - Settings Router

Stores the OpenAI API key and checks that it works.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from cloudpanel.db import get_db
from cloudpanel.services.ai_advisor import ai_advisor, OPENAI_KEY_SETTING

logger = structlog.get_logger(__name__)

router = APIRouter()


class SettingsUpdate(BaseModel):
    openai_api_key: Optional[str] = None


def mask_secret(value: Optional[str]) -> str:
    """Keep only enough of a secret to recognise it."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:3]}...{value[-4:]}"


@router.get("")
async def get_settings():
    db = await get_db()
    cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (OPENAI_KEY_SETTING,))
    row = await cursor.fetchone()
    stored = row[0] if row else None

    return {
        "openai_api_key": mask_secret(stored),
        "openai_api_key_configured": bool(stored),
    }


@router.post("")
async def update_settings(update: SettingsUpdate):
    """Persist settings. Empty values leave the stored value untouched."""
    db = await get_db()

    api_key = (update.openai_api_key or "").strip()
    if api_key:
        await db.execute(
            """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP""",
            (OPENAI_KEY_SETTING, api_key)
        )
        await db.commit()
        logger.info("OpenAI API key updated")

    return {"success": True}


@router.post("/test-openai")
async def test_openai():
    """Send a minimal request with the configured key."""
    api_key = await ai_advisor.resolve_api_key()
    if not api_key:
        raise HTTPException(status_code=400, detail="OpenAI API key not configured")

    try:
        model = await ai_advisor.test_connection(api_key)
    except Exception as e:
        logger.warning("OpenAI connection test failed", error=str(e))
        raise HTTPException(status_code=400, detail=str(e) or "Failed to connect to OpenAI API")

    return {"success": True, "model": model, "message": "Connection successful"}
