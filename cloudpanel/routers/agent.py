"""
Cloud Console - Agent Router

Exposes the local infrastructure agent: live telemetry, processes, services,
containers, port checks and operator command execution.
"""

import re
from typing import List, Optional

import structlog
from fastapi import APIRouter, HTTPException, Path, Query, Request
from pydantic import BaseModel, field_validator

from cloudpanel.agent import agent
from cloudpanel.config import settings
from cloudpanel.db import get_db, row_to_dict
from cloudpanel.limiter import limiter, command_limit

logger = structlog.get_logger(__name__)

router = APIRouter()

MAX_COMMAND_LENGTH = 1000

# Blocked patterns (refused regardless of who asks)
BLOCKLIST_PATTERNS = [
    r"\brm\s+(?:-\S+\s+)*/\*?(?=[\s;&|]|$)",  # rm -rf /, rm -r -f /*
    r"\brm\s.*--no-preserve-root",
    r"dd\s+if=/dev/(zero|random|urandom)\s+of=/dev/[sh]d",  # Disk wipe
    r"mkfs(\.\w+)?\s+/dev/[sh]d",  # Format disk
    r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",  # Fork bomb
    r"chmod\s+-R\s+777\s+/\s*$",  # Chmod root
    r">\s*/dev/[sh]d",  # Write to disk
    r"\bshutdown\b",
    r"\breboot\b",
    r"\binit\s+0\b",
    r"\bhalt\b",
    r"\bpoweroff\b",
]


class CommandRequest(BaseModel):
    command: Optional[str] = None
    timeout: Optional[int] = None  # milliseconds

    @field_validator("command")
    @classmethod
    def validate_command(cls, v):
        if v is not None and len(v) > MAX_COMMAND_LENGTH:
            raise ValueError(f"Command too long (max {MAX_COMMAND_LENGTH} chars)")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Timeout must be positive")
        return v


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[str]
    result: Optional[str]
    ip_address: Optional[str]
    created_at: Optional[str]


def is_blocked(command: str) -> bool:
    return any(re.search(pattern, command, re.IGNORECASE) for pattern in BLOCKLIST_PATTERNS)


async def _log_action(db, action: str, details: str, result: str, request: Request):
    """Record an agent action in the audit log."""
    ip = request.client.host if request.client else None
    await db.execute(
        """INSERT INTO audit_log (action, details, result, ip_address)
           VALUES (?, ?, ?, ?)""",
        (action, details, result, ip)
    )
    await db.commit()


@router.get("/system-info")
async def get_system_info():
    info = await agent.get_system_info()
    return info.to_dict()


@router.get("/metrics")
async def get_resource_metrics():
    metrics = await agent.get_resource_metrics()
    return metrics.to_dict()


@router.get("/processes")
async def get_processes(limit: int = Query(10, ge=1, le=500)):
    """Top processes by CPU usage."""
    processes = await agent.get_running_processes(limit)
    return [p.to_dict() for p in processes]


@router.get("/services")
async def get_services():
    services = await agent.get_system_services()
    return [s.to_dict() for s in services]


@router.get("/docker")
async def get_docker_containers():
    containers = await agent.get_docker_containers()
    return [c.to_dict() for c in containers]


@router.post("/command")
@limiter.limit(command_limit)
async def execute_command(request: Request, body: CommandRequest):
    """Run a command line on the host."""
    command = (body.command or "").strip()
    if not command:
        raise HTTPException(status_code=400, detail="Command is required")

    db = await get_db()

    if settings.agent_command_blocklist and is_blocked(command):
        await _log_action(db, "agent.command", command, "blocked", request)
        logger.warning("Blocked command refused", command=command)
        raise HTTPException(status_code=403, detail="Command blocked: matches security blocklist pattern")

    result = await agent.execute_command(command, body.timeout)
    outcome = "success" if result.success else f"failed:{result.exit_code}"
    await _log_action(db, "agent.command", command, outcome, request)

    return result.to_dict()


@router.post("/service/{service_name}/restart")
async def restart_service(service_name: str, request: Request):
    db = await get_db()
    result = await agent.restart_service(service_name)

    await _log_action(
        db,
        "agent.service.restart",
        service_name,
        "success" if result.success else f"error:{result.message}",
        request
    )
    return result.to_dict()


@router.get("/port/{port}/check")
async def check_port(port: int = Path(ge=1, le=65535)):
    available = await agent.check_port_availability(port)
    return {"port": port, "available": available}


@router.get("/history", response_model=List[AuditEntry])
async def get_history(limit: int = Query(50, ge=1, le=500)):
    """Recently executed commands and service actions."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM audit_log ORDER BY created_at DESC, id DESC LIMIT ?",
        (limit,)
    )
    return [row_to_dict(row) for row in await cursor.fetchall()]
