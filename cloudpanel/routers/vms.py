"""
Cloud Console - Virtual Machines Router

CRUD over the virtual machine inventory.
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field, field_validator

from cloudpanel.db import get_db, row_to_dict
from cloudpanel.services.sse import sse_manager, Channels

router = APIRouter()

VMStatus = Literal["running", "stopped", "maintenance", "error"]


class VMCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    status: VMStatus = "stopped"
    template: str
    cpu_cores: int = Field(ge=1)
    memory: int = Field(ge=1)
    storage: int = Field(ge=1)
    network: str
    user_id: Optional[int] = None


class VMUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[VMStatus] = None
    template: Optional[str] = None
    cpu_cores: Optional[int] = Field(default=None, ge=1)
    memory: Optional[int] = Field(default=None, ge=1)
    storage: Optional[int] = Field(default=None, ge=1)
    network: Optional[str] = None
    cpu_usage: Optional[float] = Field(default=None, ge=0, le=100)
    memory_usage: Optional[float] = Field(default=None, ge=0, le=100)
    uptime: Optional[str] = None

    @field_validator("*")
    @classmethod
    def reject_null(cls, v):
        # Omit a field to leave it unchanged; every column is NOT NULL
        if v is None:
            raise ValueError("may not be null")
        return v


class VMResponse(BaseModel):
    id: int
    name: str
    status: str
    template: str
    cpu_cores: int
    memory: int
    storage: int
    network: str
    cpu_usage: float
    memory_usage: float
    uptime: str
    created_at: Optional[str]
    user_id: Optional[int]


async def _fetch_vm(db, vm_id: int) -> Optional[dict]:
    cursor = await db.execute("SELECT * FROM virtual_machines WHERE id = ?", (vm_id,))
    return row_to_dict(await cursor.fetchone())


@router.get("", response_model=List[VMResponse])
async def list_vms():
    """List all virtual machines, newest first."""
    db = await get_db()
    cursor = await db.execute("SELECT * FROM virtual_machines ORDER BY created_at DESC, id DESC")
    return [row_to_dict(row) for row in await cursor.fetchall()]


@router.get("/{vm_id}", response_model=VMResponse)
async def get_vm(vm_id: int):
    db = await get_db()
    vm = await _fetch_vm(db, vm_id)
    if not vm:
        raise HTTPException(status_code=404, detail="Virtual machine not found")
    return vm


@router.post("", response_model=VMResponse, status_code=201)
async def create_vm(vm: VMCreate):
    """Register a virtual machine record."""
    db = await get_db()
    if vm.user_id is not None:
        cursor = await db.execute("SELECT id FROM users WHERE id = ?", (vm.user_id,))
        if not await cursor.fetchone():
            raise HTTPException(status_code=422, detail="User not found")

    cursor = await db.execute(
        """INSERT INTO virtual_machines
           (name, status, template, cpu_cores, memory, storage, network, user_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (vm.name, vm.status, vm.template, vm.cpu_cores, vm.memory,
         vm.storage, vm.network, vm.user_id)
    )
    await db.commit()

    created = await _fetch_vm(db, cursor.lastrowid)
    await sse_manager.broadcast(Channels.VMS, "vm_created", created)
    return created


@router.patch("/{vm_id}", response_model=VMResponse)
async def update_vm(vm_id: int, update: VMUpdate):
    """Update the given fields of a virtual machine."""
    db = await get_db()
    if not await _fetch_vm(db, vm_id):
        raise HTTPException(status_code=404, detail="Virtual machine not found")

    fields = update.model_dump(exclude_unset=True)
    if fields:
        # Column names come from the model, values are bound
        assignments = ", ".join(f"{column} = ?" for column in fields)
        await db.execute(
            f"UPDATE virtual_machines SET {assignments} WHERE id = ?",
            (*fields.values(), vm_id)
        )
        await db.commit()

    updated = await _fetch_vm(db, vm_id)
    await sse_manager.broadcast(Channels.VMS, "vm_updated", updated)
    return updated


@router.delete("/{vm_id}", status_code=204)
async def delete_vm(vm_id: int):
    db = await get_db()
    cursor = await db.execute("DELETE FROM virtual_machines WHERE id = ?", (vm_id,))
    await db.commit()

    if cursor.rowcount == 0:
        raise HTTPException(status_code=404, detail="Virtual machine not found")

    await sse_manager.broadcast(Channels.VMS, "vm_deleted", {"id": vm_id})
    return Response(status_code=204)
