"""Schemas for scheduler status and manual sweep triggers."""

from pydantic import BaseModel
from typing import Dict, Optional


class JobStatus(BaseModel):
    cron: str
    description: str
    is_active: bool
    last_execution: Optional[str] = None
    execution_count: int = 0


class SchedulerStatus(BaseModel):
    is_running: bool
    server_time: str
    server_timezone: str
    schedules: Dict[str, JobStatus]


class TriggerResponse(BaseModel):
    ok: bool = True
    message: str
    timestamp: str
