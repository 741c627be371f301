from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.client.api import AnchorClient

EMPTY_HISTORY_MESSAGE = "No activity recorded"


class AuditEntry(BaseModel):
    id: int
    event_type: str = Field(alias="eventType")
    timestamp: datetime
    section: Optional[str] = None
    actor_id: Optional[int] = Field(default=None, alias="actorId")
    actor_name: Optional[str] = Field(default=None, alias="actorName")
    changes: Optional[Dict[str, Any]] = None


class AuditHistoryReader:
    """Read-only view of a care log's audit trail, oldest event first."""

    def __init__(self, client: AnchorClient):
        self.client = client

    async def fetch(self, care_log_id: int) -> List[AuditEntry]:
        raw = await self.client.get_history(care_log_id) or []
        entries = [AuditEntry.model_validate(item) for item in raw]
        return sorted(entries, key=lambda entry: (entry.timestamp, entry.id))

    @staticmethod
    def describe(entry: AuditEntry) -> str:
        who = entry.actor_name or "Someone"
        if entry.event_type == "created":
            return f"{who} started the care log"
        if entry.event_type == "section_submitted":
            return f"{who} submitted the {entry.section} section"
        if entry.event_type == "submitted":
            return f"{who} submitted the care log"
        if entry.event_type == "invalidated":
            reason = (entry.changes or {}).get("invalidationReason", {}).get("new")
            return f"{who} sent the care log back for correction" + (f": {reason}" if reason else "")
        if entry.event_type == "updated":
            fields = ", ".join(sorted(entry.changes or {}))
            return f"{who} updated {fields}" if fields else f"{who} updated the care log"
        return f"{who}: {entry.event_type}"

    async def render(self, care_log_id: int) -> List[str]:
        entries = await self.fetch(care_log_id)
        if not entries:
            return [EMPTY_HISTORY_MESSAGE]
        return [f"{entry.timestamp:%H:%M} {self.describe(entry)}" for entry in entries]
