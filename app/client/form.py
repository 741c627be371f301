import asyncio
import copy
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.client.api import AnchorClient
from app.client.debounce import Debouncer
from app.client.errors import ApiError
from app.core.config import AUTOSAVE_DELAY_SECONDS
from app.services.progress import Progress, evaluate
from app.services.sections import get_section

logger = logging.getLogger(__name__)

# Lifecycle phases
EMPTY = "empty"
DRAFT_UNSAVED = "draft_unsaved"
DRAFT_SAVED = "draft_saved"
SUBMITTED = "submitted"


class SectionFormController:
    """
    Caregiver-side state for one section of today's care log.

    1. load() hydrates the form from today's record (or starts an empty draft).
    2. set_field() edits locally and re-arms the autosave timer.
    3. save() creates the record if needed, then PATCHes this section's data.
    4. submit_section() saves, then marks the section as shared with family.

    Saves are serialized with a lock, so a submit always goes out after the
    save it depends on. Mutations never raise for API failures: they return
    False and leave the message in `error`.
    """

    def __init__(
        self,
        client: AnchorClient,
        section: str,
        care_recipient_id: Optional[int] = None,
        autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.section = get_section(section)
        if care_recipient_id is None and client.session:
            care_recipient_id = client.session.care_recipient_id
        self.care_recipient_id = care_recipient_id
        self._today = today

        self.state: Dict[str, Any] = self.section.empty_state()
        self.phase = EMPTY
        self.submitted = False
        self.care_log_id: Optional[int] = None
        self.care_log: Optional[Dict[str, Any]] = None
        self.last_saved_at: Optional[datetime] = None
        self.error: Optional[str] = None

        self._edits = 0
        self._lock = asyncio.Lock()
        self._debouncer = Debouncer(autosave_delay, self._autosave)

    # --- Derived ---
    @property
    def progress(self) -> Progress:
        return evaluate(self.section, self.state)

    @property
    def can_submit(self) -> bool:
        return self.progress.can_submit

    @property
    def submit_label(self) -> str:
        if self.submitted:
            return "Update & Re-submit"
        return f"Submit {self.section.title}"

    @property
    def locked(self) -> bool:
        """The whole log was submitted; saves are rejected until family invalidates it."""
        return bool(self.care_log) and self.care_log.get("status") == "submitted"

    @property
    def saving(self) -> bool:
        return self._lock.locked()

    # --- Load ---
    async def load(self) -> Dict[str, Any]:
        """Any failure (including 404) means "nothing saved yet": start an empty draft."""
        try:
            log = await self.client.get_caregiver_today()
        except ApiError as e:
            logger.info(f"No care log loaded for {self.section.name} ({e.status_code}), starting empty draft")
            log = None
        self._adopt(log, rehydrate=True)
        return self.state

    def _adopt(self, log: Optional[Dict[str, Any]], rehydrate: bool = False) -> None:
        self.care_log = log
        if rehydrate:
            self.state = self.section.hydrate(log)
        if not log:
            self.care_log_id = None
            self.submitted = False
            self.phase = EMPTY
            return

        self.care_log_id = log["id"]
        self.care_recipient_id = log.get("careRecipientId", self.care_recipient_id)
        self.submitted = self.section.name in (log.get("completedSections") or {})
        if rehydrate:
            self.phase = SUBMITTED if self.submitted else DRAFT_SAVED

    # --- Edit ---
    def set_field(self, name: str, value: Any) -> None:
        """Local, synchronous update. The autosave goes out after the debounce window."""
        self.section.field(name)
        self.state[name] = value
        self._edits += 1
        self.phase = DRAFT_UNSAVED
        self._debouncer.trigger()

    async def _autosave(self) -> None:
        if not await self.save():
            logger.warning(f"Autosave of {self.section.name} failed: {self.error}")

    # --- Save ---
    async def save(self) -> bool:
        async with self._lock:
            return await self._save_locked()

    async def _save_locked(self) -> bool:
        snapshot = copy.deepcopy(self.state)
        edits_at_snapshot = self._edits
        try:
            if self.care_log_id is None:
                created = await self.client.create_log(self.care_recipient_id, self._today())
                self._adopt(created)
            log = await self.client.patch_log(self.care_log_id, self.section.build_payload(snapshot))
        except ApiError as e:
            self.error = e.message
            return False

        self._adopt(log)
        self.error = None
        self.last_saved_at = datetime.now(timezone.utc)
        # Edits made while the request was out stay unsaved until the next autosave
        if self._edits == edits_at_snapshot:
            self.phase = DRAFT_SAVED
        return True

    # --- Submit ---
    async def submit_section(self) -> bool:
        if not self.can_submit:
            return False

        # The save below includes every pending edit
        self._debouncer.cancel()
        async with self._lock:
            if not await self._save_locked():
                return False
            try:
                log = await self.client.submit_section(self.care_log_id, self.section.name)
            except ApiError as e:
                self.error = e.message
                logger.warning(f"Submit of {self.section.name} failed: {e.message}")
                return False

        self._adopt(log)
        self.submitted = True
        if self.phase != DRAFT_UNSAVED:
            self.phase = SUBMITTED
        return True

    # --- Lifecycle ---
    async def wait_idle(self) -> None:
        await self._debouncer.wait_idle()

    async def close(self) -> None:
        """Navigation away: a pending autosave is sent now rather than dropped."""
        await self._debouncer.flush()
