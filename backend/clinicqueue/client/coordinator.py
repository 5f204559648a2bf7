"""
Queue coordinator for a front-desk or doctor terminal.

Keeps the ordered, status-grouped view of today's queue, applies staff
actions optimistically and reconciles with the queue API by polling.

Consistency model: local changes are shown at once and persisted in the
background. A failed write is not rolled back; the terminal warns and
schedules a reconciliation refresh, after which the server's view wins.
Writes still in flight are kept in a pending map and overlaid on every
refresh issued before they were confirmed, and refresh responses that
arrive after a newer refresh has been applied are discarded.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError

from ..config import Settings, get_settings
from ..models.appointment import Appointment, AppointmentStatus
from ..models.queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueOrderItem,
    QueueSnapshot,
    QueueStats,
    QueueStatus
)
from ..ordering import (
    STATUS_LABELS,
    can_transition,
    compute_stats,
    group_entries,
    sort_entries,
    splice_waiting_order,
    waiting_ids
)
from .cache import LocalQueueCache
from .errors import ApiError, DuplicateCheckInError, InvalidTransitionError, QueueValidationError
from .references import WALK_IN_TYPE, Directory, reference_id, resolve_appointment, resolve_patient

logger = logging.getLogger(__name__)

LAST_TICKET_KEY = "queue_last_ticket"


class Notice(BaseModel):
    """User-visible, dismissible message."""
    level: str = "warning"  # info, warning, error
    kind: str = "error"
    message: str


class EntryView(BaseModel):
    """Queue entry with references resolved for display."""
    id: str
    ticket_number: int
    status: QueueStatus
    status_label: str
    is_walk_in: bool
    patient_name: str
    patient_phone: Optional[str] = None
    appointment_type: str
    reason: Optional[str] = None
    waiting_minutes: int = 0


class PendingWrite:
    """A local change not yet reflected by every refresh."""

    __slots__ = ("value", "confirmed_seq")

    def __init__(self, value: Any, confirmed_seq: Optional[int] = None):
        self.value = value
        # Refresh sequence number current when the server confirmed the write.
        self.confirmed_seq = confirmed_seq


PendingKey = Tuple[str, str]  # (entry id, field)


class QueueCoordinator:
    """Ordered view of today's queue, shared by every queue screen."""

    def __init__(
        self,
        api,
        directory: Optional[Directory] = None,
        cache: Optional[LocalQueueCache] = None,
        settings: Optional[Settings] = None
    ):
        self.api = api
        self.directory = directory
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else LocalQueueCache(self.settings.QUEUE_CACHE_FILE)

        self.entries: List[QueueEntry] = []
        self.stats = QueueStats()
        self.source: Optional[str] = None
        self.showing_cached_data = False
        self.loading = False
        self.notices: List[Notice] = []
        self.last_ticket: Optional[QueueEntry] = None

        self._pending: Dict[PendingKey, PendingWrite] = {}
        self._checking_in: set = set()
        self._refresh_seq = 0
        self._applied_seq = 0
        self._tasks: set = set()
        self._poll_task: Optional[asyncio.Task] = None
        self._reconcile_task: Optional[asyncio.Task] = None

    # Lifecycle

    def start(self):
        """Refresh now and then every ``POLL_INTERVAL_SECONDS``."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll())

    async def stop(self):
        """Stop polling and wait for writes already sent."""
        for task in (self._poll_task, self._reconcile_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None
        self._reconcile_task = None
        await self.wait_idle()

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def _poll(self):
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Queue refresh failed unexpectedly")
            await asyncio.sleep(self.settings.POLL_INTERVAL_SECONDS)

    async def wait_idle(self):
        """Wait until background writes and a scheduled reconciliation finish."""
        while self._tasks or (self._reconcile_task is not None and not self._reconcile_task.done()):
            pending = list(self._tasks)
            if self._reconcile_task is not None and not self._reconcile_task.done():
                pending.append(self._reconcile_task)
            await asyncio.gather(*pending, return_exceptions=True)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule_reconcile(self):
        if self._reconcile_task is not None and not self._reconcile_task.done():
            return
        self._reconcile_task = asyncio.create_task(self._reconcile())

    async def _reconcile(self):
        await asyncio.sleep(self.settings.RECONCILE_DELAY_SECONDS)
        await self.refresh()

    # Reads

    async def refresh(self) -> bool:
        """Fetch entries and stats and replace the view.

        Returns ``True`` when the response was applied.
        """
        self._refresh_seq += 1
        seq = self._refresh_seq
        self.loading = True
        try:
            listing, server_stats = await asyncio.gather(
                self.api.list_entries(),
                self.api.get_stats()
            )
        except ApiError as e:
            logger.warning("Error fetching queue data: %s", e)
            if self._applied_seq == 0 and not self.entries:
                self._show_unreachable()
            return False
        finally:
            self.loading = False

        if seq < self._applied_seq:
            logger.debug("Discarding stale queue response %d (applied %d)", seq, self._applied_seq)
            return False
        self._applied_seq = seq

        if self._is_fallback(listing.source, listing.entries):
            self._enter_fallback(len(listing.entries))
            return True

        self.entries = sort_entries(self._merge(listing.entries, seq))
        self.stats = compute_stats(self.entries, server_stats.next_ticket_number)
        self.source = "live"
        self.showing_cached_data = False
        self._dismiss_kind("cached_data")

        await self._reload_directory()
        return True

    async def _reload_directory(self):
        reload = getattr(self.directory, "reload", None)
        if reload is None:
            return
        try:
            await reload(self.api)
        except ApiError as e:
            logger.warning("Error fetching patients and appointments: %s", e)

    def _merge(self, server_entries: Iterable[QueueEntry], seq: int) -> List[QueueEntry]:
        # Writes confirmed before this refresh was issued are in the server data.
        for key, pending in list(self._pending.items()):
            if pending.confirmed_seq is not None and pending.confirmed_seq < seq:
                del self._pending[key]

        by_id: "OrderedDict[str, QueueEntry]" = OrderedDict((e.id, e) for e in server_entries)
        for (entry_id, field), pending in self._pending.items():
            if field == "created" and entry_id not in by_id:
                by_id[entry_id] = pending.value

        merged = []
        for entry_id, entry in by_id.items():
            if (entry_id, "removed") in self._pending:
                continue
            update = {}
            status = self._pending.get((entry_id, "status"))
            if status is not None:
                update["status"] = status.value
            position = self._pending.get((entry_id, "position"))
            if position is not None:
                update["queue_position"] = position.value
            merged.append(entry.model_copy(update=update) if update else entry)
        return merged

    def _is_fallback(self, source: Optional[str], entries: Sequence[QueueEntry]) -> bool:
        if source is not None:
            return source == "cache"
        prefixes = tuple(self.settings.FALLBACK_ID_PREFIXES)
        return bool(entries) and any(e.id.startswith(prefixes) for e in entries)

    def _enter_fallback(self, count: int):
        logger.warning("Queue API returned %d fallback entries; clearing cached queue data", count)
        self.cache.purge_queue_keys()
        self._pending.clear()
        self.entries = []
        self.stats = QueueStats()
        self.source = "cache"
        self.showing_cached_data = True
        self._dismiss_kind("cached_data")
        self._notify(
            "The queue server is unreachable and returned cached data. "
            "Cached queue data was cleared; the queue is shown empty until the server recovers.",
            level="warning",
            kind="cached_data"
        )

    def _show_unreachable(self):
        # Saved entries are never shown: removed or completed patients would reappear.
        self.entries = []
        self.stats = QueueStats()
        self.source = "cache"
        self.showing_cached_data = True
        if self.last_ticket is None:
            self.last_ticket = self._saved_ticket()
        self._dismiss_kind("cached_data")
        self._notify(
            "The queue server could not be reached. The queue is shown empty until it recovers.",
            level="warning",
            kind="cached_data"
        )

    def _saved_ticket(self) -> Optional[QueueEntry]:
        saved = self.cache.get(LAST_TICKET_KEY)
        if not saved:
            return None
        try:
            return QueueEntry.model_validate(saved)
        except ValidationError:
            logger.warning("Ignoring unreadable saved ticket")
            return None

    async def purge_cache(self) -> int:
        """Clear every locally cached queue key, then reload from the server."""
        removed = self.cache.purge_queue_keys()
        if self.showing_cached_data:
            self.entries = []
            self.stats = QueueStats()
        self._notify(f"Cleared {removed} cached queue entries.", level="info", kind="cache_purged")
        await self.refresh()
        return removed

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(entries=list(self.entries), stats=self.stats, source=self.source)

    # Check-in

    async def check_in_walk_in(self, patient_id: str, reason: Optional[str] = None) -> Optional[QueueEntry]:
        """Add a walk-in patient; returns the created entry, or ``None`` on failure."""
        if not patient_id:
            raise QueueValidationError("Please select a patient")
        data = QueueEntryCreate(patient_id=patient_id, is_walk_in=True, notes=reason or None)
        return await self._check_in(data)

    async def check_in_appointment(self, appointment: Appointment) -> Optional[QueueEntry]:
        """Check in a patient for an existing appointment."""
        if appointment.id in self.queued_appointment_ids() or appointment.id in self._checking_in:
            raise DuplicateCheckInError(appointment.id)
        data = QueueEntryCreate(
            patient_id=appointment.patient_id,
            appointment_id=appointment.id,
            is_walk_in=False,
            notes=f"Checked in for {appointment.type.value}"
        )
        self._checking_in.add(appointment.id)
        try:
            return await self._check_in(data)
        finally:
            self._checking_in.discard(appointment.id)

    async def _check_in(self, data: QueueEntryCreate) -> Optional[QueueEntry]:
        try:
            entry = await self.api.add_entry(data)
        except ApiError as e:
            logger.error("Error adding patient %s to queue: %s", data.patient_id, e)
            self._notify(f"Failed to add patient to queue: {e}", level="error", kind="check_in_failed")
            return None

        entries = [e for e in self.entries if e.id != entry.id]
        entries.append(entry)
        self._set_entries(entries)
        self._pending[(entry.id, "created")] = PendingWrite(entry, confirmed_seq=self._refresh_seq)

        self.last_ticket = entry
        self.cache.set(LAST_TICKET_KEY, entry.model_dump(mode="json", by_alias=True))
        logger.info("Checked in ticket #%d", entry.ticket_number)
        return entry

    def queued_appointment_ids(self) -> set:
        return {
            reference_id(e.appointment_id)
            for e in self.entries
            if e.appointment_id is not None
        }

    def check_in_candidates(
        self,
        appointments: Optional[Iterable[Appointment]] = None,
        today: Optional[date] = None
    ) -> List[Appointment]:
        """Today's scheduled appointments that are not in the queue yet."""
        today = today or date.today()
        if appointments is None:
            appointments_on = getattr(self.directory, "appointments_on", None)
            appointments = appointments_on(today) if appointments_on else []
        queued = self.queued_appointment_ids()
        return [
            a for a in appointments
            if a.status == AppointmentStatus.SCHEDULED
            and a.appointment_date.date() == today
            and a.id not in queued
        ]

    # Writes

    def update_status(self, entry_id: str, new_status: QueueStatus) -> QueueEntry:
        """Change an entry's status locally and persist it in the background."""
        entry = self._get(entry_id)
        if entry.status == new_status:
            return entry
        if not can_transition(entry.status, new_status):
            raise InvalidTransitionError(entry.status, new_status)

        updated = entry.model_copy(update={"status": new_status})
        self._set_entries([updated if e.id == entry_id else e for e in self.entries])

        self._spawn(self._persist(
            [self._track((entry_id, "status"), new_status)],
            self.api.update_entry(entry_id, QueueEntryUpdate(status=new_status)),
            "Failed to update patient status"
        ))
        return updated

    def call_next(self) -> Optional[QueueEntry]:
        """Move the first waiting patient in to see the doctor."""
        for entry in self.entries:
            if entry.status == QueueStatus.WAITING:
                return self.update_status(entry.id, QueueStatus.IN_PROGRESS)
        return None

    def remove(self, entry_id: str) -> bool:
        """Remove an entry; the caller is responsible for confirming with the user."""
        if self._find(entry_id) is None:
            return False
        self._set_entries([e for e in self.entries if e.id != entry_id])

        self._spawn(self._persist(
            [self._track((entry_id, "removed"), True)],
            self.api.remove_entry(entry_id),
            "Failed to remove patient from queue"
        ))
        return True

    def reorder(self, ordered_waiting_ids: Sequence[str]) -> bool:
        """Apply a full new order of the waiting entries.

        Returns ``False`` when the order is unchanged.
        """
        ordered_waiting_ids = list(ordered_waiting_ids)
        if ordered_waiting_ids == waiting_ids(self.entries):
            return False
        try:
            entries = splice_waiting_order(self.entries, ordered_waiting_ids)
        except ValueError as e:
            raise QueueValidationError(str(e)) from e
        self._set_entries(entries)

        order = [
            QueueOrderItem(id=entry_id, position=index + 1)
            for index, entry_id in enumerate(ordered_waiting_ids)
        ]
        writes = [self._track((item.id, "position"), item.position) for item in order]
        self._spawn(self._persist(writes, self.api.reorder(order), "Failed to reorder queue"))
        return True

    def move(self, entry_id: str, offset: int) -> bool:
        """Move a waiting entry up (negative) or down (positive)."""
        ids = waiting_ids(self.entries)
        if entry_id not in ids:
            raise QueueValidationError("Only waiting patients can be reordered")
        return self.move_to(entry_id, ids.index(entry_id) + offset)

    def move_to(self, entry_id: str, index: int) -> bool:
        """Drop a waiting entry at ``index`` within the waiting group."""
        ids = waiting_ids(self.entries)
        if entry_id not in ids:
            raise QueueValidationError("Only waiting patients can be reordered")
        if index < 0 or index >= len(ids) or ids.index(entry_id) == index:
            return False
        ids.remove(entry_id)
        ids.insert(index, entry_id)
        return self.reorder(ids)

    def clear_completed(self) -> int:
        """Remove every completed entry; returns how many were removed."""
        completed = [e.id for e in self.entries if e.status == QueueStatus.COMPLETED]
        if not completed:
            return 0
        self._set_entries([e for e in self.entries if e.status != QueueStatus.COMPLETED])

        writes = [self._track((entry_id, "removed"), True) for entry_id in completed]
        self._spawn(self._persist(writes, self.api.clear_completed(), "Failed to clear completed patients"))
        return len(completed)

    def _track(self, key: PendingKey, value: Any) -> Tuple[PendingKey, PendingWrite]:
        write = PendingWrite(value)
        self._pending[key] = write
        return key, write

    async def _persist(self, writes: List[Tuple[PendingKey, PendingWrite]], call, failure_message: str):
        try:
            await call
        except ApiError as e:
            logger.error("%s: %s", failure_message, e)
            self._write_failed(writes, failure_message)
            return
        except Exception:
            logger.exception(failure_message)
            self._write_failed(writes, failure_message)
            return
        for _, write in writes:
            write.confirmed_seq = self._refresh_seq

    def _write_failed(self, writes: List[Tuple[PendingKey, PendingWrite]], failure_message: str):
        for key, write in writes:
            if self._pending.get(key) is write:
                del self._pending[key]
        self._notify(f"{failure_message}. The queue will be refreshed.", level="warning", kind="write_failed")
        self._schedule_reconcile()

    # View

    def groups(self) -> "OrderedDict[str, List[QueueEntry]]":
        """Entries grouped under their display labels, in status order."""
        return OrderedDict(
            (STATUS_LABELS[status], entries)
            for status, entries in group_entries(self.entries).items()
        )

    def describe(self, entry: QueueEntry, now: Optional[datetime] = None) -> EntryView:
        patient = resolve_patient(entry.patient_id, self.directory)
        appointment = resolve_appointment(entry.appointment_id, self.directory)

        if now is None:
            now = datetime.now(timezone.utc) if entry.check_in_time.tzinfo else datetime.utcnow()
        waited = max(0, int((now - entry.check_in_time).total_seconds() // 60))

        return EntryView(
            id=entry.id,
            ticket_number=entry.ticket_number,
            status=entry.status,
            status_label=STATUS_LABELS[entry.status],
            is_walk_in=entry.is_walk_in,
            patient_name=patient.name,
            patient_phone=patient.phone,
            appointment_type=appointment.type if appointment else WALK_IN_TYPE,
            reason=(appointment.reason if appointment and appointment.reason else entry.notes),
            waiting_minutes=waited
        )

    # Notices

    def dismiss_notice(self, notice: Notice):
        if notice in self.notices:
            self.notices.remove(notice)

    def _notify(self, message: str, level: str = "warning", kind: str = "error"):
        self.notices.append(Notice(level=level, kind=kind, message=message))

    def _dismiss_kind(self, kind: str):
        self.notices = [n for n in self.notices if n.kind != kind]

    # Helpers

    def _find(self, entry_id: str) -> Optional[QueueEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def _get(self, entry_id: str) -> QueueEntry:
        entry = self._find(entry_id)
        if entry is None:
            raise QueueValidationError("Queue entry not found")
        return entry

    def _set_entries(self, entries: Iterable[QueueEntry]):
        self.entries = sort_entries(entries)
        self.stats = compute_stats(self.entries, self.stats.next_ticket_number)
