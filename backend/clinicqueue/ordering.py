"""
Canonical ordering, status transitions and stats for queue entries.

Shared by the queue API service and the client-side coordinator so both
agree on what "the queue order" is.
"""

from collections import OrderedDict
from typing import Dict, FrozenSet, Iterable, List, Sequence

from .models.queue import QueueEntry, QueueStats, QueueStatus

STATUS_PRIORITY: Dict[QueueStatus, int] = {
    QueueStatus.WAITING: 0,
    QueueStatus.IN_PROGRESS: 1,
    QueueStatus.COMPLETED: 2,
    QueueStatus.NO_SHOW: 3,
    QueueStatus.CANCELLED: 4,
}

STATUS_LABELS: Dict[QueueStatus, str] = {
    QueueStatus.WAITING: "Waiting",
    QueueStatus.IN_PROGRESS: "With Doctor",
    QueueStatus.COMPLETED: "Completed",
    QueueStatus.NO_SHOW: "No-show",
    QueueStatus.CANCELLED: "Cancelled",
}

STATUS_TRANSITIONS: Dict[QueueStatus, FrozenSet[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({
        QueueStatus.IN_PROGRESS,
        QueueStatus.NO_SHOW,
        QueueStatus.CANCELLED,
    }),
    QueueStatus.IN_PROGRESS: frozenset({QueueStatus.COMPLETED}),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.NO_SHOW: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
}


def status_priority(status: QueueStatus) -> int:
    return STATUS_PRIORITY[status]


def can_transition(current: QueueStatus, new: QueueStatus) -> bool:
    """Whether a status change is allowed by the waiting-room state machine."""
    return new in STATUS_TRANSITIONS[current]


def sort_key(entry: QueueEntry):
    # Manual positions only apply while waiting; every other group stays in ticket order.
    position = entry.ticket_number
    if entry.status == QueueStatus.WAITING and entry.queue_position is not None:
        position = entry.queue_position
    return (STATUS_PRIORITY[entry.status], position, entry.ticket_number)


def sort_entries(entries: Iterable[QueueEntry]) -> List[QueueEntry]:
    """Return entries in canonical order: status priority, then queue position.

    Only waiting entries are ordered by ``queue_position``, which equals
    ``ticket_number`` until a manual reorder. Every other status group is
    ordered by ticket number.
    """
    return sorted(entries, key=sort_key)


def waiting_ids(entries: Iterable[QueueEntry]) -> List[str]:
    return [e.id for e in sort_entries(entries) if e.status == QueueStatus.WAITING]


def splice_waiting_order(
    entries: Sequence[QueueEntry],
    ordered_waiting_ids: Sequence[str]
) -> List[QueueEntry]:
    """Apply a new order to the waiting subset and return the full sorted list.

    Waiting entries get positions ``1..n`` following ``ordered_waiting_ids``;
    every other entry is returned unchanged. Raises ``ValueError`` when the
    ids are not exactly the current waiting entries.
    """
    current = waiting_ids(entries)
    if len(ordered_waiting_ids) != len(set(ordered_waiting_ids)):
        raise ValueError("Duplicate ids in new queue order")
    if set(ordered_waiting_ids) != set(current):
        raise ValueError("New queue order must list exactly the waiting entries")

    positions = {entry_id: index + 1 for index, entry_id in enumerate(ordered_waiting_ids)}
    spliced = []
    for entry in entries:
        if entry.id in positions:
            entry = entry.model_copy(update={"queue_position": positions[entry.id]})
        spliced.append(entry)
    return sort_entries(spliced)


def compute_stats(entries: Iterable[QueueEntry], next_ticket_number: int = 1) -> QueueStats:
    """Derive queue counts from the entries themselves."""
    counts = {status: 0 for status in QueueStatus}
    highest_ticket = 0
    for entry in entries:
        counts[entry.status] += 1
        highest_ticket = max(highest_ticket, entry.ticket_number)

    return QueueStats(
        total_patients=sum(counts.values()),
        waiting_patients=counts[QueueStatus.WAITING],
        in_progress_patients=counts[QueueStatus.IN_PROGRESS],
        completed_patients=counts[QueueStatus.COMPLETED],
        no_show_patients=counts[QueueStatus.NO_SHOW],
        cancelled_patients=counts[QueueStatus.CANCELLED],
        next_ticket_number=max(next_ticket_number, highest_ticket + 1),
    )


def group_entries(entries: Iterable[QueueEntry]) -> "OrderedDict[QueueStatus, List[QueueEntry]]":
    """Group sorted entries by status, in status-priority order."""
    groups: "OrderedDict[QueueStatus, List[QueueEntry]]" = OrderedDict(
        (status, []) for status in sorted(QueueStatus, key=status_priority)
    )
    for entry in sort_entries(entries):
        groups[entry.status].append(entry)
    return groups
