"""Terminal view of today's queue, refreshed on the polling interval.

Usage: python queue_console.py <username> <password>

Commands (type and press Enter):
    d       dismiss every notice
    d N     dismiss notice N
    r       refresh now
    q       quit
"""

import asyncio
import logging
import sys
import threading

from clinicqueue.client import QueueApiClient, QueueCoordinator, QueueDirectory
from clinicqueue.client.errors import ApiError
from clinicqueue.config import get_settings


def render(coordinator: QueueCoordinator):
    stats = coordinator.stats
    print("\n" + "=" * 72)
    print(
        f"Total {stats.total_patients} | Waiting {stats.waiting_patients} | "
        f"With doctor {stats.in_progress_patients} | Completed {stats.completed_patients} | "
        f"Next ticket #{stats.next_ticket_number}"
    )
    if coordinator.showing_cached_data:
        print("!! Showing cached data - the queue server is unreachable")
    for index, notice in enumerate(coordinator.notices, 1):
        print(f"[{index}] {notice.level}: {notice.message}")

    for label, entries in coordinator.groups().items():
        if not entries:
            continue
        print(f"\n{label} ({len(entries)})")
        print("-" * 72)
        for entry in entries:
            view = coordinator.describe(entry)
            print(
                f"#{view.ticket_number:<4} {view.patient_name:<25} {view.appointment_type:<14} "
                f"{view.waiting_minutes:>4} min  {view.reason or ''}"
            )


def dismiss(coordinator: QueueCoordinator, command: str) -> int:
    """Handle ``d`` / ``d N``; returns how many notices were dismissed."""
    parts = command.split()
    notices = list(coordinator.notices)
    if len(parts) > 1:
        try:
            index = int(parts[1]) - 1
        except ValueError:
            return 0
        notices = notices[index:index + 1] if index >= 0 else []
    for notice in notices:
        coordinator.dismiss_notice(notice)
    return len(notices)


def read_commands(loop: asyncio.AbstractEventLoop, commands: asyncio.Queue):
    # Daemon thread so a pending readline never blocks shutdown.
    def read():
        for line in sys.stdin:
            loop.call_soon_threadsafe(commands.put_nowait, line.strip())
        loop.call_soon_threadsafe(commands.put_nowait, "q")

    threading.Thread(target=read, daemon=True).start()


async def watch(username: str, password: str):
    settings = get_settings()
    api = QueueApiClient()
    try:
        await api.login(username, password)
    except ApiError as e:
        print(f"Login failed: {e}")
        return

    coordinator = QueueCoordinator(api, directory=QueueDirectory())
    commands: asyncio.Queue = asyncio.Queue()
    read_commands(asyncio.get_running_loop(), commands)

    coordinator.start()
    try:
        await asyncio.sleep(1)
        while True:
            render(coordinator)
            try:
                command = await asyncio.wait_for(commands.get(), timeout=settings.POLL_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                continue
            if command == "q":
                break
            if command == "r":
                await coordinator.refresh()
            elif command.startswith("d"):
                dismiss(coordinator, command)
    finally:
        await coordinator.stop()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    logging.basicConfig(level=get_settings().LOG_LEVEL.upper())
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    try:
        asyncio.run(watch(*sys.argv[1:]))
    except KeyboardInterrupt:
        pass
