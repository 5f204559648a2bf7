from clinicqueue.models.queue import QueueStatus
from queue_console import dismiss, render


async def test_notices_stay_until_dismissed(api, coordinator, capsys):
    api.seed("w1", 1)
    await coordinator.refresh()
    api.fail.add("update_entry")
    api.fail.add("remove_entry")
    coordinator.update_status("w1", QueueStatus.IN_PROGRESS)
    await coordinator.wait_idle()
    coordinator.remove("w1")
    await coordinator.wait_idle()
    assert len(coordinator.notices) == 2

    render(coordinator)
    render(coordinator)

    out = capsys.readouterr().out
    assert out.count("[1] warning: Failed to update patient status") == 2
    assert len(coordinator.notices) == 2

    assert dismiss(coordinator, "d 2") == 1
    assert [n.kind for n in coordinator.notices] == ["write_failed"]
    assert "Failed to update" in coordinator.notices[0].message
    assert dismiss(coordinator, "d 5") == 0
    assert dismiss(coordinator, "d x") == 0
    assert dismiss(coordinator, "d") == 1
    assert coordinator.notices == []
