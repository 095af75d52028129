from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from invoice_document import FormSnapshot, document_from_form
from live_preview import LivePreviewCoordinator


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


class Recorder:
    def __init__(self) -> None:
        self.rebuilt = []
        self.emitted = []

    def rebuild(self, snapshot):
        self.rebuilt.append(snapshot)
        return document_from_form(snapshot, now=datetime(2024, 5, 1))

    def on_update(self, document, template_id):
        self.emitted.append((document, template_id))


def _snap(name: str) -> FormSnapshot:
    return FormSnapshot(buyer_name=name, service_name="Design", unit_net_price="100", qty=1)


def test_burst_of_edits_rebuilds_once() -> None:
    clock, rec = FakeClock(), Recorder()
    coord = LivePreviewCoordinator(
        rec.rebuild, on_update=rec.on_update, debounce_ms=150, clock=clock,
        now=lambda: datetime(2024, 5, 1, tzinfo=timezone.utc),
    )

    for at, name in ((0.0, "J"), (0.05, "Ja"), (0.10, "Jane")):
        clock.t = at
        coord.push(_snap(name))
    assert coord.is_updating

    clock.t = 0.2
    assert coord.poll() is False
    assert rec.rebuilt == []

    clock.t = 0.35
    assert coord.poll() is True

    assert [s.buyer_name for s in rec.rebuilt] == ["Jane"]
    assert coord.update_count == 1
    assert coord.discarded_count == 2
    assert not coord.is_updating
    assert coord.document.client.name == "Jane"
    assert coord.last_updated == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert len(rec.emitted) == 1
    assert coord.poll() is False


def test_update_now_skips_the_window() -> None:
    clock, rec = FakeClock(), Recorder()
    coord = LivePreviewCoordinator(rec.rebuild, clock=clock)

    coord.push(_snap("old"))
    coord.update_now(_snap("new"))

    assert [s.buyer_name for s in rec.rebuilt] == ["new"]
    clock.t = 1.0
    assert coord.poll() is False


def test_switch_template_drops_pending_work() -> None:
    clock, rec = FakeClock(), Recorder()
    coord = LivePreviewCoordinator(rec.rebuild, on_update=rec.on_update, clock=clock, template_id="classic-professional")

    coord.update_now(_snap("Jane"))
    coord.push(_snap("Janet"))
    coord.switch_template("modern-bold")

    assert not coord.has_pending
    assert not coord.is_updating
    clock.t = 1.0
    assert coord.poll() is False

    coord.refresh()
    assert rec.emitted[-1][1] == "modern-bold"
    assert rec.emitted[-1][0].client.name == "Jane"
    assert coord.update_count == 2


def test_disable_resets_and_ignores_input() -> None:
    clock, rec = FakeClock(), Recorder()
    coord = LivePreviewCoordinator(rec.rebuild, clock=clock)
    coord.update_now(_snap("Jane"))
    coord.push(_snap("Janet"))

    coord.set_enabled(False)

    assert coord.document is None
    assert coord.last_updated is None
    assert not coord.has_pending
    coord.push(_snap("ignored"))
    assert not coord.has_pending
    # the counter keeps counting across resets
    assert coord.update_count == 1

    coord.set_enabled(True)
    coord.update_now(_snap("back"))
    assert coord.update_count == 2


def test_rebuild_error_keeps_previous_document(caplog) -> None:
    clock = FakeClock()
    calls = []

    def rebuild(snapshot):
        calls.append(snapshot)
        if snapshot.buyer_name == "bad":
            raise ValueError("boom")
        return document_from_form(snapshot)

    coord = LivePreviewCoordinator(rebuild, clock=clock)
    coord.update_now(_snap("good"))
    coord.update_now(_snap("bad"))

    assert coord.document.client.name == "good"
    assert coord.update_count == 1
    assert not coord.is_updating
    assert "Preview rebuild failed" in caplog.text


def test_closed_coordinator_is_inert() -> None:
    clock, rec = FakeClock(), Recorder()
    with LivePreviewCoordinator(rec.rebuild, clock=clock) as coord:
        coord.push(_snap("Jane"))
    assert not coord.has_pending
    coord.push(_snap("later"))
    clock.t = 5.0
    assert coord.poll() is False
    assert rec.rebuilt == []


def test_event_loop_timer_debounces() -> None:
    rec = Recorder()

    async def scenario():
        coord = LivePreviewCoordinator(rec.rebuild, debounce_ms=20, loop=asyncio.get_running_loop())
        for name in ("J", "Ja", "Jane"):
            coord.push(_snap(name))
        await asyncio.sleep(0.15)
        return coord

    coord = asyncio.run(scenario())
    assert [s.buyer_name for s in rec.rebuilt] == ["Jane"]
    assert coord.update_count == 1


def test_close_cancels_loop_timer() -> None:
    rec = Recorder()

    async def scenario():
        coord = LivePreviewCoordinator(rec.rebuild, debounce_ms=20, loop=asyncio.get_running_loop())
        coord.push(_snap("Jane"))
        coord.close()
        await asyncio.sleep(0.1)
        return coord

    coord = asyncio.run(scenario())
    assert rec.rebuilt == []
    assert coord.update_count == 0
    assert not coord.has_pending
