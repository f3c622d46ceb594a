from __future__ import annotations

import asyncio

import pytest

from thighpads import tui
from thighpads.controller import Controller, HomeScreen
from thighpads.sqlite_store import SQLiteStore
from thighpads.update import UpdateInfo


class FakeChecker:
    def __init__(self, info: UpdateInfo) -> None:
        self.info = info
        self.calls = 0

    def check_for_update(self, force: bool = False) -> UpdateInfo:
        self.calls += 1
        return self.info


@pytest.fixture()
def controller(cfg):
    store = SQLiteStore(cfg.db_path)
    store.create_table("Notes", "alice")
    return Controller(store, cfg)


def _run(app: tui.ThighpadsApp, seconds: float) -> None:
    async def go() -> None:
        async with app.run_test() as pilot:
            await pilot.pause(seconds)

    asyncio.run(go())


def test_update_check_repeats_while_running(controller, monkeypatch):
    monkeypatch.setattr(tui, "UPDATE_POLL_SECONDS", 0.05)
    checker = FakeChecker(UpdateInfo(True, "9.9.9", "https://example.invalid/r"))
    app = tui.ThighpadsApp(controller, checker=checker, auto_check_update=True)

    _run(app, 0.5)

    assert checker.calls >= 2
    assert controller.state.update is not None
    assert controller.state.update.version == "9.9.9"


def test_no_update_check_when_disabled(controller):
    checker = FakeChecker(UpdateInfo(True, "9.9.9", ""))
    app = tui.ThighpadsApp(controller, checker=checker, auto_check_update=False)

    _run(app, 0.1)

    assert checker.calls == 0
    assert controller.state.update is None


def test_update_check_without_checker_is_a_no_op(controller):
    app = tui.ThighpadsApp(controller)

    async def go() -> None:
        async with app.run_test() as pilot:
            app.probe_update()
            await app.workers.wait_for_complete()
            await pilot.pause()

    asyncio.run(go())

    assert isinstance(controller.state.screen, HomeScreen)
    assert controller.state.update is None
