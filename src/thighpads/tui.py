"""Textual host for the controller.

Every key goes to Controller.handle(); the returned effect is executed here
and the whole screen is repainted from controller state. The update probe
runs in a thread worker and reports back with an UpdateFound message.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from textual import events, work
from textual.app import App, ComposeResult
from textual.message import Message
from textual.widgets import Static

from thighpads.controller import CopyToClipboard, Key, Quit, Resize, UpdateAvailable
from thighpads.render import render
from thighpads.update import UpdateError

if TYPE_CHECKING:
    from thighpads.controller import Controller, Effect
    from thighpads.update import UpdateChecker

logger = logging.getLogger("thighpads.tui")

# How often the running app asks the checker; the checker itself only goes
# to the network once its weekly interval has passed.
UPDATE_POLL_SECONDS = 6 * 60 * 60


class UpdateFound(Message):
    """Posted from the update worker when a newer release exists."""

    def __init__(self, version: str, url: str) -> None:
        super().__init__()
        self.version = version
        self.url = url


class ThighpadsApp(App):
    CSS = """
    #screen {
        padding: 1 2;
    }
    """
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        controller: Controller,
        *,
        checker: UpdateChecker | None = None,
        auto_check_update: bool = False,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.checker = checker
        self.auto_check_update = auto_check_update

    def compose(self) -> ComposeResult:
        yield Static(id="screen")

    def on_mount(self) -> None:
        self.title = "ThighPads"
        self.controller.handle(Resize(self.size.width, self.size.height))
        self.repaint()
        if self.auto_check_update and self.checker is not None:
            self.probe_update()
            self.set_interval(UPDATE_POLL_SECONDS, self._poll_update)

    def repaint(self) -> None:
        state = self.controller.state
        self.query_one("#screen", Static).update(render(state, self.controller.cfg.ui.theme))

    def apply(self, effect: Effect) -> None:
        if isinstance(effect, Quit):
            self.exit()
        elif isinstance(effect, CopyToClipboard):
            self.copy_to_clipboard(effect.text)

    # -- events --------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        effect = self.controller.handle(Key(event.key, event.character))
        self.apply(effect)
        if not isinstance(effect, Quit):
            self.repaint()

    def on_resize(self, event: events.Resize) -> None:
        self.controller.handle(Resize(event.size.width, event.size.height))
        self.repaint()

    def on_update_found(self, message: UpdateFound) -> None:
        self.controller.handle(UpdateAvailable(message.version, message.url))
        self.repaint()

    # -- background ----------------------------------------------------------

    def _poll_update(self) -> None:
        self.probe_update()

    @work(thread=True, exclusive=True)
    def probe_update(self) -> None:
        if self.checker is None:
            return
        try:
            info = self.checker.check_for_update()
        except UpdateError as exc:
            logger.warning("update check failed: %s", exc)
            return
        if info.available:
            self.post_message(UpdateFound(info.version, info.url))
