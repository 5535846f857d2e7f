import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.keys import Keys
from prompt_toolkit.output import DummyOutput
from prompt_toolkit.styles import Style

from memtui_core import ServerCapability

from memtui_cli.app import AppCore
from memtui_cli.config import Config
from memtui_cli.messages import KeyMsg, StatusMsg
from memtui_cli.scheduler import Scheduler
from memtui_cli.tui import THEMES, MemtuiTUI, build_style, key_msg_from_press


@pytest.mark.parametrize(
    "key, data, expected",
    [
        (Keys.ControlM, "\r", KeyMsg("enter")),
        (Keys.Escape, "\x1b", KeyMsg("esc")),
        (Keys.ControlI, "\t", KeyMsg("tab")),
        (Keys.BackTab, "", KeyMsg("shift+tab")),
        (Keys.ControlH, "\x7f", KeyMsg("backspace")),
        (Keys.Up, "", KeyMsg("up")),
        (Keys.PageDown, "", KeyMsg("pgdown")),
        (Keys.ControlP, "\x10", KeyMsg("ctrl+p")),
        (Keys.ControlS, "\x13", KeyMsg("ctrl+s")),
        ("a", "a", KeyMsg("a", "a")),
        ("?", "?", KeyMsg("?", "?")),
        ("é", "é", KeyMsg("é", "é")),
        (" ", " ", KeyMsg("space", " ")),
        (Keys.F5, "", None),
        (Keys.ControlG, "\x07", None),
    ],
)
def test_key_msg_from_press(key, data, expected):
    assert key_msg_from_press(key, data) == expected


def test_paste_normalises_line_endings():
    msg = key_msg_from_press(Keys.BracketedPaste, "one\r\ntwo\rthree")
    assert msg == KeyMsg("paste", "one\ntwo\nthree")
    assert not msg.is_rune


def test_themes_build_styles():
    for name in THEMES:
        assert isinstance(build_style(name), Style)
    assert "json.key" in THEMES["dark"]
    assert THEMES["dark"]["json.key"] != THEMES["light"]["json.key"]


@pytest.fixture()
def tui():
    core = AppCore("fake:11211", Config(), client_factory=lambda a, c: None,
                   probe=lambda a, t, tok: ServerCapability("1.6.21", True))
    with create_pipe_input() as inp, create_app_session(input=inp, output=DummyOutput()):
        front = MemtuiTUI(core, Scheduler(max_workers=1))
        yield front
        front.scheduler.shutdown()


def test_before_render_forwards_terminal_size(tui):
    tui._before_render(tui.app)
    size = tui.app.output.get_size()
    assert (tui.core.width, tui.core.height) == (size.columns, size.rows)


def test_dispatch_and_fragments(tui):
    assert tui._screen() == [("", "Connecting to fake:11211...")]
    assert tui._overlay() == []
    tui.dispatch(StatusMsg("hello", is_error=True))
    style, text = tui._status()[0]
    assert style == "class:status.error"
    assert "hello" in text
    tui.dispatch(KeyMsg("q", "q"))
    assert tui.core.quitting


def test_drain_feeds_scheduler_results_to_core(tui):
    tui.scheduler._queue.put(StatusMsg("from worker"))
    tui._drain()
    assert tui.core.status == "from worker"
