import subprocess
import threading
import time

import pytest

from memtui_core import (
    CAS_CONFLICT_MESSAGE,
    CancelToken,
    CASConflictError,
    CASItem,
    ConnectError,
    EnumerationTimeout,
    KeyRecord,
    NotFoundError,
    ServerCapability,
    ServerStats,
)

from memtui_cli import clipboard
from memtui_cli import commands as cmds
from memtui_cli.messages import (
    BatchDeleteResultMsg,
    ClipboardErrMsg,
    ClipboardOKMsg,
    ConnectedMsg,
    CreateErrorMsg,
    DeleteErrorMsg,
    ErrorMsg,
    KeyCreatedMsg,
    KeyDeletedMsg,
    KeysLoadedMsg,
    SaveErrorMsg,
    StatsErrorMsg,
    StatsLoadedMsg,
    StatusMsg,
    ValueErrorMsg,
    ValueLoadedMsg,
    ValueSavedMsg,
)
from memtui_cli.scheduler import Command, Scheduler


def run(cmd):
    return cmd.run(CancelToken(cmd.timeout))


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# ---------- scheduler ----------
@pytest.fixture()
def scheduler():
    s = Scheduler(max_workers=4)
    yield s
    s.shutdown()


def test_scheduler_delivers_results_and_notifies(scheduler):
    notified = threading.Event()
    scheduler.notify = notified.set
    scheduler.submit(Command("ping", lambda token: StatusMsg("pong")))
    assert scheduler.get(timeout=5) == StatusMsg("pong")
    assert notified.wait(5)
    assert wait_for(lambda: scheduler.pending == 0)
    assert scheduler.drain() == []


def test_scheduler_reports_crashes_as_status(scheduler):
    def boom(token):
        raise RuntimeError("kaput")

    scheduler.submit(Command("load_stats", boom))
    assert scheduler.get(timeout=5) == StatusMsg("load_stats failed: kaput", is_error=True)


def test_exclusive_submission_cancels_and_drops_stale_result(scheduler):
    release = threading.Event()
    seen_tokens = []

    def slow(token):
        seen_tokens.append(token)
        release.wait(5)
        return StatusMsg("first")

    first = scheduler.submit(Command("load_value", slow, exclusive=True))
    assert wait_for(lambda: seen_tokens)
    scheduler.submit(Command("load_value", lambda token: StatusMsg("second"), exclusive=True))
    assert first.cancelled
    assert scheduler.get(timeout=5) == StatusMsg("second")

    release.set()
    assert wait_for(lambda: scheduler.pending == 0)
    assert scheduler.drain() == []


def test_non_exclusive_commands_all_deliver(scheduler):
    for i in range(3):
        scheduler.submit(Command("create_key", lambda token, i=i: StatusMsg(str(i))))
    got = []
    while len(got) < 3:
        msg = scheduler.get(timeout=5)
        assert msg is not None
        got.append(msg.text)
    assert sorted(got) == ["0", "1", "2"]


def test_cancel_by_kind_and_command_timeout(scheduler):
    started = threading.Event()
    tokens = []

    def waits(token):
        tokens.append(token)
        started.set()
        token.wait(5)
        return StatusMsg("cancelled" if token.cancelled else "finished")

    scheduler.submit(Command("load_keys", waits, exclusive=True))
    assert started.wait(5)
    scheduler.cancel("load_keys")
    assert tokens[0].cancelled
    # cancel() forgets the kind, so the cancelled result is considered stale
    assert wait_for(lambda: scheduler.pending == 0)
    assert scheduler.drain() == []

    scheduler.submit(Command("slow", waits, timeout=0.05))
    assert scheduler.get(timeout=5) == StatusMsg("cancelled")


def test_submit_after_shutdown_is_cancelled():
    s = Scheduler()
    s.shutdown()
    token = s.submit(Command("x", lambda token: StatusMsg("never")))
    assert token.cancelled
    assert s.get(timeout=0.1) is None


# ---------- command thunks ----------
class FakeClient:
    def __init__(self):
        self.items = {}
        self.calls = []
        self.fail_with = None
        self.metadump_result = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def get_with_cas(self, key, token=None, record=None):
        self._maybe_fail()
        if key not in self.items:
            raise NotFoundError(key)
        value, flags, cas = self.items[key]
        return CASItem(key, value, flags, 0, cas)

    def set(self, key, value, flags=0, ttl=0, token=None):
        self._maybe_fail()
        self.calls.append(("set", key, value, flags, ttl))
        self.items[key] = (value, flags, 1)

    def compare_and_swap(self, item, token=None):
        self._maybe_fail()
        self.calls.append(("cas", item.key, item.value, item.flags, item.expiration, item.cas_token))
        self.items[item.key] = (item.value, item.flags, item.cas_token + 1)

    def delete(self, key, token=None):
        self._maybe_fail()
        if key not in self.items:
            raise NotFoundError(key)
        del self.items[key]

    def server_stats(self, token=None):
        self._maybe_fail()
        return ServerStats.from_map({"version": "1.6.21"})

    def metadump(self, token=None, timeout=30.0):
        self._maybe_fail()
        return list(self.metadump_result)


def test_connect_command():
    ok = cmds.connect("h:1", 1.0, probe=lambda addr, timeout, token: ServerCapability("1.6.21", True))
    assert run(ok) == ConnectedMsg("1.6.21", True)

    def refuse(addr, timeout, token):
        raise ConnectError("failed to connect to h:1: refused")

    assert run(cmds.connect("h:1", 1.0, probe=refuse)) == ErrorMsg("failed to connect to h:1: refused")


def test_load_keys_command_variants():
    client = FakeClient()
    client.metadump_result = [KeyRecord("a")]
    cmd = cmds.load_keys(client, True, timeout=5)
    assert cmd.exclusive and cmd.timeout == 5
    assert run(cmd) == KeysLoadedMsg([KeyRecord("a")])

    unsupported = run(cmds.load_keys(client, False))
    assert unsupported.keys == []
    assert unsupported.warning == cmds.NO_METADUMP_WARNING

    client.fail_with = EnumerationTimeout([KeyRecord("p")])
    partial = run(cmds.load_keys(client, True))
    assert partial.keys == [KeyRecord("p")]
    assert "timed out" in partial.warning

    client.fail_with = ConnectError("connection closed by server")
    assert run(cmds.load_keys(client, True)) == ErrorMsg("connection closed by server")
    assert run(cmds.load_keys(None, True)) == ErrorMsg("client not connected")


def test_load_value_command():
    client = FakeClient()
    client.items["k"] = (b"v", 3, 9)
    msg = run(cmds.load_value(client, KeyRecord("k")))
    assert msg == ValueLoadedMsg(CASItem("k", b"v", 3, 0, 9))
    assert run(cmds.load_value(client, KeyRecord("gone"))) == ValueErrorMsg("gone", "Key not found: gone")
    client.fail_with = ConnectError("down")
    assert run(cmds.load_value(client, KeyRecord("k"))).error == "failed to get value: down"


def test_save_value_uses_cas_with_token_and_keeps_flags_and_ttl():
    client = FakeClient()
    captured = CASItem("k", b"old", flags=42, cas_token=5)
    record = KeyRecord("k", expiration_abs_unix=int(time.time()) + 600)
    assert run(cmds.save_value(client, "k", b"new", 5, captured, record)) == ValueSavedMsg("k")
    op, key, value, flags, ttl, token = client.calls[-1]
    assert (op, key, value, flags, token) == ("cas", "k", b"new", 42, 5)
    assert 590 <= ttl <= 600


def test_save_value_without_token_uses_set():
    client = FakeClient()
    assert run(cmds.save_value(client, "k", b"v", None, None, None)) == ValueSavedMsg("k")
    assert client.calls[-1] == ("set", "k", b"v", 0, 0)


def test_save_value_conflict_and_failure():
    client = FakeClient()
    client.fail_with = CASConflictError("k")
    msg = run(cmds.save_value(client, "k", b"v", 1, None, None))
    assert msg == SaveErrorMsg("k", CAS_CONFLICT_MESSAGE, conflict=True)

    client.fail_with = ConnectError("down")
    msg = run(cmds.save_value(client, "k", b"v", 1, None, None))
    assert not msg.conflict
    assert msg.error == "failed to save value: down"
    assert run(cmds.save_value(None, "k", b"v", 1, None, None)).error == "client not connected"


def test_create_delete_and_batch_commands():
    client = FakeClient()
    assert run(cmds.create_key(client, "n", b"1")) == KeyCreatedMsg("n")
    assert client.calls[-1] == ("set", "n", b"1", 0, 0)
    assert run(cmds.delete_key(client, "n")) == KeyDeletedMsg("n")
    missing = run(cmds.delete_key(client, "n"))
    assert isinstance(missing, DeleteErrorMsg)
    assert missing.error == "failed to delete key: key not found: n"

    client.items.update({"a": (b"", 0, 1), "b": (b"", 0, 1)})
    batch = run(cmds.delete_keys(client, ["a", "zz", "b"]))
    assert isinstance(batch, BatchDeleteResultMsg)
    assert batch.result.deleted == ["a", "b"]
    assert batch.result.failed == ["zz"]

    client.fail_with = ConnectError("down")
    assert isinstance(run(cmds.create_key(client, "n", b"1")), CreateErrorMsg)


def test_stats_and_clipboard_commands():
    client = FakeClient()
    msg = run(cmds.load_stats(client))
    assert isinstance(msg, StatsLoadedMsg)
    assert msg.stats.version == "1.6.21"
    client.fail_with = ConnectError("down")
    assert run(cmds.load_stats(client)) == StatsErrorMsg("failed to load stats: down")

    copied = []
    assert run(cmds.copy_to_clipboard("hi", lambda text: copied.append(text) or "test")) == ClipboardOKMsg()
    assert copied == ["hi"]

    def broken(text):
        raise clipboard.ClipboardError("no clipboard helper found")

    assert run(cmds.copy_to_clipboard("hi", broken)) == ClipboardErrMsg("no clipboard helper found")


# ---------- clipboard ----------
class FakeTTY:
    def __init__(self, tty=True):
        self.tty = tty
        self.written = ""

    def isatty(self):
        return self.tty

    def write(self, s):
        self.written += s

    def flush(self):
        pass


def test_osc52_escape():
    assert clipboard.osc52("hi") == "\033]52;c;aGk=\a"


def test_copy_prefers_helper(monkeypatch):
    monkeypatch.setattr(clipboard.shutil, "which", lambda name: f"/usr/bin/{name}" if name == "xclip" else None)
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs["input"]))
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(clipboard.subprocess, "run", fake_run)
    assert clipboard.copy("value") == "/usr/bin/xclip"
    assert calls == [(["/usr/bin/xclip", "-selection", "clipboard"], "value")]


def test_copy_falls_back_to_osc52_on_tty(monkeypatch):
    monkeypatch.setattr(clipboard.shutil, "which", lambda name: None)
    tty = FakeTTY()
    assert clipboard.copy("hi", stream=tty) == "OSC52"
    assert tty.written == "\033]52;c;aGk=\a"


def test_copy_raises_without_helper_or_tty(monkeypatch):
    monkeypatch.setattr(clipboard.shutil, "which", lambda name: "/bin/" + name if name == "pbcopy" else None)

    def failing_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(clipboard.subprocess, "run", failing_run)
    with pytest.raises(clipboard.ClipboardError, match="pbcopy"):
        clipboard.copy("hi", stream=FakeTTY(tty=False))
