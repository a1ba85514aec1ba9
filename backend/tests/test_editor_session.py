"""Tests for the editor session lifecycle.

Features:
- Boot order and document source precedence
- Disposal at every await boundary
- Reverse-order, at-most-once handle release
- Change and selection notifications
"""

import asyncio
from typing import Any
from uuid import uuid4

import pytest

from viralyzer.services.editor_session import EditorBootError, EditorSession, EditorView


class Handle:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log
        self.released = 0

    def release(self) -> None:
        self.released += 1
        self.log.append(f"release:{self.name}")


class FakeHost:
    """Host whose steps can be paused to simulate a view going away mid-boot."""

    def __init__(self, size: tuple[int, int] = (540, 960)) -> None:
        self.size = size
        self.log: list[str] = []
        self.handles: dict[str, Handle] = {}
        self.loaded: dict[str, Any] | None = None
        self.gates: dict[str, asyncio.Event] = {}

    def pause(self, step: str) -> asyncio.Event:
        self.gates[step] = asyncio.Event()
        return self.gates[step]

    async def _step(self, step: str) -> None:
        self.log.append(step)
        gate = self.gates.get(step)
        if gate is not None:
            await gate.wait()

    def _handle(self, name: str) -> Handle:
        handle = Handle(name, self.log)
        self.handles[name] = handle
        return handle

    async def wait_for_layout(self) -> tuple[int, int]:
        await self._step("layout")
        return self.size

    async def create_model(self) -> Handle:
        await self._step("model")
        return self._handle("model")

    async def attach_canvas(self, model: Handle) -> Handle:
        await self._step("canvas")
        return self._handle("canvas")

    async def load_document(self, model: Handle, document: dict[str, Any]) -> None:
        await self._step("load")
        self.loaded = document

    async def attach_controls(self, model: Handle) -> Handle:
        await self._step("controls")
        return self._handle("controls")


@pytest.fixture
def host():
    return FakeHost()


class TestBoot:
    @pytest.mark.asyncio
    async def test_boot_order(self, host):
        session = EditorSession(uuid4(), host)

        assert await session.boot()

        assert host.log == ["layout", "model", "canvas", "load", "controls"]
        assert session.booted

    @pytest.mark.asyncio
    async def test_server_document_wins_over_cache(self, host, draft_cache):
        project_id = uuid4()
        draft_cache.save(project_id, {"timeline": {"background": "#111111", "tracks": []}})
        server = {"timeline": {"background": "#222222", "tracks": [{"clips": [{"asset": {"type": "title", "text": "x"}}]}]}}

        session = EditorSession(project_id, host, draft_cache, server_document=server)
        await session.boot()

        assert host.loaded["timeline"]["background"] == "#222222"
        assert host.loaded["timeline"]["tracks"][0]["clips"][0]["asset"]["type"] == "text"

    @pytest.mark.asyncio
    async def test_cache_used_without_server_document(self, host, draft_cache):
        project_id = uuid4()
        draft_cache.save(project_id, {"timeline": {"background": "#111111", "tracks": []}})

        session = EditorSession(project_id, host, draft_cache)
        await session.boot()

        assert session.document == {"timeline": {"background": "#111111", "tracks": []}}

    @pytest.mark.asyncio
    async def test_empty_document_sized_from_layout(self, host):
        session = EditorSession(uuid4(), host)

        await session.boot()

        assert session.document["output"]["size"] == {"width": 540, "height": 960}
        assert session.document["timeline"]["tracks"] == [{"clips": []}]

    @pytest.mark.asyncio
    async def test_concurrent_boot_rejected(self, host):
        gate = host.pause("layout")
        session = EditorSession(uuid4(), host)
        first = asyncio.ensure_future(session.boot())
        await asyncio.sleep(0)

        with pytest.raises(EditorBootError):
            await session.boot()

        gate.set()
        assert await first

    @pytest.mark.asyncio
    async def test_boot_after_dispose_rejected(self, host):
        session = EditorSession(uuid4(), host)
        session.dispose()

        with pytest.raises(EditorBootError):
            await session.boot()


class TestDisposeDuringBoot:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "step,acquired",
        [
            ("layout", []),
            ("model", ["model"]),
            ("canvas", ["model", "canvas"]),
            ("load", ["model", "canvas"]),
            ("controls", ["model", "canvas", "controls"]),
        ],
    )
    async def test_dispose_at_each_step_releases_everything(self, host, step, acquired):
        gate = host.pause(step)
        session = EditorSession(uuid4(), host)
        boot = asyncio.ensure_future(session.boot())
        await asyncio.sleep(0)

        session.dispose()
        gate.set()

        assert await boot is False
        assert not session.booted
        assert set(host.handles) == set(acquired)
        assert all(handle.released == 1 for handle in host.handles.values())

    @pytest.mark.asyncio
    async def test_no_step_runs_after_dispose(self, host):
        gate = host.pause("canvas")
        session = EditorSession(uuid4(), host)
        boot = asyncio.ensure_future(session.boot())
        await asyncio.sleep(0)

        session.dispose()
        gate.set()
        await boot

        assert "load" not in host.log
        assert "controls" not in host.log


class TestDispose:
    @pytest.mark.asyncio
    async def test_releases_in_reverse_order(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()

        session.dispose()

        releases = [entry for entry in host.log if entry.startswith("release:")]
        assert releases == ["release:controls", "release:canvas", "release:model"]

    @pytest.mark.asyncio
    async def test_dispose_is_idempotent(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()

        session.dispose()
        session.dispose()

        assert all(handle.released == 1 for handle in host.handles.values())

    @pytest.mark.asyncio
    async def test_release_failure_does_not_stop_disposal(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()

        def broken() -> None:
            raise RuntimeError("canvas already gone")

        host.handles["canvas"].release = broken

        session.dispose()

        assert host.handles["model"].released == 1
        assert host.handles["controls"].released == 1


class TestEditsAndSelection:
    @pytest.mark.asyncio
    async def test_apply_edit_sanitizes_persists_and_notifies(self, host, draft_cache):
        project_id = uuid4()
        session = EditorSession(project_id, host, draft_cache)
        await session.boot()
        changes: list[dict] = []
        session.on_change(changes.append)

        document = session.apply_edit({"timeline": {"tracks": [{"clips": [{"asset": {"type": "title", "text": "a"}, "length": -1}]}]}})

        assert document["timeline"]["tracks"][0]["clips"][0] == {"asset": {"type": "text", "text": "a"}, "start": 0, "length": 5}
        assert changes == [document]
        assert draft_cache.load(project_id) == document

    @pytest.mark.asyncio
    async def test_unsubscribe(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()
        changes: list[dict] = []
        unsubscribe = session.on_change(changes.append)

        unsubscribe()
        session.apply_edit({})

        assert changes == []

    @pytest.mark.asyncio
    async def test_select_notifies_listeners(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()
        selected: list[Any] = []
        session.on_selection(selected.append)

        session.select({"track": 0, "clip": 1})

        assert selected == [{"track": 0, "clip": 1}]

    @pytest.mark.asyncio
    async def test_disposed_session_rejects_edits_and_ignores_selection(self, host):
        session = EditorSession(uuid4(), host)
        await session.boot()
        selected: list[Any] = []
        session.on_selection(selected.append)
        session.dispose()

        session.select("clip")
        with pytest.raises(EditorBootError):
            session.apply_edit({})

        assert selected == []


class TestEditorView:
    @pytest.mark.asyncio
    async def test_mount_tears_down_previous_session(self, host):
        view = EditorView(host)
        first = await view.mount(uuid4())
        first_handles = dict(host.handles)

        second = await view.mount(uuid4())

        assert first.disposed
        assert all(handle.released == 1 for handle in first_handles.values())
        assert view.session is second
        assert second.booted

    @pytest.mark.asyncio
    async def test_remount_during_boot(self):
        host = FakeHost()
        gate = host.pause("canvas")
        view = EditorView(host)
        first = asyncio.ensure_future(view.mount(uuid4()))
        await asyncio.sleep(0)

        del host.gates["canvas"]
        second = asyncio.ensure_future(view.mount(uuid4()))
        await asyncio.sleep(0)
        gate.set()

        first_session = await first
        second_session = await second
        assert first_session.disposed and not first_session.booted
        assert second_session.booted
        assert view.session is second_session

    @pytest.mark.asyncio
    async def test_unmount(self, host):
        view = EditorView(host)
        session = await view.mount(uuid4())

        view.unmount()

        assert session.disposed
        assert view.session is None
