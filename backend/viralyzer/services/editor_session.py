"""Editor session lifecycle.

An ``EditorSession`` owns everything one mounted editor acquires: the
document model, the canvas and the playback controls. Booting is a chain
of awaits and the view can go away at any of them, so every step is
followed by a ``disposed`` check. Handles are released in reverse order of
acquisition, and at most once.

Nothing in the HTTP service mounts an editor. This module is the lifecycle
contract for editor hosts: a desktop or headless preview shell implements
``EditorHost`` and drives one ``EditorView`` per open project. It persists
edits through the same ``DraftCache`` and ``sanitize`` as the API.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from viralyzer.schemas.timeline import EditDocument
from viralyzer.services.draft_cache import DraftCache
from viralyzer.services.sanitizer import sanitize

logger = logging.getLogger(__name__)

ChangeListener = Callable[[dict[str, Any]], None]
SelectionListener = Callable[[Any], None]


class Releasable(Protocol):
    def release(self) -> None: ...


class EditorHost(Protocol):
    """Rendering surface the session drives."""

    async def wait_for_layout(self) -> tuple[int, int]:
        """Resolve once the host has a non-zero (width, height)."""
        ...

    async def create_model(self) -> Releasable: ...

    async def attach_canvas(self, model: Releasable) -> Releasable: ...

    async def load_document(self, model: Releasable, document: dict[str, Any]) -> None: ...

    async def attach_controls(self, model: Releasable) -> Releasable: ...


class EditorBootError(RuntimeError):
    """Raised when boot() is called while another boot is in flight or after dispose."""


class EditorSession:
    def __init__(
        self,
        project_id: Any,
        host: EditorHost,
        cache: DraftCache | None = None,
        server_document: dict[str, Any] | None = None,
    ) -> None:
        self.project_id = str(project_id)
        self.host = host
        self.cache = cache
        self.server_document = server_document

        self.document: dict[str, Any] | None = None
        self.model: Releasable | None = None
        self.booted = False
        self.disposed = False

        self._handles: list[Releasable] = []
        self._booting = False
        self._change_listeners: list[ChangeListener] = []
        self._selection_listeners: list[SelectionListener] = []

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        self._change_listeners.append(listener)
        return lambda: self._remove(self._change_listeners, listener)

    def on_selection(self, listener: SelectionListener) -> Callable[[], None]:
        self._selection_listeners.append(listener)
        return lambda: self._remove(self._selection_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _acquire(self, handle: Releasable) -> bool:
        """Track a handle; release it at once and report False if disposed meanwhile."""
        if self.disposed:
            self._release(handle)
            return False
        self._handles.append(handle)
        return True

    def _release(self, handle: Releasable) -> None:
        try:
            handle.release()
        except Exception:
            logger.exception(f"Failed to release editor handle for project {self.project_id}")

    async def boot(self) -> bool:
        """Run the boot sequence. Returns False if the session was disposed midway."""
        if self.disposed:
            raise EditorBootError(f"Editor session for project {self.project_id} is disposed")
        if self._booting or self.booted:
            raise EditorBootError(f"Editor session for project {self.project_id} is already booting")
        self._booting = True
        try:
            width, height = await self.host.wait_for_layout()
            if self.disposed:
                return False

            model = await self.host.create_model()
            if not self._acquire(model):
                return False
            self.model = model

            canvas = await self.host.attach_canvas(model)
            if not self._acquire(canvas):
                return False

            document = self._initial_document(width, height)
            await self.host.load_document(model, document)
            if self.disposed:
                return False
            self.document = document

            controls = await self.host.attach_controls(model)
            if not self._acquire(controls):
                return False

            self.booted = True
            logger.info(f"Editor booted for project {self.project_id} ({width}x{height})")
            return True
        finally:
            self._booting = False

    def _initial_document(self, width: int, height: int) -> dict[str, Any]:
        if self.server_document:
            return sanitize(self.server_document)
        if self.cache is not None:
            cached = self.cache.load(self.project_id)
            if cached is not None:
                logger.info(f"Restored draft for project {self.project_id} from cache")
                return sanitize(cached)
        return EditDocument.empty(width, height).to_wire()

    def apply_edit(self, document: Any) -> dict[str, Any]:
        """Replace the in-memory document and emit a change event."""
        if self.disposed:
            raise EditorBootError(f"Editor session for project {self.project_id} is disposed")
        self.document = sanitize(document)
        self._emit_change(self.document)
        return self.document

    def _emit_change(self, document: dict[str, Any]) -> None:
        if self.cache is not None:
            self.cache.save(self.project_id, document)
        for listener in list(self._change_listeners):
            listener(document)

    def select(self, clip_ref: Any) -> None:
        if self.disposed:
            return
        for listener in list(self._selection_listeners):
            listener(clip_ref)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        while self._handles:
            self._release(self._handles.pop())
        self.model = None
        self._change_listeners.clear()
        self._selection_listeners.clear()
        logger.debug(f"Editor session disposed for project {self.project_id}")


class EditorView:
    """Mount point holding at most one live session."""

    def __init__(self, host: EditorHost, cache: DraftCache | None = None) -> None:
        self.host = host
        self.cache = cache
        self.session: EditorSession | None = None
        self._lock = asyncio.Lock()

    async def mount(self, project_id: Any, server_document: dict[str, Any] | None = None) -> EditorSession:
        previous = self.session
        if previous is not None:
            previous.dispose()
        session = EditorSession(project_id, self.host, self.cache, server_document)
        self.session = session
        async with self._lock:
            await session.boot()
        return session

    def unmount(self) -> None:
        if self.session is not None:
            self.session.dispose()
            self.session = None
