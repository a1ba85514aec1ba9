"""Tests for the project event bus."""

import asyncio
import json
from uuid import uuid4

import pytest

from viralyzer.services.event_manager import (
    RENDER_COMPLETED,
    RENDER_STARTED,
    ProjectEvent,
    ProjectEventManager,
)


class TestProjectEvent:
    def test_to_sse_format(self):
        event = ProjectEvent(event_type=RENDER_STARTED, project_id="p1", timestamp="t0", data={"job_id": "j1"})

        message = event.to_sse()

        assert message.startswith("event: render_started\ndata: ")
        assert message.endswith("\n\n")
        payload = json.loads(message.split("data: ", 1)[1])
        assert payload == {"type": "render_started", "project_id": "p1", "timestamp": "t0", "data": {"job_id": "j1"}}

    def test_to_sse_without_data(self):
        payload = json.loads(ProjectEvent("status_changed", "p1", "t0").to_sse().split("data: ", 1)[1])

        assert "data" not in payload


class TestProjectEventManager:
    @pytest.fixture
    def manager(self):
        return ProjectEventManager(max_queue_size=2)

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self, manager):
        assert await manager.publish(uuid4(), RENDER_STARTED) == 0

    @pytest.mark.asyncio
    async def test_subscriber_receives_events_for_its_project(self, manager):
        project_id = uuid4()
        stream = manager.subscribe(project_id)
        next_event = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        assert manager.get_subscriber_count(project_id) == 1
        await manager.publish(uuid4(), RENDER_STARTED)
        assert await manager.publish(project_id, RENDER_COMPLETED, data={"url": "u"}) == 1

        event = await asyncio.wait_for(next_event, timeout=1)
        assert event.event_type == RENDER_COMPLETED
        assert event.project_id == str(project_id)
        assert event.data == {"url": "u"}

        await stream.aclose()
        assert manager.get_subscriber_count(project_id) == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self, manager):
        project_id = uuid4()
        stream = manager.subscribe(project_id)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        results = [await manager.publish(project_id, RENDER_STARTED) for _ in range(3)]

        assert results == [1, 1, 0]
        await asyncio.wait_for(pending, timeout=1)
        await stream.aclose()
