"""
Tests for alert expiry, periodic tasks and the task board fallback
"""
import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from kyc_onboarding.database import AsyncSessionLocal
from kyc_onboarding.models.application import SubmittedApplication
from kyc_onboarding.schemas.onboarding import AlertType
from kyc_onboarding.services.alerts import AlertBoard
from kyc_onboarding.services.application_store import ApplicationStore
from kyc_onboarding.services.scheduler import PeriodicTask
from kyc_onboarding.services.task_board import TaskBoard
from kyc_onboarding.services.tasklist_client import TasklistClient


class TestAlertBoard:
    """Self-expiring alerts."""

    def test_alert_expires_after_ttl(self):
        board = AlertBoard(ttl_seconds=5)
        start = datetime(2024, 1, 1, 12, 0, 0)
        alert = board.add("Saved", AlertType.SUCCESS, now=start)

        assert alert.expires_at == start + timedelta(seconds=5)
        assert board.active(start + timedelta(seconds=4)) == [alert]
        assert board.active(start + timedelta(seconds=5)) == []

    def test_alerts_keep_insertion_order(self):
        board = AlertBoard(ttl_seconds=5)
        first = board.add("first")
        second = board.add("second", AlertType.WARNING)
        assert [a.id for a in board.active()] == [first.id, second.id]

    def test_dismiss(self):
        board = AlertBoard(ttl_seconds=5)
        alert = board.add("Saved")
        assert board.dismiss(alert.id)
        assert not board.dismiss(alert.id)
        assert len(board) == 0

    def test_sweep_counts_removed(self):
        board = AlertBoard(ttl_seconds=5)
        start = datetime(2024, 1, 1, 12, 0, 0)
        board.add("old", now=start)
        board.add("new", now=start + timedelta(seconds=4))

        assert board.sweep(start + timedelta(seconds=6)) == 1
        assert len(board) == 1


class TestPeriodicTask:
    """Background loops."""

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("tick", tick, interval=0.01, run_immediately=True)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert not task.running
        assert len(calls) >= 2
        count = len(calls)
        await asyncio.sleep(0.03)
        assert len(calls) == count

    @pytest.mark.asyncio
    async def test_failures_do_not_end_the_loop(self):
        async def broken():
            raise RuntimeError("backend down")

        task = PeriodicTask("broken", broken, interval=0.01, run_immediately=True)
        task.start()
        await asyncio.sleep(0.1)

        assert task.running
        assert task.runs >= 2
        await task.stop()

    @pytest.mark.asyncio
    async def test_waits_one_interval_by_default(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("slow", tick, interval=10)
        task.start()
        await asyncio.sleep(0.02)
        await task.stop()

        assert calls == []

    @pytest.mark.asyncio
    async def test_stop_before_start_is_harmless(self):
        async def tick():
            pass

        await PeriodicTask("idle", tick, interval=1).stop()


class TestTaskBoard:
    """Open tasks from the backend, or from the local cache when it fails."""

    @pytest.mark.asyncio
    async def test_refresh_from_backend(self, mock_backend):
        handler = mock_backend({
            ("POST", "/tasklist/tasks/search"): httpx.Response(200, json=[
                {"id": "9", "name": "Manual Review", "variables": {"fullName": {"value": '"Priya Sharma"'}}}
            ])
        })
        board = TaskBoard(client=TasklistClient(base_url="http://tasks.test", transport=handler.transport))

        snapshot = await board.refresh()

        assert snapshot.source == "tasklist"
        assert snapshot.error is None
        assert [t.customer_name for t in snapshot.tasks] == ["Priya Sharma"]
        assert snapshot.refreshed_at is not None

    @pytest.mark.asyncio
    async def test_falls_back_to_cache(self, mock_backend):
        async with AsyncSessionLocal() as db:
            await ApplicationStore(db).save(SubmittedApplication(
                id="2251799813685249",
                customer={"fullName": "Ramesh Kumar", "email": "r@example.com", "mobile": "9876543210"},
                status="pending_review",
                workflow_status="manual_review",
                submission_timestamp="2024-05-14T10:20:30.000Z",
            ))
            await ApplicationStore(db).save(SubmittedApplication(
                id="17", status="approved", workflow_status="account_setup",
            ))

        handler = mock_backend({
            ("POST", "/tasklist/tasks/search"): httpx.Response(503, text="maintenance")
        })
        board = TaskBoard(client=TasklistClient(base_url="http://tasks.test", transport=handler.transport))

        snapshot = await board.refresh()

        assert snapshot.source == "cache"
        assert snapshot.error == "The task-list backend is currently unavailable. Please try again later."
        assert len(snapshot.tasks) == 1
        task = snapshot.tasks[0]
        assert task.id == "2251799813685249"
        assert task.task_name == "Manual Review"
        assert task.customer_name == "Ramesh Kumar"
        assert task.submission_date == "2024-05-14"
        assert task.completed_steps == "1/4"
        assert task.source == "cache"

    def test_empty_snapshot(self):
        snapshot = TaskBoard(client=TasklistClient(base_url="http://tasks.test")).snapshot()
        assert snapshot.tasks == []
        assert snapshot.source == "empty"
        assert snapshot.refreshed_at is None
