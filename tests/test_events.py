"""
Tests for event lifecycle and the periodic worker tasks
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from ddride.errors import ValidationError
from ddride.services.event_service import event_service
from ddride.worker import tasks


class TestEventService:

    def test_activate_due_events(self, session, make_event):
        now = datetime(2026, 11, 1, 20, 0)
        started = make_event(status="upcoming", date_time=now - timedelta(hours=1))
        later = make_event(status="upcoming", date_time=now + timedelta(hours=1))

        assert event_service.activate_due_events(session, now=now) == 1

        assert event_service.get_event(session, started.id).status == "active"
        assert event_service.get_event(session, later.id).status == "upcoming"

    def test_list_by_status(self, session, make_event):
        make_event(status="upcoming")
        done = make_event(status="completed")

        assert [e.id for e in event_service.list_events(session, "completed")] == [done.id]
        assert len(event_service.list_events(session)) == 2
        with pytest.raises(ValidationError):
            event_service.list_events(session, "postponed")

    def test_complete_event_is_idempotent(self, session, event):
        assert event_service.complete_event(session, event.id).status == "completed"
        assert event_service.complete_event(session, event.id).status == "completed"

    def test_blank_name_rejected(self, session, admin, group):
        with pytest.raises(ValidationError):
            event_service.create_event(session, admin.id, group.id, "  ", "Hall", datetime(2026, 11, 1))

    def test_event_needs_a_group(self, session, admin):
        with pytest.raises(ValidationError):
            event_service.create_event(session, admin.id, None, "Fall Social", "Hall", datetime(2026, 11, 1))

    def test_created_in_the_given_group(self, session, admin, group):
        event = event_service.create_event(session, admin.id, group.id, " Fall Social ", "Hall", datetime(2026, 11, 1))

        assert event.group_id == group.id
        assert event.name == "Fall Social"
        assert event.status == "upcoming"


class TestWorkerTasks:

    def test_reconcile_task_runs_pass(self, session):
        with patch.object(tasks, "get_db_session", return_value=session):
            result = tasks.reconcile_revoked_drivers.apply().get()

        assert result == {"revoked_drivers": 0, "repaired": [], "failed_user_ids": []}

    def test_activation_task(self, session, make_event):
        make_event(status="upcoming", date_time=datetime.utcnow() - timedelta(minutes=5))

        with patch.object(tasks, "get_db_session", return_value=session):
            result = tasks.activate_due_events.apply().get()

        assert result == {"activated": 1}
