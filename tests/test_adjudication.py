"""
Tests for driver requests, approvals, reinstatement and finalization
"""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from ddride.db.models import AdminAlert, Assignment, DriverRequest
from ddride.errors import ConflictError, NotFoundError, PartialCascadeError
from ddride.services.adjudication_service import adjudication_service
from ddride.services.trust_service import trust_service

FAILING = {"reaction_ms": 700.0, "phrase_sec": 3.0}


def assignment_status(session, user_id, event_id):
    row = session.query(Assignment).filter(
        Assignment.user_id == user_id,
        Assignment.event_id == event_id
    ).first()
    return row.status if row else None


def open_alerts(session, user_id):
    return session.query(AdminAlert).filter(
        AdminAlert.user_id == user_id,
        AdminAlert.resolved_at.is_(None)
    ).all()


class TestDriverRequests:

    def test_submit_creates_pending_request(self, session, event, make_driver):
        driver = make_driver()

        request = adjudication_service.submit_request(session, driver.id, event.id)

        assert request.status == "pending"
        assert [r.id for r in adjudication_service.list_pending_requests(session)] == [request.id]

    def test_duplicate_pending_request_conflicts(self, session, event, make_driver):
        driver = make_driver()
        adjudication_service.submit_request(session, driver.id, event.id)

        with pytest.raises(ConflictError):
            adjudication_service.submit_request(session, driver.id, event.id)
        assert session.query(DriverRequest).count() == 1

    def test_rejected_request_is_resubmitted_in_place(self, session, admin, event, make_driver):
        driver = make_driver()
        first = adjudication_service.submit_request(session, driver.id, event.id)
        first_created = first.created_at
        adjudication_service.reject_request(session, admin.id, first.id)

        again = adjudication_service.submit_request(session, driver.id, event.id)

        assert again.id == first.id
        assert again.status == "pending"
        assert again.created_at >= first_created

    def test_non_driver_cannot_request(self, session, event, make_user):
        user = make_user()
        with pytest.raises(ConflictError):
            adjudication_service.submit_request(session, user.id, event.id)

    def test_completed_event_takes_no_requests(self, session, make_event, make_driver):
        driver = make_driver()
        done = make_event(status="completed")
        with pytest.raises(ConflictError):
            adjudication_service.submit_request(session, driver.id, done.id)

    def test_unknown_event(self, session, make_driver):
        driver = make_driver()
        with pytest.raises(NotFoundError):
            adjudication_service.submit_request(session, driver.id, 9999)


class TestApproval:

    def test_approve_assigns_driver(self, session, admin, event, make_driver):
        driver = make_driver()
        request = adjudication_service.submit_request(session, driver.id, event.id)

        result = adjudication_service.approve_request(session, admin.id, request.id)

        assert result["request"].status == "approved"
        assert result["assignment"].status == "assigned"
        assert assignment_status(session, driver.id, event.id) == "assigned"

    def test_second_approval_conflicts(self, session, admin, event, make_driver):
        driver = make_driver()
        request = adjudication_service.submit_request(session, driver.id, event.id)
        adjudication_service.approve_request(session, admin.id, request.id)

        with pytest.raises(ConflictError):
            adjudication_service.approve_request(session, admin.id, request.id)
        with pytest.raises(ConflictError):
            adjudication_service.reject_request(session, admin.id, request.id)

    def test_approve_after_revocation_rejects_request(self, session, admin, event, make_driver):
        driver = make_driver()
        request = adjudication_service.submit_request(session, driver.id, event.id)
        # Revoke while the request-rejection step fails, leaving it pending
        with patch.object(trust_service, "_reject_requests", side_effect=OperationalError("UPDATE", {}, Exception("db down"))):
            with pytest.raises(PartialCascadeError):
                trust_service.revoke(session, driver.id)
        assert session.get(DriverRequest, request.id).status == "pending"

        with pytest.raises(ConflictError) as exc_info:
            adjudication_service.approve_request(session, admin.id, request.id)

        assert exc_info.value.details["status"] == "rejected"
        assert session.get(DriverRequest, request.id).status == "rejected"
        assert assignment_status(session, driver.id, event.id) is None


class TestReinstateAndFinalize:

    def test_reinstate_is_global_for_alerts_but_scoped_for_assignment(
        self, session, admin, make_event, make_driver, attempt
    ):
        e1, e2 = make_event(), make_event()
        driver = make_driver(e1, e2)
        attempt(driver, e1, **FAILING)
        attempt(driver, e2, **FAILING)
        assert len(open_alerts(session, driver.id)) == 2

        result = adjudication_service.reinstate(session, admin.id, driver.id, e1.id)

        assert result["trust_status"] == "active"
        assert result["alerts_resolved"] == 2
        assert result["assignment"].status == "assigned"
        assert assignment_status(session, driver.id, e1.id) == "assigned"
        assert assignment_status(session, driver.id, e2.id) == "revoked"
        assert open_alerts(session, driver.id) == []
        resolved = session.query(AdminAlert).filter(AdminAlert.user_id == driver.id).all()
        assert {a.resolved_by_admin_id for a in resolved} == {admin.id}

    def test_reinstated_driver_resubmits_for_other_event(
        self, session, admin, make_event, make_driver, attempt
    ):
        e1, e2 = make_event(), make_event()
        driver = make_driver(e1)
        request = adjudication_service.submit_request(session, driver.id, e2.id)
        attempt(driver, e1, **FAILING)
        assert session.get(DriverRequest, request.id).status == "rejected"

        adjudication_service.reinstate(session, admin.id, driver.id, e1.id)
        resubmitted = adjudication_service.submit_request(session, driver.id, e2.id)
        approved = adjudication_service.approve_request(session, admin.id, resubmitted.id)

        assert resubmitted.id == request.id
        assert approved["assignment"].status == "assigned"
        assert assignment_status(session, driver.id, e2.id) == "assigned"

    def test_finalize_keeps_revoked_and_closes_event_alerts(
        self, session, admin, make_event, make_driver, attempt
    ):
        e1, e2 = make_event(), make_event()
        driver = make_driver(e1, e2)
        attempt(driver, e1, **FAILING)
        attempt(driver, e2, **FAILING)

        result = adjudication_service.finalize(session, admin.id, driver.id, e1.id)

        assert result["trust_status"] == "revoked"
        assert result["alerts_resolved"] == 1
        remaining = open_alerts(session, driver.id)
        assert [a.event_id for a in remaining] == [e2.id]

    def test_reinstate_requires_revoked_driver(self, session, admin, event, make_driver):
        driver = make_driver(event)
        with pytest.raises(ConflictError):
            adjudication_service.reinstate(session, admin.id, driver.id, event.id)
        with pytest.raises(ConflictError):
            adjudication_service.finalize(session, admin.id, driver.id, event.id)

    def test_open_alerts_show_measured_against_baseline(self, session, event, make_driver, attempt):
        driver = make_driver(event, name="Dana")
        attempt(driver, event, reaction_ms=700.0, phrase_sec=6.5)

        alerts = adjudication_service.list_open_alerts(session)

        assert len(alerts) == 1
        assert alerts[0]["user_name"] == "Dana"
        assert alerts[0]["measured"] == {"reaction_latency_ms": 700.0, "phrase_duration_sec": 6.5}
        assert alerts[0]["baseline"] == {"reaction_latency_ms": 400.0, "phrase_duration_sec": 3.0}
