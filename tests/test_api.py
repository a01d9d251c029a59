"""
API tests through the FastAPI app
"""
import base64
from unittest.mock import MagicMock, patch

IMAGE_B64 = base64.b64encode(b"\xff\xd8\xff\xe0 not really a jpeg").decode()


def as_user(user):
    return {"X-User-Id": str(user.id)}


def verify(client, user, event_id, reaction_ms=430.0, phrase_sec=3.4):
    return client.post("/verification/attempts", headers=as_user(user), json={
        "event_id": event_id,
        "reaction_latency_ms": reaction_ms,
        "phrase_duration_sec": phrase_sec,
        "image_base64": IMAGE_B64,
        "content_type": "image/jpeg"
    })


class TestSystemAPI:

    def test_root_and_liveness(self, client):
        assert client.get("/").json()["service"] == "DDRide"
        assert client.get("/live").status_code == 200
        assert client.get("/ready").status_code == 200

    def test_health_reports_worker_queue_depth(self, client):
        fake_redis = MagicMock()
        fake_redis.llen.return_value = 7
        with patch("ddride.api.system.redis.from_url", return_value=fake_redis), \
                patch("ddride.api.system.SessionLocal"):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["redis"] == "healthy"
        assert response.json()["worker_queue_depth"] == 7
        fake_redis.llen.assert_called_once_with("default")

    def test_missing_identity(self, client):
        response = client.get("/drivers/me")
        assert response.status_code == 401
        assert response.json()["code"] == "DD_UNAUTHENTICATED"

    def test_unknown_event(self, client, make_user):
        response = client.get("/events/4242", headers=as_user(make_user()))
        assert response.status_code == 404
        assert response.json()["code"] == "DD_NOT_FOUND"
        assert response.json()["details"] == {"resource": "Event", "id": 4242}

    def test_admin_routes_need_admin(self, client, make_user):
        response = client.get("/admin/requests", headers=as_user(make_user()))
        assert response.status_code == 403
        assert response.json()["code"] == "DD_FORBIDDEN"


class TestDriverFlowAPI:

    def test_event_to_ride(self, client, admin, make_user):
        driver = make_user(name="Jordan", phone_number="555-0100")
        rider = make_user(name="Sam")

        response = client.post("/events", headers=as_user(admin), json={
            "name": "Fall Social",
            "location_text": "Main Hall",
            "date_time": "2026-11-01T19:00:00"
        })
        assert response.status_code == 200
        event_id = response.json()["id"]
        assert response.json()["status"] == "upcoming"

        assert client.get("/drivers/me", headers=as_user(driver)).json()["trust_status"] == "none"
        response = client.post("/drivers/opt-in", headers=as_user(driver), json={
            "car_make": "Subaru", "car_model": "Outback", "car_plate": "SAFE1"
        })
        assert response.json()["trust_status"] == "active"

        response = client.post("/verification/baseline", headers=as_user(driver), json={
            "reaction_latency_ms": 400,
            "phrase_duration_sec": 3.0,
            "image_base64": IMAGE_B64
        })
        assert response.status_code == 200

        request_id = client.post("/drivers/requests", headers=as_user(driver), json={"event_id": event_id}).json()["id"]
        pending = client.get("/admin/requests", headers=as_user(admin)).json()
        assert [r["id"] for r in pending] == [request_id]

        response = client.post(f"/admin/requests/{request_id}/approve", headers=as_user(admin))
        assert response.status_code == 200
        assert response.json()["assignment"]["status"] == "assigned"

        response = verify(client, driver, event_id)
        assert response.status_code == 200
        body = response.json()
        assert body["evaluation"]["passed"] is True
        assert body["evaluation"]["tolerance"]["reaction_latency_ms"] == 150
        attempt_id = body["attempt"]["id"]

        response = client.post("/sessions", headers=as_user(driver), json={"attempt_id": attempt_id})
        assert response.status_code == 200
        assert response.json()["is_active"] is True

        available = client.get("/drivers/available", params={"event_id": event_id}, headers=as_user(rider)).json()
        assert [d["name"] for d in available] == ["Jordan"]
        assert available[0]["phone_number"] == "555-0100"

        response = client.post("/rides", headers=as_user(rider), json={
            "driver_user_id": driver.id,
            "event_id": event_id,
            "pickup_text": "North lot",
            "pickup_latitude": 40.01,
            "pickup_longitude": -75.0
        })
        assert response.status_code == 200
        ride_id = response.json()["id"]

        again = client.post("/rides", headers=as_user(rider), json={
            "driver_user_id": driver.id, "event_id": event_id, "pickup_text": "North lot"
        })
        assert again.status_code == 409
        assert again.json()["code"] == "DD_CONFLICT"

        queue = client.get("/rides/queue", headers=as_user(driver), params={
            "event_id": event_id, "latitude": 40.0, "longitude": -75.0
        }).json()
        assert queue["pending"][0]["id"] == ride_id
        assert queue["pending"][0]["distance_miles"] == 0.7

        response = client.post(f"/rides/{ride_id}/advance", headers=as_user(driver), json={"status": "accepted"})
        assert response.json()["status"] == "accepted"
        assert response.json()["accepted_at"] is not None

        mine = client.get("/rides/mine", headers=as_user(rider), params={"event_id": event_id}).json()
        assert mine["status"] == "accepted"

        log = client.get(f"/admin/events/{event_id}/rides", headers=as_user(admin)).json()
        assert [r["id"] for r in log] == [ride_id]

    def test_failed_verification_and_reinstatement(self, client, admin, event, make_driver):
        driver = make_driver(event)

        response = verify(client, driver, event.id, reaction_ms=900.0)
        assert response.status_code == 200
        body = response.json()
        assert body["evaluation"]["passed"] is False
        assert body["evaluation"]["measured"]["reaction_latency_ms"] == 900.0
        assert body["trust_status"] == "revoked"

        alerts = client.get("/admin/alerts", headers=as_user(admin)).json()
        assert len(alerts) == 1
        assert alerts[0]["user_id"] == driver.id
        assert alerts[0]["baseline"]["reaction_latency_ms"] == 400.0

        session_attempt = client.post("/sessions", headers=as_user(driver), json={"attempt_id": body["attempt"]["id"]})
        assert session_attempt.status_code == 422

        response = client.post(
            f"/admin/drivers/{driver.id}/reinstate",
            headers=as_user(admin),
            json={"event_id": event.id}
        )
        assert response.status_code == 200
        assert response.json()["trust_status"] == "active"
        assert response.json()["alerts_resolved"] == 1
        assert client.get("/admin/alerts", headers=as_user(admin)).json() == []

        response = client.post(
            f"/admin/drivers/{driver.id}/finalize",
            headers=as_user(admin),
            json={"event_id": event.id}
        )
        assert response.status_code == 409

    def test_attempt_without_baseline(self, client, event, make_user):
        user = make_user()
        client.post("/drivers/opt-in", headers=as_user(user), json={})

        response = verify(client, user, event.id)

        assert response.status_code == 422
        assert response.json()["details"]["reason"] == "enrollment_incomplete"

    def test_bad_image_rejected(self, client, event, make_driver):
        driver = make_driver(event)
        response = client.post("/verification/attempts", headers=as_user(driver), json={
            "event_id": event.id,
            "reaction_latency_ms": 400,
            "phrase_duration_sec": 3.0,
            "image_base64": "not base64!!",
        })
        assert response.status_code == 422


class TestReconcileAPI:

    def test_requires_api_key(self, client):
        assert client.post("/admin/reconcile").status_code == 401

    def test_queues_task(self, client):
        task = MagicMock()
        task.delay.return_value = MagicMock(id="task-123")
        with patch("ddride.worker.tasks.reconcile_revoked_drivers", task):
            response = client.post("/admin/reconcile", headers={"X-API-Key": "test-api-key"})

        assert response.status_code == 200
        assert response.json() == {"task_id": "task-123", "status": "queued"}
        task.delay.assert_called_once_with()
