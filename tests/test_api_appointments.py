"""API tests for appointment, notification, audit and cron endpoints."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.services.maintenance import MaintenanceService
from slotbook.services.notifications import NotificationDispatcher
from slotbook.utils.time import utc_now
from tests.conftest import RESOURCE_ID, at

BASE = "/api/v1/appointments"


def booking(start_hour: int = 10, end_hour: int = 11, **overrides) -> dict:
    payload = {
        "resource_id": RESOURCE_ID,
        "start_time": at(start_hour).isoformat(),
        "end_time": at(end_hour).isoformat(),
        "title": "Design review",
        "location": "Room 101",
    }
    payload.update(overrides)
    return payload


async def _book(client: AsyncClient, headers: dict, **kwargs) -> dict:
    response = await client.post(BASE, json=booking(**kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateEndpoint:
    """POST /appointments"""

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.post(BASE, json=booking(), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["version"] == 1
        assert data["owner_id"] == "user-1"
        assert data["resource_id"] == RESOURCE_ID

    @pytest.mark.asyncio
    async def test_conflict_returns_409_with_conflicting_id(
        self, client: AsyncClient, auth_headers: dict, other_auth_headers: dict
    ) -> None:
        first = await _book(client, auth_headers)

        response = await client.post(
            BASE, json=booking(10, 12), headers=other_auth_headers
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "conflict"
        assert body["conflicting_appointment_id"] == first["id"]

    @pytest.mark.asyncio
    async def test_touching_windows_are_allowed(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _book(client, auth_headers, start_hour=10, end_hour=11)

        response = await client.post(BASE, json=booking(11, 12), headers=auth_headers)

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_end_before_start_is_invalid_window(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(BASE, json=booking(11, 10), headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_window"

    @pytest.mark.asyncio
    async def test_missing_title_fails_validation(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        payload = booking()
        del payload["title"]

        response = await client.post(BASE, json=payload, headers=auth_headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient) -> None:
        response = await client.post(BASE, json=booking())

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_user_cannot_book_for_someone_else(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            BASE, json=booking(owner_id="user-2"), headers=auth_headers
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    @pytest.mark.asyncio
    async def test_admin_can_book_for_someone_else(
        self, client: AsyncClient, admin_auth_headers: dict
    ) -> None:
        data = await _book(client, admin_auth_headers, owner_id="user-2")

        assert data["owner_id"] == "user-2"


class TestReadEndpoints:
    """GET /appointments and /appointments/{id}"""

    @pytest.mark.asyncio
    async def test_get_own_appointment(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)

        response = await client.get(f"{BASE}/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(
        self, client: AsyncClient, auth_headers: dict, other_auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)

        response = await client.get(f"{BASE}/{created['id']}", headers=other_auth_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "appointment_id",
        ["00000000-0000-0000-0000-000000000000", "not-a-uuid"],
    )
    async def test_unknown_id_is_404(
        self, client: AsyncClient, auth_headers: dict, appointment_id: str
    ) -> None:
        response = await client.get(f"{BASE}/{appointment_id}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_list_shows_only_own_appointments(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_auth_headers: dict,
        admin_auth_headers: dict,
    ) -> None:
        mine = await _book(client, auth_headers, start_hour=9, end_hour=10)
        await _book(client, other_auth_headers, start_hour=11, end_hour=12)

        response = await client.get(BASE, headers=auth_headers)
        assert [a["id"] for a in response.json()] == [mine["id"]]

        # Asking for someone else's list still returns only your own
        response = await client.get(
            BASE, params={"owner_id": "user-2"}, headers=auth_headers
        )
        assert [a["id"] for a in response.json()] == [mine["id"]]

        response = await client.get(BASE, headers=admin_auth_headers)
        assert len(response.json()) == 2

    @pytest.mark.asyncio
    async def test_list_filters_by_status(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        kept = await _book(client, auth_headers, start_hour=9, end_hour=10)
        dropped = await _book(client, auth_headers, start_hour=11, end_hour=12)
        await client.post(
            f"{BASE}/{dropped['id']}/cancel",
            json={"expected_version": 1},
            headers=auth_headers,
        )

        response = await client.get(
            BASE, params={"status": "scheduled"}, headers=auth_headers
        )

        assert [a["id"] for a in response.json()] == [kept["id"]]


class TestTransitionEndpoints:
    """Reschedule, cancel, confirm and complete."""

    @pytest.mark.asyncio
    async def test_reschedule(self, client: AsyncClient, auth_headers: dict) -> None:
        created = await _book(client, auth_headers)

        response = await client.post(
            f"{BASE}/{created['id']}/reschedule",
            json={
                "start_time": at(14).isoformat(),
                "end_time": at(15).isoformat(),
                "expected_version": 1,
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "rescheduled"
        assert data["version"] == 2

    @pytest.mark.asyncio
    async def test_stale_version_returns_409(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)
        await client.post(
            f"{BASE}/{created['id']}/confirm", headers=auth_headers
        )

        response = await client.post(
            f"{BASE}/{created['id']}/cancel",
            json={"expected_version": 1, "reason": "Clash"},
            headers=auth_headers,
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "version_mismatch"
        assert body["expected_version"] == 1
        assert body["current_version"] == 2

    @pytest.mark.asyncio
    async def test_cancel_then_reschedule_is_invalid_transition(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)
        cancelled = await client.post(
            f"{BASE}/{created['id']}/cancel",
            json={"expected_version": 1, "reason": "No longer needed"},
            headers=auth_headers,
        )
        assert cancelled.json()["cancellation_reason"] == "No longer needed"

        response = await client.post(
            f"{BASE}/{created['id']}/reschedule",
            json={
                "start_time": at(14).isoformat(),
                "end_time": at(15).isoformat(),
                "expected_version": 2,
            },
            headers=auth_headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "invalid_transition"
        assert body["current_status"] == "cancelled"
        assert body["requested_status"] == "rescheduled"

    @pytest.mark.asyncio
    async def test_complete_before_end_needs_override_permission(
        self, client: AsyncClient, auth_headers: dict, admin_auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)

        early = await client.post(f"{BASE}/{created['id']}/complete", headers=auth_headers)
        assert early.status_code == 422
        assert early.json()["code"] == "invalid_transition"

        override = await client.post(
            f"{BASE}/{created['id']}/complete",
            json={"override": True},
            headers=auth_headers,
        )
        assert override.status_code == 403

        response = await client.post(
            f"{BASE}/{created['id']}/complete",
            json={"override": True},
            headers=admin_auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    @pytest.mark.asyncio
    async def test_other_user_cannot_cancel(
        self, client: AsyncClient, auth_headers: dict, other_auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)

        response = await client.post(
            f"{BASE}/{created['id']}/cancel",
            json={"expected_version": 1},
            headers=other_auth_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_history(self, client: AsyncClient, auth_headers: dict) -> None:
        created = await _book(client, auth_headers)
        await client.post(f"{BASE}/{created['id']}/confirm", headers=auth_headers)
        await client.post(
            f"{BASE}/{created['id']}/cancel",
            json={"expected_version": 2, "reason": "Moved online"},
            headers=auth_headers,
        )

        response = await client.get(f"{BASE}/{created['id']}/history", headers=auth_headers)

        assert response.status_code == 200
        entries = response.json()
        assert [e["action"] for e in entries] == ["create", "confirm", "cancel"]
        assert entries[-1]["previous_status"] == "confirmed"
        assert entries[-1]["metadata"] == {"reason": "Moved online"}

    @pytest.mark.asyncio
    async def test_request_id_is_recorded(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        created = await client.post(
            BASE,
            json=booking(),
            headers={**auth_headers, "X-Request-ID": "req-42"},
        )

        response = await client.get(
            f"{BASE}/{created.json()['id']}/history", headers=auth_headers
        )

        assert response.json()[0]["request_id"] == "req-42"

    @pytest.mark.asyncio
    async def test_history_survives_soft_delete(
        self,
        client: AsyncClient,
        async_session: AsyncSession,
        auth_headers: dict,
        other_auth_headers: dict,
        admin_auth_headers: dict,
    ) -> None:
        created = await _book(client, auth_headers)
        await client.post(
            f"{BASE}/{created['id']}/cancel",
            json={"expected_version": 1},
            headers=auth_headers,
        )
        soft_deleted = await MaintenanceService(async_session).soft_delete_old_cancellations(
            utc_now() + timedelta(days=1)
        )
        assert soft_deleted == 1

        gone = await client.get(f"{BASE}/{created['id']}", headers=auth_headers)
        owner = await client.get(f"{BASE}/{created['id']}/history", headers=auth_headers)
        admin = await client.get(
            f"{BASE}/{created['id']}/history", headers=admin_auth_headers
        )
        stranger = await client.get(
            f"{BASE}/{created['id']}/history", headers=other_auth_headers
        )

        assert gone.status_code == 404
        assert owner.status_code == 200
        assert [e["action"] for e in owner.json()] == ["create", "cancel"]
        assert admin.status_code == 200
        assert stranger.status_code == 403


class TestNotificationEndpoints:
    """In-app notifications produced by transitions."""

    @pytest.mark.asyncio
    async def test_transition_notifications_reach_the_inbox(
        self,
        client: AsyncClient,
        auth_headers: dict,
        dispatcher: NotificationDispatcher,
    ) -> None:
        created = await _book(client, auth_headers)
        await client.post(f"{BASE}/{created['id']}/confirm", headers=auth_headers)
        await dispatcher.drain()

        count = await client.get("/api/v1/notifications/unread-count", headers=auth_headers)
        assert count.json() == {"count": 2}

        response = await client.get("/api/v1/notifications", headers=auth_headers)
        types = {n["type"] for n in response.json()}
        assert types == {"appointment_created", "appointment_confirmed"}

        first = response.json()[0]
        read = await client.post(
            f"/api/v1/notifications/{first['id']}/read", headers=auth_headers
        )
        assert read.status_code == 200
        assert read.json()["read"] is True

        read_all = await client.post("/api/v1/notifications/read-all", headers=auth_headers)
        assert read_all.json() == {"updated": 1}

    @pytest.mark.asyncio
    async def test_other_users_notifications_are_hidden(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_auth_headers: dict,
        dispatcher: NotificationDispatcher,
    ) -> None:
        await _book(client, auth_headers)
        await dispatcher.drain()

        response = await client.get("/api/v1/notifications", headers=other_auth_headers)
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_mark_unknown_notification_is_404(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/notifications/not-a-uuid/read", headers=auth_headers
        )

        assert response.status_code == 404


class TestAuditEndpoints:
    """GET /audit/events"""

    @pytest.mark.asyncio
    async def test_requires_audit_permission(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.get("/api/v1/audit/events", headers=auth_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_filter_events(
        self, client: AsyncClient, auth_headers: dict, admin_auth_headers: dict
    ) -> None:
        created = await _book(client, auth_headers)
        await client.post(f"{BASE}/{created['id']}/confirm", headers=auth_headers)

        response = await client.get(
            "/api/v1/audit/events",
            params={"appointment_id": created["id"], "action": "confirm"},
            headers=admin_auth_headers,
        )

        assert response.status_code == 200
        events = response.json()
        assert len(events) == 1
        assert events[0]["actor_id"] == "user-1"
        assert events[0]["new_status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_unknown_event_is_404(
        self, client: AsyncClient, admin_auth_headers: dict
    ) -> None:
        response = await client.get(
            "/api/v1/audit/events/00000000-0000-0000-0000-000000000000",
            headers=admin_auth_headers,
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    async def test_no_write_endpoints(
        self, client: AsyncClient, admin_auth_headers: dict, method: str
    ) -> None:
        response = await client.request(
            method, "/api/v1/audit/events", headers=admin_auth_headers
        )

        assert response.status_code == 405


class TestCronEndpoints:
    """Scheduler-triggered routes."""

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, client: AsyncClient) -> None:
        with patch.object(settings, "cron_secret", "s3cret"):
            response = await client.post(
                "/api/v1/cron/reminders", headers={"x-cron-secret": "guess"}
            )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_secret_is_rejected(self, client: AsyncClient) -> None:
        with patch.object(settings, "cron_secret", "s3cret"):
            response = await client.get("/api/v1/cron/cleanup")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_reminders_with_secret(self, client: AsyncClient) -> None:
        with patch.object(settings, "cron_secret", "s3cret"):
            response = await client.get(
                "/api/v1/cron/reminders", headers={"x-cron-secret": "s3cret"}
            )

        assert response.status_code == 200
        assert response.json() == {"success": True, "total": 0, "sent": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_cleanup_completes_past_appointments(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        # 2000-01-01 has long passed
        payload = booking(
            start_time="2000-01-01T10:00:00+00:00",
            end_time="2000-01-01T11:00:00+00:00",
        )
        created = await client.post(BASE, json=payload, headers=auth_headers)
        appointment_id = created.json()["id"]

        with patch.object(settings, "cron_secret", "s3cret"):
            response = await client.post(
                "/api/v1/cron/cleanup", headers={"x-cron-secret": "s3cret"}
            )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "completed": 1,
            "failed": 0,
            "soft_deleted": 0,
        }
        appointment = await client.get(f"{BASE}/{appointment_id}", headers=auth_headers)
        assert appointment.json()["status"] == "completed"
