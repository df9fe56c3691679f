"""Unit tests for dropout routes."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from evarsity.exceptions import InvariantViolationError


@pytest.mark.unit
class TestWithdraw:
    """Tests for POST /dropouts."""

    def test_withdraw(self, client: TestClient, engine, course, clock) -> None:
        engine.enroll("S1", course.id)
        clock.advance(days=40)

        response = client.post(
            "/api/v1/dropouts",
            json={"student_id": "S1", "course_id": course.id, "reason": "personal"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["completed_duration"] == 40
        assert Decimal(str(data["refund_percentage"])) == Decimal("90")
        assert Decimal(str(data["refund_amount"])) == Decimal("900.00")
        assert data["reason"] == "personal"

    def test_withdraw_not_enrolled(self, client: TestClient, course) -> None:
        response = client.post(
            "/api/v1/dropouts", json={"student_id": "S1", "course_id": course.id}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Student is not currently enrolled in this course"

    def test_invariant_violation_is_opaque(self, client: TestClient, engine, course) -> None:
        engine.enroll("S1", course.id)

        with patch(
            "evarsity.engine.dropout.refund_amount",
            side_effect=InvariantViolationError("refund 1200 exceeds price 1000"),
        ):
            response = client.post(
                "/api/v1/dropouts", json={"student_id": "S1", "course_id": course.id}
            )

        assert response.status_code == 500
        assert response.json() == {"data": None, "error": "Internal server error"}
        assert engine.lookup_enrollment("S1", course.id) is not None


@pytest.mark.unit
class TestListDropouts:
    """Tests for GET /dropouts."""

    def test_list_by_course(self, client: TestClient, engine, course) -> None:
        engine.enroll("S1", course.id)
        engine.withdraw("S1", course.id)

        response = client.get("/api/v1/dropouts", params={"course_id": course.id})

        assert [r["student_id"] for r in response.json()["data"]] == ["S1"]
