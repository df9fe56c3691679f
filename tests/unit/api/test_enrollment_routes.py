"""Unit tests for enrollment routes."""

import pytest
from fastapi.testclient import TestClient


@pytest.mark.unit
class TestEnroll:
    """Tests for POST /enrollments."""

    def test_enroll(self, client: TestClient, course) -> None:
        response = client.post(
            "/api/v1/enrollments", json={"student_id": "S1", "course_id": course.id}
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["student_id"] == "S1"
        assert data["course_id"] == course.id
        assert data["enrolled_at"].startswith("2025-01-06T09:00")

    def test_enroll_twice_conflicts(self, client: TestClient, course) -> None:
        body = {"student_id": "S1", "course_id": course.id}
        client.post("/api/v1/enrollments", json=body)

        response = client.post("/api/v1/enrollments", json=body)

        assert response.status_code == 409
        assert response.json()["error"] == "Student is already enrolled in this course"

    def test_enroll_unknown_course(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/enrollments", json={"student_id": "S1", "course_id": "missing"}
        )

        assert response.status_code == 404

    def test_empty_student_id_rejected(self, client: TestClient, course) -> None:
        response = client.post(
            "/api/v1/enrollments", json={"student_id": "", "course_id": course.id}
        )

        assert response.status_code == 422


@pytest.mark.unit
class TestGetEnrollments:
    """Tests for GET /enrollments and GET /enrollments/{student}/{course}."""

    def test_list_empty(self, client: TestClient) -> None:
        response = client.get("/api/v1/enrollments")

        assert response.status_code == 200
        assert response.json() == {"data": [], "error": None}

    def test_list_filtered_by_student(self, client: TestClient, engine, course) -> None:
        engine.enroll("S1", course.id)
        engine.enroll("S2", course.id)

        response = client.get("/api/v1/enrollments", params={"student_id": "S2"})

        assert [e["student_id"] for e in response.json()["data"]] == ["S2"]

    def test_get_enrollment(self, client: TestClient, engine, course) -> None:
        engine.enroll("S1", course.id)

        response = client.get(f"/api/v1/enrollments/S1/{course.id}")

        assert response.status_code == 200
        assert response.json()["data"]["student_id"] == "S1"

    def test_get_enrollment_not_enrolled(self, client: TestClient, course) -> None:
        response = client.get(f"/api/v1/enrollments/S1/{course.id}")

        assert response.status_code == 404
        assert response.json()["error"] == "Student is not currently enrolled in this course"

    def test_no_delete_route(self, client: TestClient, engine, course) -> None:
        """Enrollments end only through withdrawal."""
        engine.enroll("S1", course.id)

        response = client.delete(f"/api/v1/enrollments/S1/{course.id}")

        assert response.status_code == 405
        assert engine.lookup_enrollment("S1", course.id) is not None
