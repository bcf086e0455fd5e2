# tests/test_courses.py
"""Tests for the course routes and the bootcamp average_cost hook."""
import pytest
from bson import ObjectId

from errors import NotFound
from main import update_document


def _average_cost(db, bootcamp):
    return db["bootcamp"].find_one({"_id": ObjectId(bootcamp["_id"])}).get("average_cost")


def _create(client, bootcamp, user, payload):
    return client.post(f"/bootcamps/{bootcamp['_id']}/courses", json=payload, headers=user["headers"])


class TestCreateCourse:
    def test_create_links_parent_and_owner(self, client, db, bootcamp, publisher, course_payload):
        resp = _create(client, bootcamp, publisher, course_payload)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["bootcamp"] == bootcamp["_id"]
        assert data["user"] == publisher["id"]
        assert _average_cost(db, bootcamp) == 8000

    def test_missing_bootcamp_is_404(self, client, publisher, course_payload):
        missing = str(ObjectId())
        resp = client.post(f"/bootcamps/{missing}/courses", json=course_payload, headers=publisher["headers"])
        assert resp.status_code == 404
        assert resp.json()["error"] == f"Bootcamp not found with id of {missing}"

    def test_only_bootcamp_owner_adds_courses(self, client, db, bootcamp, other_publisher, course_payload):
        resp = _create(client, bootcamp, other_publisher, course_payload)
        assert resp.status_code == 401
        assert resp.json()["error"] == (
            f"User {other_publisher['id']} is not authorized to add a course to bootcamp {bootcamp['_id']}"
        )
        assert db["course"].count_documents({}) == 0

    def test_invalid_skill_is_400(self, client, bootcamp, publisher, course_payload):
        resp = _create(client, bootcamp, publisher, {**course_payload, "minimum_skill": "wizard"})
        assert resp.status_code == 400


class TestReadCourses:
    def test_list_for_bootcamp_is_unpaginated(self, client, bootcamp, publisher, course_payload):
        for i in range(3):
            _create(client, bootcamp, publisher, {**course_payload, "title": f"Course {i}"})
        resp = client.get(f"/bootcamps/{bootcamp['_id']}/courses", params={"limit": "1"})
        body = resp.json()
        assert body["count"] == 3
        assert "pagination" not in body

    def test_list_all_populates_bootcamp(self, client, bootcamp, publisher, course_payload):
        _create(client, bootcamp, publisher, course_payload)
        body = client.get("/courses").json()
        assert body["count"] == 1
        assert body["pagination"] == {"total": 1}
        assert body["data"][0]["bootcamp"] == {
            "_id": bootcamp["_id"],
            "name": bootcamp["name"],
            "description": bootcamp["description"],
        }

    def test_get_one(self, client, bootcamp, publisher, course_payload):
        course = _create(client, bootcamp, publisher, course_payload).json()["data"]
        resp = client.get(f"/courses/{course['_id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["bootcamp"]["name"] == bootcamp["name"]

    def test_get_missing_is_404(self, client):
        assert client.get(f"/courses/{ObjectId()}").status_code == 404


class TestUpdateDeleteCourse:
    def test_update_recomputes_average_cost(self, client, db, bootcamp, publisher, course_payload):
        first = _create(client, bootcamp, publisher, course_payload).json()["data"]
        _create(client, bootcamp, publisher, {**course_payload, "tuition": 10000})
        assert _average_cost(db, bootcamp) == 9000

        resp = client.put(f"/courses/{first['_id']}", json={"tuition": 12001}, headers=publisher["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["tuition"] == 12001
        assert _average_cost(db, bootcamp) == 11010

    def test_stranger_cannot_update(self, client, db, bootcamp, publisher, other_publisher, course_payload):
        course = _create(client, bootcamp, publisher, course_payload).json()["data"]
        resp = client.put(f"/courses/{course['_id']}", json={"tuition": 1}, headers=other_publisher["headers"])
        assert resp.status_code == 401
        assert db["course"].find_one({"_id": ObjectId(course["_id"])})["tuition"] == 8000

    def test_delete_recomputes_average_cost(self, client, db, bootcamp, publisher, course_payload):
        first = _create(client, bootcamp, publisher, course_payload).json()["data"]
        second = _create(client, bootcamp, publisher, {**course_payload, "tuition": 10000}).json()["data"]

        assert client.delete(f"/courses/{second['_id']}", headers=publisher["headers"]).status_code == 200
        assert _average_cost(db, bootcamp) == 8000
        assert client.delete(f"/courses/{first['_id']}", headers=publisher["headers"]).status_code == 200
        assert _average_cost(db, bootcamp) is None

    def test_stranger_cannot_delete(self, client, db, bootcamp, publisher, other_publisher, course_payload):
        course = _create(client, bootcamp, publisher, course_payload).json()["data"]
        resp = client.delete(f"/courses/{course['_id']}", headers=other_publisher["headers"])
        assert resp.status_code == 401
        assert db["course"].count_documents({}) == 1

    def test_admin_deletes_any(self, client, db, bootcamp, publisher, admin, course_payload):
        course = _create(client, bootcamp, publisher, course_payload).json()["data"]
        assert client.delete(f"/courses/{course['_id']}", headers=admin["headers"]).status_code == 200
        assert db["course"].count_documents({}) == 0


class TestFilterCourses:
    def test_filter_on_numeric_looking_text(self, client, bootcamp, publisher, course_payload):
        _create(client, bootcamp, publisher, course_payload)
        _create(client, bootcamp, publisher, {**course_payload, "title": "Full Stack", "weeks": "12"})
        body = client.get("/courses", params={"weeks": "8"}).json()
        assert body["count"] == 1
        assert body["data"][0]["weeks"] == "8"
        assert client.get("/courses", params={"weeks[in]": "8,12"}).json()["count"] == 2


class TestUpdateDocument:
    def test_vanished_document_is_404(self, db):
        gone = {"_id": ObjectId()}
        with pytest.raises(NotFound) as exc:
            update_document(db, "course", gone, {"tuition": 1})
        assert exc.value.message == f"Course not found with id of {gone['_id']}"
