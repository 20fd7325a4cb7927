"""Tests for API routes using TestClient."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import bearer
from ratemyeagle.models import Professor, ProfessorRating

API = "/api/v1"

PROFESSOR = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "title": "Professor",
    "department": "Computer Science",
    "email": "",
    "bio": "Analytical engines.",
}


def rating_body(**overrides):
    body = {
        "courseCode": "CSCE 1030",
        "isOnlineCourse": False,
        "overallRating": 5,
        "difficulty": 2,
        "wouldTakeAgain": "yes",
        "takenForCredit": "yes",
        "usedTextbooks": "no",
        "attendanceMandatory": "",
        "gradeReceived": "A",
        "selectedTags": ["Caring", "Hilarious"],
        "review": "Clear lectures and fair exams.",
    }
    body.update(overrides)
    return body


def create_professor(client, **overrides):
    resp = client.post(f"{API}/professors", json={**PROFESSOR, **overrides}, headers=bearer("alice-token"))
    assert resp.status_code == 200, resp.text
    return resp.json()["professor"]


class TestHealthEndpoint:
    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["database"] == "configured"
        assert data["authService"] in ("configured", "not configured")
        assert "timestamp" in data


class TestSetupEndpoint:
    @patch("ratemyeagle.routes.init_db")
    def test_setup_succeeds(self, mock_init, client):
        resp = client.post(f"{API}/setup")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        mock_init.assert_called_once()

    @patch("ratemyeagle.routes.init_db")
    def test_setup_failure_is_reported(self, mock_init, client):
        mock_init.side_effect = OperationalError("CREATE TABLE", {}, Exception("connection refused"))
        resp = client.post(f"{API}/setup")
        assert resp.status_code == 500
        data = resp.json()
        assert data["success"] is False
        assert "connection refused" in data["error"]


class TestProfessors:
    def test_list_empty(self, client):
        resp = client.get(f"{API}/professors")
        assert resp.status_code == 200
        assert resp.json() == {"professors": []}

    def test_create_and_list(self, client):
        professor = create_professor(client)
        assert professor["first_name"] == "Ada"
        assert professor["department"] == "Computer Science"
        assert professor["created_by"] == "user-alice"
        assert professor["email"] is None

        listed = client.get(f"{API}/professors").json()["professors"]
        assert [p["id"] for p in listed] == [professor["id"]]

    def test_create_requires_auth(self, client):
        resp = client.post(f"{API}/professors", json=PROFESSOR)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}
        assert client.get(f"{API}/professors").json()["professors"] == []

    def test_create_rejects_unknown_token(self, client):
        resp = client.post(f"{API}/professors", json=PROFESSOR, headers=bearer("forged"))
        assert resp.status_code == 401

    def test_create_missing_department(self, client):
        body = {k: v for k, v in PROFESSOR.items() if k != "department"}
        resp = client.post(f"{API}/professors", json=body, headers=bearer("alice-token"))
        assert resp.status_code == 400
        data = resp.json()
        assert data["error"] == "Missing required fields"
        assert any(d["field"] == "department" for d in data["details"])
        assert client.get(f"{API}/professors").json()["professors"] == []

    def test_create_empty_title_rejected(self, client):
        resp = client.post(f"{API}/professors", json={**PROFESSOR, "title": ""}, headers=bearer("alice-token"))
        assert resp.status_code == 400

    def test_filter_by_department(self, client):
        create_professor(client)
        create_professor(client, firstName="Carl", lastName="Gauss", department="Mathematics")
        resp = client.get(f"{API}/professors/department/Mathematics")
        assert resp.status_code == 200
        names = [p["last_name"] for p in resp.json()["professors"]]
        assert names == ["Gauss"]

    def test_search_matches_name_and_department(self, client):
        create_professor(client)
        create_professor(client, firstName="Carl", lastName="Gauss", department="Mathematics")

        by_name = client.get(f"{API}/professors/search", params={"q": "love"}).json()["professors"]
        assert [p["last_name"] for p in by_name] == ["Lovelace"]

        by_dept = client.get(f"{API}/professors/search", params={"q": "MATH"}).json()["professors"]
        assert [p["last_name"] for p in by_dept] == ["Gauss"]

    def test_search_without_query(self, client):
        create_professor(client)
        resp = client.get(f"{API}/professors/search")
        assert resp.status_code == 200
        assert resp.json()["professors"] == []

    def test_search_treats_wildcards_literally(self, client):
        create_professor(client)
        resp = client.get(f"{API}/professors/search", params={"q": "%"})
        assert resp.json()["professors"] == []


class TestRatings:
    def test_submit_rating(self, client):
        professor = create_professor(client)
        resp = client.post(
            f"{API}/professors/{professor['id']}/ratings",
            json=rating_body(),
            headers=bearer("alice-token"),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Rating submitted successfully"
        rating = data["rating"]
        assert rating["user_id"] == "user-alice"
        assert rating["rating"] == 5
        assert rating["would_take_again"] is True
        assert rating["for_credit"] is True
        assert rating["used_textbooks"] is False
        assert rating["attendance_mandatory"] is None
        assert rating["tags"] == ["Caring", "Hilarious"]

    def test_ratings_with_stats(self, client):
        professor = create_professor(client)
        url = f"{API}/professors/{professor['id']}/ratings"
        client.post(url, json=rating_body(selectedTags=["Caring", "Funny"]), headers=bearer("alice-token"))
        client.post(
            url,
            json=rating_body(overallRating=3, difficulty=4, selectedTags=["Caring"]),
            headers=bearer("bob-token"),
        )

        resp = client.get(url)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["ratings"]) == 2
        assert data["stats"] == {
            "totalRatings": 2,
            "avgRating": 4.0,
            "avgDifficulty": 3.0,
            "topTags": [{"tag": "Caring", "count": 2}, {"tag": "Funny", "count": 1}],
        }

    def test_no_ratings_gives_zero_stats(self, client):
        professor = create_professor(client)
        data = client.get(f"{API}/professors/{professor['id']}/ratings").json()
        assert data["ratings"] == []
        assert data["stats"] == {"totalRatings": 0, "avgRating": 0, "avgDifficulty": 0, "topTags": []}

    def test_duplicate_rating_rejected(self, client):
        professor = create_professor(client)
        url = f"{API}/professors/{professor['id']}/ratings"
        first = client.post(url, json=rating_body(), headers=bearer("alice-token"))
        assert first.status_code == 200

        second = client.post(url, json=rating_body(overallRating=1), headers=bearer("alice-token"))
        assert second.status_code == 400
        assert second.json()["error"] == "You have already rated this professor"

        ratings = client.get(url).json()["ratings"]
        assert len(ratings) == 1
        assert ratings[0]["rating"] == 5

    def test_rating_unknown_professor(self, client):
        resp = client.post(f"{API}/professors/missing/ratings", json=rating_body(), headers=bearer("alice-token"))
        assert resp.status_code == 404
        assert resp.json()["error"] == "Professor not found"

    def test_list_ratings_unknown_professor(self, client):
        resp = client.get(f"{API}/professors/missing/ratings")
        assert resp.status_code == 404

    def test_rating_requires_auth(self, client, db_factory):
        professor = create_professor(client)
        resp = client.post(f"{API}/professors/{professor['id']}/ratings", json=rating_body())
        assert resp.status_code == 401
        with db_factory() as session:
            assert session.query(ProfessorRating).count() == 0

    @pytest.mark.parametrize("field", ["courseCode", "overallRating", "difficulty", "wouldTakeAgain", "review"])
    def test_rating_missing_field(self, client, field):
        professor = create_professor(client)
        body = rating_body()
        del body[field]
        resp = client.post(
            f"{API}/professors/{professor['id']}/ratings",
            json=body,
            headers=bearer("alice-token"),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields"

    def test_rating_out_of_range(self, client):
        professor = create_professor(client)
        resp = client.post(
            f"{API}/professors/{professor['id']}/ratings",
            json=rating_body(overallRating=6),
            headers=bearer("alice-token"),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request"

    def test_storage_failure_passes_message_through(self, client):
        professor = create_professor(client)
        with patch("sqlalchemy.orm.Session.commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            resp = client.post(
                f"{API}/professors/{professor['id']}/ratings",
                json=rating_body(),
                headers=bearer("alice-token"),
            )
        assert resp.status_code == 500
        data = resp.json()
        assert data["error"] == "Failed to create rating"
        assert "disk full" in data["details"]

    def test_concurrent_duplicate_hits_unique_constraint(self, client):
        professor = create_professor(client)
        # the lookup passes, then the insert loses the race to another request
        with patch("sqlalchemy.orm.Session.commit", side_effect=IntegrityError("INSERT", {}, Exception("UNIQUE"))):
            resp = client.post(
                f"{API}/professors/{professor['id']}/ratings",
                json=rating_body(),
                headers=bearer("alice-token"),
            )
        assert resp.status_code == 400
        assert resp.json()["error"] == "You have already rated this professor"


class TestRatingConstraint:
    def test_second_row_for_same_user_violates_unique_constraint(self, db_factory):
        with db_factory() as session:
            prof = Professor(first_name="A", last_name="B", title="Dr", department="Physics")
            session.add(prof)
            session.commit()
            fields = dict(professor_id=prof.id, user_id="u1", course_code="PHYS 1", rating=4,
                          difficulty=3, would_take_again=True, review="ok")
            session.add(ProfessorRating(**fields))
            session.commit()
            session.add(ProfessorRating(**fields))
            with pytest.raises(IntegrityError):
                session.commit()


class TestUserRatings:
    def test_requires_auth(self, client):
        assert client.get(f"{API}/users/ratings").status_code == 401

    def test_only_own_ratings(self, client):
        ada = create_professor(client)
        carl = create_professor(client, firstName="Carl", lastName="Gauss", department="Mathematics")
        client.post(f"{API}/professors/{ada['id']}/ratings", json=rating_body(), headers=bearer("alice-token"))
        client.post(f"{API}/professors/{carl['id']}/ratings", json=rating_body(), headers=bearer("bob-token"))

        resp = client.get(f"{API}/users/ratings", headers=bearer("alice-token"))
        assert resp.status_code == 200
        ratings = resp.json()["ratings"]
        assert len(ratings) == 1
        assert ratings[0]["professor"]["last_name"] == "Lovelace"
        assert ratings[0]["user_id"] == "user-alice"
