"""Tests for the challenge and achievement endpoints"""
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient

from studyhub.api.routes import get_gamification_service
from studyhub.api.server import create_api_application


@pytest.fixture
def client(service):
    """TestClient backed by the in-memory service (lifespan not started)"""
    app = create_api_application()
    app.dependency_overrides[get_gamification_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def challenge_payload(fixed_now):
    start = fixed_now + timedelta(days=1)
    return {
        "title": "Finals Week Grind",
        "group_id": "group-1",
        "created_by": "creator",
        "challenge_type": "study_hours",
        "duration": {
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=7)).isoformat(),
        },
        "target_metrics": {"target_study_hours": 20},
        "settings": {"max_participants": 2},
        "milestones": [{"name": "Halfway", "target_value": 10}],
    }


@pytest.fixture
def challenge_id(client, challenge_payload):
    response = client.post("/api/v1/challenges", json=challenge_payload)
    assert response.status_code == 201
    return response.json()["id"]


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_challenge(client, challenge_payload):
    response = client.post("/api/v1/challenges", json=challenge_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "draft"
    assert data["participants"] == []
    assert data["stats"]["total_participants"] == 0


def test_create_challenge_rejects_bad_window(client, challenge_payload):
    challenge_payload["duration"]["end_date"] = challenge_payload["duration"]["start_date"]

    response = client.post("/api/v1/challenges", json=challenge_payload)

    assert response.status_code == 422


def test_challenge_flow(client, challenge_id):
    assert client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "alice"}).status_code == 204
    assert client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "bob"}).status_code == 204
    assert client.post(f"/api/v1/challenges/{challenge_id}/start").status_code == 204

    response = client.put(
        f"/api/v1/challenges/{challenge_id}/participants/alice/progress",
        json={"value": 12}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["previous_value"] == 0
    assert data["current_value"] == 12
    assert data["status"] == "active"
    assert data["rank"] == 1
    assert data["completed"] is False
    assert data["milestones_reached"] == ["Halfway"]

    leaderboard = client.get(f"/api/v1/challenges/{challenge_id}/leaderboard").json()["leaderboard"]
    assert [(e["user_id"], e["rank"]) for e in leaderboard] == [("alice", 1), ("bob", 2)]

    response = client.post(f"/api/v1/challenges/{challenge_id}/end")
    assert response.status_code == 200
    assert response.json()["winner_id"] == "alice"

    challenge = client.get(f"/api/v1/challenges/{challenge_id}").json()
    assert challenge["status"] == "completed"


def test_join_full_challenge_conflicts(client, challenge_id):
    client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "alice"})
    client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "bob"})

    response = client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "carol"})

    assert response.status_code == 409
    assert response.json()["error"] == "CapacityExceededError"
    assert response.json()["user_message"] == "This challenge is full."


def test_leave_then_join(client, challenge_id):
    client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "alice"})
    client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "bob"})

    assert client.delete(f"/api/v1/challenges/{challenge_id}/participants/bob").status_code == 204
    assert client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "carol"}).status_code == 204


def test_leave_without_joining(client, challenge_id):
    response = client.delete(f"/api/v1/challenges/{challenge_id}/participants/alice")

    assert response.status_code == 409
    assert response.json()["error"] == "NotParticipantError"


def test_late_join_forbidden(client, challenge_payload, fixed_now):
    challenge_payload["duration"]["start_date"] = (fixed_now - timedelta(days=1)).isoformat()
    challenge_id = client.post("/api/v1/challenges", json=challenge_payload).json()["id"]

    response = client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "alice"})

    assert response.status_code == 403
    assert response.json()["error"] == "LateJoinDisallowedError"


def test_start_without_target(client, challenge_payload):
    challenge_payload["target_metrics"] = {}
    challenge_id = client.post("/api/v1/challenges", json=challenge_payload).json()["id"]

    response = client.post(f"/api/v1/challenges/{challenge_id}/start")

    assert response.status_code == 400


def test_invalid_transition(client, challenge_id):
    response = client.post(f"/api/v1/challenges/{challenge_id}/cancel")

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransitionError"


def test_unknown_challenge(client):
    response = client.get("/api/v1/challenges/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "RecordNotFoundError"


def test_progress_rejects_negative_value(client, challenge_id):
    response = client.put(
        f"/api/v1/challenges/{challenge_id}/participants/alice/progress",
        json={"value": -1}
    )

    assert response.status_code == 422


def test_group_and_user_challenge_lists(client, challenge_id):
    client.post(f"/api/v1/challenges/{challenge_id}/participants", json={"user_id": "alice"})

    assert client.get("/api/v1/groups/group-1/challenges").json() == []

    client.post(f"/api/v1/challenges/{challenge_id}/start")
    active = client.get("/api/v1/groups/group-1/challenges").json()
    assert [c["id"] for c in active] == [challenge_id]

    mine = client.get("/api/v1/users/alice/challenges", params={"status": "active"}).json()
    assert [c["id"] for c in mine] == [challenge_id]


def test_sweep_endpoint(client, challenge_payload, fixed_now):
    challenge_payload["duration"] = {
        "start_date": (fixed_now - timedelta(days=8)).isoformat(),
        "end_date": (fixed_now - timedelta(days=1)).isoformat(),
    }
    challenge_id = client.post("/api/v1/challenges", json=challenge_payload).json()["id"]
    client.post(f"/api/v1/challenges/{challenge_id}/start")

    response = client.post("/api/v1/challenges/sweep")

    assert response.status_code == 200
    assert response.json()["completed"] == 1


# ============================================================================
# Achievements
# ============================================================================

def test_create_and_check_achievement(client, activity):
    response = client.post("/api/v1/achievements", json={
        "name": "Goal Getter",
        "description": "Complete three goals",
        "icon": "🎯",
        "category": "milestone",
        "rarity": "rare",
        "criteria": {"trigger_type": "goals_completed", "target_value": 3},
        "reward": {"points": 25},
    })
    assert response.status_code == 201
    achievement_id = response.json()["id"]

    activity.set_goals_completed("alice", 3)
    response = client.post("/api/v1/users/alice/achievements/check", json={"trigger_event": "goal-7"})

    assert response.status_code == 200
    earned = response.json()["new_achievements"]
    assert [e["achievement"]["id"] for e in earned] == [achievement_id]
    assert earned[0]["achievement"]["stats"]["total_earned"] == 1

    # Idempotent
    again = client.post("/api/v1/users/alice/achievements/check", json={})
    assert again.json()["new_achievements"] == []

    listing = client.get("/api/v1/users/alice/achievements", params={"completed": "true"}).json()
    assert [a["achievement"]["id"] for a in listing["achievements"]] == [achievement_id]

    leaders = client.get(f"/api/v1/achievements/{achievement_id}/leaderboard").json()
    assert [p["user_id"] for p in leaders] == ["alice"]


def test_create_invalid_achievement(client):
    response = client.post("/api/v1/achievements", json={
        "name": "Broken",
        "description": "No group",
        "icon": "x",
        "category": "social",
        "is_global": False,
        "criteria": {"trigger_type": "resources_shared", "target_value": 1},
    })

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"
