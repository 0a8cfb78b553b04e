"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the public and manager routes through the FastAPI TestClient
against an in-memory database.

These tests verify:
- Auth guards and the 401/403 split
- Status codes and bodies of domain errors
- Role-dependent response shapes
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import add_category, add_game, add_user, auth, hours
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from kachna.api import deps
from kachna.constants import ADMIN_ROLE, BOARD_GAMES_MANAGER_ROLE, STATES_MANAGER_ROLE, utcnow


@pytest.fixture
def client(db_engine, cfg):
    """TestClient bound to the test database; the lifespan is not run."""
    from kachna.api.main import app

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_config] = lambda: cfg
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db_engine):
    with Session(db_engine) as session:
        for user_id in (1, 7, 42):
            add_user(session, user_id)
        category = add_category(session)
        add_game(session, category, "Carcassonne", game_id=1, in_stock=1)
        add_game(session, category, "Dominion", game_id=2, in_stock=0)
        add_game(session, category, "Prototype", game_id=3, in_stock=2, visible=False)
        session.commit()
        return {"category_id": category.id}


MEMBER = auth(42)
MANAGER = auth(7, [BOARD_GAMES_MANAGER_ROLE])


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Authentication
# ===========================================================================
class TestAuthentication:
    def test_invalid_token_rejected(self, client, catalog):
        resp = client.get("/api/boardgames", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_non_bearer_header_rejected(self, client, catalog):
        resp = client.get("/api/boardgames", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_manager_route_without_token(self, client, catalog):
        resp = client.get("/api/boardgames/reservations/all")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "not_authenticated"

    def test_manager_route_as_member(self, client, catalog):
        resp = client.get("/api/boardgames/reservations/all", headers=MEMBER)
        assert resp.status_code == 403
        assert resp.json()["detail"] == "not_a_board_games_manager"


# ===========================================================================
# Board games
# ===========================================================================
class TestBoardGameRoutes:
    def test_anonymous_catalog(self, client, catalog):
        resp = client.get("/api/boardgames")
        assert resp.status_code == 200
        games = resp.json()
        assert [g["id"] for g in games] == [1, 2]
        assert "in_stock" not in games[0]

    def test_manager_catalog_has_stock(self, client, catalog):
        games = client.get("/api/boardgames", headers=MANAGER).json()
        assert len(games) == 3
        assert games[0]["in_stock"] == 1

    def test_category_filter_alias(self, client, catalog):
        resp = client.get("/api/boardgames", params={"categoryId": catalog["category_id"] + 1})
        assert resp.json() == []

    def test_hidden_game(self, client, catalog):
        assert client.get("/api/boardgames/3").status_code == 401
        assert client.get("/api/boardgames/3", headers=MEMBER).status_code == 403
        resp = client.get("/api/boardgames/3", headers=MANAGER)
        assert resp.status_code == 200
        assert resp.json()["visible"] is False

    def test_missing_game(self, client, catalog):
        resp = client.get("/api/boardgames/404")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "board_game_not_found"

    def test_create_category_and_game(self, client, catalog):
        resp = client.post(
            "/api/boardgames/categories",
            json={"name": "Party", "colour_hex": "#FF00aa"},
            headers=MANAGER,
        )
        assert resp.status_code == 201
        category_id = resp.json()["id"]

        resp = client.post(
            "/api/boardgames",
            json={"name": "Codenames", "category_id": category_id, "in_stock": 2},
            headers=MANAGER,
        )
        assert resp.status_code == 201
        assert resp.json()["available"] == 2

    def test_delete_category_with_games(self, client, catalog):
        resp = client.delete(f"/api/boardgames/categories/{catalog['category_id']}", headers=MANAGER)
        assert resp.status_code == 409
        body = resp.json()
        assert body["detail"] == "category_has_board_games"
        assert sorted(body["board_game_ids"]) == [1, 2, 3]

    def test_invalid_body_is_422(self, client, catalog):
        resp = client.post(
            "/api/boardgames/categories", json={"name": "", "colour_hex": "red"}, headers=MANAGER
        )
        assert resp.status_code == 422


# ===========================================================================
# Reservations
# ===========================================================================
class TestReservationRoutes:
    def test_create_and_read_back(self, client, catalog):
        resp = client.post(
            "/api/boardgames/reservations",
            json={"board_game_ids": [1], "note_user": "Friday"},
            headers=MEMBER,
        )
        assert resp.status_code == 201
        reservation = resp.json()
        assert reservation["state"] == "new"
        assert reservation["items"][0]["state"] == "reserved"
        assert "note_internal" not in reservation

        mine = client.get("/api/boardgames/reservations", headers=MEMBER).json()
        assert [r["id"] for r in mine] == [reservation["id"]]

        as_manager = client.get(
            f"/api/boardgames/reservations/{reservation['id']}", headers=MANAGER
        ).json()
        assert "note_internal" in as_manager

    def test_unavailable_games_listed(self, client, catalog):
        resp = client.post(
            "/api/boardgames/reservations", json={"board_game_ids": [1, 2]}, headers=MEMBER
        )
        assert resp.status_code == 409
        assert resp.json()["unavailable_board_game_ids"] == [2]

    def test_anonymous_cannot_reserve(self, client, catalog):
        resp = client.post("/api/boardgames/reservations", json={"board_game_ids": [1]})
        assert resp.status_code == 401

    def test_item_lifecycle(self, client, catalog):
        reservation = client.post(
            "/api/boardgames/reservations", json={"board_game_ids": [1]}, headers=MEMBER
        ).json()
        rid, item_id = reservation["id"], reservation["items"][0]["id"]
        events = f"/api/boardgames/reservations/{rid}/items/{item_id}/events"

        assert client.post(events, json={"type": "handed_over"}, headers=MEMBER).status_code == 403
        resp = client.post(events, json={"type": "handed_over"}, headers=MANAGER)
        assert resp.status_code == 201
        assert resp.json()["new_state"] == "current"

        resp = client.post(events, json={"type": "assigned"}, headers=MANAGER)
        assert resp.status_code == 409

        history = client.get(
            f"/api/boardgames/reservations/{rid}/items/{item_id}/history", headers=MANAGER
        ).json()
        assert [e["type"] for e in history] == ["created", "handed_over"]

    def test_update_note(self, client, catalog):
        rid = client.post(
            "/api/boardgames/reservations", json={"board_game_ids": [1]}, headers=MEMBER
        ).json()["id"]
        resp = client.put(
            f"/api/boardgames/reservations/{rid}/note", json={"note_user": "late"}, headers=MEMBER
        )
        assert resp.status_code == 204
        assert client.get(
            f"/api/boardgames/reservations/{rid}", headers=MEMBER
        ).json()["note_user"] == "late"


# ===========================================================================
# Users
# ===========================================================================
class TestUserRoutes:
    def test_register_self(self, client):
        resp = client.put(
            "/api/users/me", json={"name": "Nováček", "email": "novacek@kachna.test"},
            headers=auth(50),
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == 50

    def test_register_self_requires_token(self, client):
        resp = client.put("/api/users/me", json={"name": "X", "email": "x@kachna.test"})
        assert resp.status_code == 401

    def test_admin_assigns_role(self, client, catalog):
        resp = client.put(
            f"/api/users/42/roles/{STATES_MANAGER_ROLE}", headers=auth(1, [ADMIN_ROLE])
        )
        assert resp.status_code == 200
        assert STATES_MANAGER_ROLE in resp.json()["role_names"]

        resp = client.put(f"/api/users/42/roles/{STATES_MANAGER_ROLE}", headers=auth(1, [ADMIN_ROLE]))
        assert resp.status_code == 409

    def test_member_cannot_list_users(self, client, catalog):
        assert client.get("/api/users", headers=MEMBER).status_code == 403

    def test_role_list(self, client, catalog):
        resp = client.get("/api/users/roles", headers=auth(1, [ADMIN_ROLE]))
        assert resp.status_code == 200
        assert STATES_MANAGER_ROLE in [r["name"] for r in resp.json()]
        assert client.get("/api/users/roles", headers=MEMBER).status_code == 403


# ===========================================================================
# Club states
# ===========================================================================
class TestClubStateRoutes:
    def test_closed_when_nothing_planned(self, client):
        resp = client.get("/api/states/current")
        assert resp.status_code == 200
        assert resp.json()["state"] == "closed"

    def test_plan_and_delete(self, client, catalog):
        start = utcnow() + hours(1)
        body = {
            "state": "open_bar",
            "start": start.isoformat(),
            "planned_end": (start + hours(3)).isoformat(),
        }
        manager = auth(7, [STATES_MANAGER_ROLE])

        assert client.post("/api/states", json=body, headers=MEMBER).status_code == 403
        resp = client.post("/api/states", json=body, headers=manager)
        assert resp.status_code == 201
        state_id = resp.json()["id"]

        resp = client.post("/api/states", json=body, headers=manager)
        assert resp.status_code == 409

        listed = client.get("/api/states").json()
        assert [s["id"] for s in listed] == [state_id]
        assert "note_internal" not in listed[0]

        assert client.delete(f"/api/states/{state_id}", headers=manager).status_code == 204
        assert client.get("/api/states").json() == []

    def test_repeating_state_with_offset_times(self, client, catalog):
        first = (utcnow() + timedelta(days=7)).date()
        body = {
            "state": "open_chillzone",
            "day_of_week": first.weekday(),
            "effective_from": first.isoformat(),
            "effective_to": (first + timedelta(days=6)).isoformat(),
            "time_from": "18:00:00+01:00",
            "time_to": "20:00:00+01:00",
        }
        resp = client.post("/api/states/repeating", json=body, headers=auth(7, [STATES_MANAGER_ROLE]))
        assert resp.status_code == 201
        created = resp.json()
        assert (created["time_from"], created["time_to"]) == ("17:00:00", "19:00:00")
        assert len(created["planned_state_ids"]) == 1
