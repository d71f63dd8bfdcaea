"""
Tests for the HTTP routes: request wiring, tenant header and error mapping.

The command facade is replaced with a fake so only the HTTP layer is exercised.
"""

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from rundeklar.api.main import app
from rundeklar.api.routes import get_training_api
from rundeklar.models.schemas import AutoArrangeResponse, TrainingSessionResponse
from rundeklar.database.models import SessionStatus
from rundeklar.utils.errors import (
    AlreadyActiveError,
    CourtNotFoundError,
    NoActiveSessionError,
    SlotOccupiedError,
    StoreUnavailableError,
    ValidationError,
)


class FakeTrainingApi:
    """Records calls and returns canned results."""

    def __init__(self, tenant_id="default"):
        self.tenant_id = tenant_id
        self.calls = []
        self.players = SimpleNamespace(list=self._players_list, create=self._raise_validation, update=self._noop)
        self.session = SimpleNamespace(
            start_or_get_active=self._start,
            get_active=self._get_active,
            end_active=self._raise(NoActiveSessionError()),
        )
        self.check_ins = SimpleNamespace(
            list_active=self._raise(StoreUnavailableError("timed out")),
            add=self._record("check_ins.add"),
            update=self._record("check_ins.update"),
            remove=self._remove,
        )
        self.matches = SimpleNamespace(
            list=self._record("matches.list"),
            auto_arrange=self._auto_arrange,
            reset=self._reset,
            move=self._raise(SlotOccupiedError(court_idx=1, slot=0)),
            swap=self._raise(CourtNotFoundError(court_idx=9)),
            record_result=self._record("matches.record_result"),
        )
        self.statistics = SimpleNamespace(
            snapshots=self._record("statistics.snapshots"),
            seasons=self._seasons,
            player=self._raise(RuntimeError("boom")),
            attendance=self._record("statistics.attendance"),
        )

    def _record(self, name):
        async def call(*args, **kwargs):
            self.calls.append((name, args))
            return []
        return call

    def _raise(self, error):
        async def call(*args, **kwargs):
            raise error
        return call

    async def _noop(self, *args):
        return None

    async def _players_list(self, filters=None):
        self.calls.append(("players.list", (filters,)))
        return []

    async def _raise_validation(self, data):
        raise ValidationError("name", "must not be blank")

    async def _start(self):
        return TrainingSessionResponse(
            id=1, date=datetime(2026, 10, 1, 18, 0), status=SessionStatus.ACTIVE, ended_at=None
        )

    async def _get_active(self):
        return None

    async def _remove(self, data):
        self.calls.append(("check_ins.remove", (data,)))
        return True

    async def _auto_arrange(self, round=None):
        self.calls.append(("matches.auto_arrange", (round,)))
        return AutoArrangeResponse(round=round or 1, filled_courts=2, benched=1, benched_player_ids=[7])

    async def _reset(self, round=None):
        return 3

    async def _seasons(self):
        return ["2026-2027", "2025-2026"]


@pytest.fixture
def fake_api():
    fake = FakeTrainingApi()
    app.dependency_overrides[get_training_api] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_players_passes_filters(client, fake_api):
    response = client.get("/api/players", params={"q": "an", "active": "true"})

    assert response.status_code == 200
    assert fake_api.calls == [("players.list", ({"q": "an", "active": True},))]


def test_validation_error_maps_to_422(client, fake_api):
    response = client.post("/api/players", json={"name": " "})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == "validation_error"
    assert detail["field"] == "name"


def test_non_object_body_rejected(client, fake_api):
    response = client.post("/api/players", json=[1, 2])

    assert response.status_code == 422


def test_session_routes(client, fake_api):
    assert client.post("/api/session/start").json()["id"] == 1
    assert client.get("/api/session/active").json() is None

    response = client.post("/api/session/end")
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "no_active_session"


def test_store_unavailable_maps_to_503(client, fake_api):
    response = client.get("/api/check-ins")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "store_unavailable"


def test_check_in_routes_fill_player_id_from_path(client, fake_api):
    client.patch("/api/check-ins/5", json={"notes": "late"})
    response = client.delete("/api/check-ins/5")

    assert response.json() == {"removed": True}
    assert ("check_ins.update", ({"notes": "late", "player_id": 5},)) in fake_api.calls
    assert ("check_ins.remove", ({"player_id": 5},)) in fake_api.calls


def test_match_routes(client, fake_api):
    response = client.post("/api/matches/auto-arrange", params={"round": 2})
    assert response.status_code == 200
    assert response.json()["benched_player_ids"] == [7]
    assert ("matches.auto_arrange", (2,)) in fake_api.calls

    assert client.post("/api/matches/reset").json() == {"deleted": 3}

    response = client.post("/api/matches/move", json={"player_id": 1, "to_court_idx": 1, "to_slot": 0})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "slot_occupied"

    response = client.post("/api/matches/swap", json={"player_a_id": 1, "player_b_id": 2})
    assert response.status_code == 404


def test_record_result_puts_match_id_in_body(client, fake_api):
    client.put("/api/matches/12/result", json={"score_data": {"sets": []}})

    assert ("matches.record_result", ({"score_data": {"sets": []}, "match_id": 12},)) in fake_api.calls


def test_statistics_routes(client, fake_api):
    assert client.get("/api/statistics/seasons").json() == ["2026-2027", "2025-2026"]

    response = client.get("/api/statistics/players/3")
    assert response.status_code == 500


def test_messages_are_localized():
    error = AlreadyActiveError()

    assert error.localized("da") == "Der er allerede en aktiv træning"
    assert error.localized("en") == "A training session is already active"
    assert error.code == "already_active"


def test_empty_tenant_header_rejected(client):
    response = client.get("/api/players", headers={"X-Tenant-ID": "  "})

    assert response.status_code == 400


def test_tenant_header_selects_tenant():
    api = get_training_api("club-42")

    assert api.tenant_id == "club-42"
