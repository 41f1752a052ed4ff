"""
Tests for the HTTP API.
"""

import threading
import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from gamecluster.api.dependencies import get_config, get_database, get_session_factory, get_snapshot
from gamecluster.api.main import app
from gamecluster.recommender.store import GameClusterStore
from gamecluster.services.similar_games_service import SimilarGamesService


@pytest.fixture
def client(session_factory, cfg, seed):
    seed([(101, 3, 0.05), (102, 3, 0.12), (103, 3, 0.20), (104, 3, 0.30)])

    def override_database():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_database] = override_database
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_snapshot] = lambda: None

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def session_events(engine):
    """Session factory whose sessions record when they are closed."""
    events = []
    closed = threading.Event()

    class RecordingSession(Session):
        def close(self):
            super().close()
            events.append("session_closed")
            closed.set()

    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=RecordingSession)
    app.dependency_overrides[get_session_factory] = lambda: factory
    return events, closed


class TestSimilarGamesEndpoint:

    def test_similar_games(self, client):
        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": 2})

        assert response.status_code == 200
        body = response.json()
        assert [item["app_id"] for item in body["results"]] == [103, 104]
        assert set(body["results"][0]) == {"app_id", "cluster_id", "distance_to_centroid", "title", "price", "image_url"}
        assert body["last_evaluated"] == {"distance_to_centroid": 0.3, "app_id": 104}
        assert set(body) == {"results", "last_evaluated"}

    def test_unknown_id_answers_empty_results(self, client):
        response = client.post("/similar-games", json={"app_id": "999999", "similar_game_count": 5})

        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_zero_count(self, client):
        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": 0})

        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_negative_count_is_rejected(self, client):
        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": -1})

        assert response.status_code == 422

    def test_count_above_max_is_rejected(self, client, cfg):
        cfg.config["retrieval"]["max_similar_games"] = 2

        assert client.post("/similar-games", json={"app_id": "102", "similar_game_count": 2}).status_code == 200
        assert client.post("/similar-games", json={"app_id": "102", "similar_game_count": 3}).status_code == 422

    def test_worker_closes_its_own_session(self, client, session_events):
        events, closed = session_events

        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": 2})

        assert response.status_code == 200
        assert closed.wait(timeout=5)
        assert events == ["session_closed"]

    def test_timeout_answers_empty_and_session_outlives_the_query(self, client, cfg, session_events, monkeypatch):
        events, closed = session_events
        cfg.config["api"]["request_timeout_seconds"] = 0.05
        range_query = GameClusterStore.range_query

        def slow_range_query(self, *args, **kwargs):
            time.sleep(0.3)
            records = range_query(self, *args, **kwargs)
            events.append("range_query")
            return records

        monkeypatch.setattr(GameClusterStore, "range_query", slow_range_query)

        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": 2})

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert closed.wait(timeout=5)
        assert events == ["range_query", "session_closed"]

    def test_unexpected_failure_is_500(self, client, monkeypatch):
        def boom(self, request):
            raise RuntimeError("store exploded")

        monkeypatch.setattr(SimilarGamesService, "find_similar", boom)

        response = client.post("/similar-games", json={"app_id": "102", "similar_game_count": 2})

        assert response.status_code == 500


class TestHealthEndpoint:

    def test_health(self, client):
        response = client.get("/similar-games/health")

        assert response.status_code == 200
        body = response.json()
        assert body["store"]["exported_records"] == 4
        assert body["model"]["trained"] is False
        assert body["retrieval"]["default_strategy"] == "range_scan"

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"
