"""Integration tests for the MedFit API endpoints."""
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from unittest.mock import AsyncMock, Mock
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from models.conversation import INITIAL_GREETING
from models.disease import DiseaseRecord, SortKey
from services.auth import UserSession
from services.disease_store import DiseaseStoreError
from services.llm_client import LLMResponse
from services.retry import RetryPolicy
from services.workspace import WorkspaceRegistry

SESSIONS = {
    "alice-token": UserSession(user_id="alice", email="alice@example.com", access_token="alice-token"),
}
AUTH = {"Authorization": "Bearer alice-token"}

CATALOG = [
    DiseaseRecord(id="1", name="Hypertension", diagnosis="BP > 130/80", treatment="ACE inhibitors"),
    DiseaseRecord(id="2", name="Type 2 Diabetes", diagnosis="HbA1c >= 6.5%", treatment="Metformin"),
]


class FakeGenerator:
    """Answers every prompt, or fails while ``error`` is set."""

    def __init__(self):
        self.error = None
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(
            text="Diabetes is a chronic condition affecting blood sugar.",
            tokens_input=50,
            tokens_output=10,
            latency_ms=5,
            model_used="fake",
        )


class FakeStore:
    """Case-insensitive substring search over a fixed catalog."""

    def __init__(self):
        self.failures = []

    async def query(self, name_substring, sort_key, ascending):
        if self.failures:
            raise self.failures.pop(0)
        matches = [r for r in CATALOG if not name_substring or name_substring.lower() in r.name.lower()]
        return sorted(matches, key=lambda r: r.name, reverse=not ascending)


async def no_sleep(seconds):
    return None


@pytest.fixture
def services():
    """Install fake services in place of the ones built at startup."""
    import main

    generator = FakeGenerator()
    store = FakeStore()
    main.auth_service = Mock()
    main.auth_service.get_session = AsyncMock(side_effect=lambda token: SESSIONS.get(token))
    main.auth_service.sign_out = AsyncMock()
    main.llm_client = generator
    main.disease_store = store
    main.workspaces = WorkspaceRegistry(
        generator,
        store,
        chat_retry_policy=RetryPolicy(max_attempts=3, base_delay_ms=1000),
        debounce_delay=0.01,
        sleep=no_sleep,
    )

    yield main

    main.workspaces.close_all()
    main.auth_service = None
    main.llm_client = None
    main.disease_store = None
    main.workspaces = None


@pytest.fixture
def client(services):
    from main import app
    return TestClient(app)


def receive_until(websocket, predicate, limit=10):
    """Read socket messages until one matches."""
    for _ in range(limit):
        message = websocket.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message not received")


def next_results(websocket):
    """Skip to the end of the next issued query."""
    receive_until(websocket, is_state("loading"))
    return receive_until(websocket, lambda m: m["type"] == "state" and not m["is_loading"])


def is_state(status, search_term=None):
    def check(message):
        if message["type"] != "state" or message["status"] != status:
            return False
        return search_term is None or message["criteria"]["search_term"] == search_term
    return check


class TestHealthEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "MedFit API"

    def test_health_reports_initialization(self, client):
        response = client.get("/health")
        assert response.json()["services_initialized"] is True


class TestAuthentication:
    """Pipelines are only reachable with a valid session."""

    def test_uninitialized_services_return_503(self):
        import main
        main.auth_service = None
        main.workspaces = None

        response = TestClient(main.app).get("/session", headers=AUTH)

        assert response.status_code == 503

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer unknown"},
        {"Authorization": "Basic alice-token"},
    ])
    def test_invalid_credentials_return_401(self, client, headers):
        response = client.get("/chat", headers=headers)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_session(self, client):
        response = client.get("/session", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"user_id": "alice", "email": "alice@example.com"}

    def test_sign_out_discards_pipelines(self, client, services):
        client.post("/chat", json={"message": "What is diabetes?"}, headers=AUTH)

        response = client.post("/auth/sign-out", headers=AUTH)

        assert response.status_code == 200
        services.auth_service.sign_out.assert_awaited_once_with(SESSIONS["alice-token"])
        assert services.workspaces.get("alice") is None
        assert len(client.get("/chat", headers=AUTH).json()["transcript"]) == 1

    def test_sign_out_discards_pipelines_when_provider_rejects(self, client, services):
        from supabase import AuthError

        class Rejected(AuthError):
            def __init__(self):
                Exception.__init__(self, "session not found")
                self.message = "session not found"

        services.auth_service.sign_out.side_effect = Rejected()
        services.workspaces.get_or_create(SESSIONS["alice-token"])

        response = client.post("/auth/sign-out", headers=AUTH)

        assert response.status_code == 200
        assert services.workspaces.get("alice") is None


class TestChatEndpoints:
    """Test suite for /chat."""

    def test_get_chat_starts_with_greeting(self, client):
        response = client.get("/chat", headers=AUTH)

        data = response.json()
        assert data["is_awaiting_response"] is False
        assert data["transcript"] == [{"role": "assistant", "content": INITIAL_GREETING.content}]

    def test_post_chat_appends_question_and_answer(self, client, services):
        response = client.post("/chat", json={"message": "What is diabetes?"}, headers=AUTH)

        assert response.status_code == 200
        transcript = response.json()["transcript"]
        assert [t["role"] for t in transcript] == ["assistant", "user", "assistant"]
        assert transcript[1]["content"] == "What is diabetes?"
        assert transcript[2]["content"].startswith("Diabetes is a chronic condition")
        assert "Current question: What is diabetes?" in services.llm_client.prompts[0]

    def test_generation_failure_is_an_assistant_turn(self, client, services):
        services.llm_client.error = RuntimeError("429 quota exceeded")

        response = client.post("/chat", json={"message": "What is asthma?"}, headers=AUTH)

        assert response.status_code == 200
        reply = response.json()["transcript"][-1]
        assert reply["role"] == "assistant"
        assert "rate limit" in reply["content"]
        assert len(services.llm_client.prompts) == 3

    def test_blank_message_rejected(self, client):
        assert client.post("/chat", json={"message": "   "}, headers=AUTH).status_code == 400
        assert client.post("/chat", json={"message": ""}, headers=AUTH).status_code == 422
        assert len(client.get("/chat", headers=AUTH).json()["transcript"]) == 1

    def test_pending_reply_returns_409(self, client, services):
        conversation = services.workspaces.get_or_create(SESSIONS["alice-token"]).conversation
        conversation.submit = AsyncMock(return_value=False)

        response = client.post("/chat", json={"message": "What is COPD?"}, headers=AUTH)

        assert response.status_code == 409


class TestDiseaseEndpoints:
    """Test suite for /diseases and the live search socket."""

    def test_get_diseases_starts_search(self, client, services):
        response = client.get("/diseases", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "loading"
        assert data["is_loading"] is True
        assert data["criteria"] == {"search_term": "", "sort_by": "name", "order": "asc"}
        assert services.workspaces.get("alice").diseases.started

    def test_socket_rejects_invalid_session(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/diseases?token=unknown") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 1008

    def test_socket_search_flow(self, client):
        with client.websocket_connect("/ws/diseases?token=alice-token") as websocket:
            first = websocket.receive_json()
            assert first["type"] == "state"
            assert first["is_loading"] is True

            loaded = receive_until(websocket, is_state("success"))
            assert [r["name"] for r in loaded["results"]] == ["Hypertension", "Type 2 Diabetes"]

            websocket.send_json({"type": "criteria", "search_term": "diabet"})
            found = next_results(websocket)
            assert found["criteria"]["search_term"] == "diabet"
            assert [r["name"] for r in found["results"]] == ["Type 2 Diabetes"]

            websocket.send_json({"type": "criteria", "search_term": "", "order": "desc"})
            reversed_state = next_results(websocket)
            assert reversed_state["criteria"]["order"] == "desc"
            assert [r["name"] for r in reversed_state["results"]] == ["Type 2 Diabetes", "Hypertension"]

    def test_socket_failure_retry_and_dismiss(self, client, services):
        services.disease_store.failures = [DiseaseStoreError("connection reset")]

        with client.websocket_connect("/ws/diseases?token=alice-token") as websocket:
            failed = receive_until(websocket, is_state("failed"))
            assert failed["error"] == "Failed to fetch diseases. Please try again later."
            assert failed["results"] == []

            websocket.send_json({"type": "dismiss_error"})
            dismissed = receive_until(websocket, lambda m: m["type"] == "state")
            assert dismissed["error"] is None

            websocket.send_json({"type": "retry"})
            recovered = receive_until(websocket, is_state("success"))
            assert len(recovered["results"]) == 2

    def test_socket_reports_invalid_messages(self, client):
        with client.websocket_connect("/ws/diseases?token=alice-token") as websocket:
            receive_until(websocket, is_state("success"))

            websocket.send_text('{"type": "criteria", "sort_by": "severity"}')
            error = receive_until(websocket, lambda m: m["type"] == "error")

            assert error["detail"][0]["loc"] == ["sort_by"]

    def test_socket_sort_by_created_at(self, client, services):
        with client.websocket_connect("/ws/diseases?token=alice-token") as websocket:
            receive_until(websocket, is_state("success"))

            websocket.send_json({"type": "criteria", "sort_by": "created_at"})
            assert next_results(websocket)["status"] == "success"

        criteria = services.workspaces.get("alice").diseases.criteria
        assert criteria.sort_key is SortKey.CREATED_AT
