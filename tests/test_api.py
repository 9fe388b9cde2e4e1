"""
Tests for the HTTP API.
"""

import os
import tempfile
from unittest.mock import Mock, patch

from fastapi.testclient import TestClient

from ai_chat_router.analytics.emitter import AnalyticsEmitter
from ai_chat_router.api.app import create_app
from ai_chat_router.config.loader import Settings
from ai_chat_router.core.errors import PersistenceError, UpstreamError
from ai_chat_router.core.orchestrator import ConversationOrchestrator
from ai_chat_router.core.token_counter import TokenUsage
from ai_chat_router.demo.catalog import seed_demo_catalog
from ai_chat_router.sdk.identity import StaticTokenIdentityProvider
from ai_chat_router.sdk.openai_client import Completion
from ai_chat_router.storage.repository import ChatRepository


AUTH = {"Authorization": "Bearer token-1"}


class ApiTestCase:
    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        db_path = os.path.join(self.temp_dir, "test.db")
        self.repository = ChatRepository(db_path)
        seed_demo_catalog(self.repository)

        self.upstream = Mock()
        self.upstream.complete.return_value = Completion("Hi there!", TokenUsage(30, 12, 42))
        settings = Settings(database_path=db_path)
        self.orchestrator = ConversationOrchestrator(
            repository=self.repository,
            upstream=self.upstream,
            emitter=AnalyticsEmitter(self.repository),
            settings=settings
        )
        self.app = create_app(
            settings=settings,
            orchestrator=self.orchestrator,
            identity=StaticTokenIdentityProvider({"token-1": "user-1", "token-2": "user-2"})
        )
        self.client = TestClient(self.app, raise_server_exceptions=False)

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestAuth(ApiTestCase):
    """Test authentication on every endpoint."""

    def test_missing_header(self):
        for path in ("/chat", "/route", "/analytics"):
            body = {"message": "hi", "taskType": "chat", "action": "get_dashboard"}
            response = self.client.post(path, json=body)
            assert response.status_code == 401
            assert response.json() == {"error": "No authorization header"}

    def test_bad_token(self):
        response = self.client.post("/chat", json={"message": "hi"},
                                    headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid authentication"}
        self.upstream.complete.assert_not_called()

    def test_cors_preflight(self):
        response = self.client.options("/chat", headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        })
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestChatEndpoint(ApiTestCase):
    """Test POST /chat."""

    def test_new_conversation(self):
        response = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Hi there!"
        assert data["tokensUsed"] == 42
        assert data["model"] == "gpt-5-mini-2025-08-07"
        assert len(self.repository.list_turns(data["conversationId"])) == 2

    def test_continue_conversation(self):
        first = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH).json()
        response = self.client.post("/chat", headers=AUTH, json={
            "message": "More", "conversationId": first["conversationId"]
        })
        assert response.status_code == 200
        assert response.json()["conversationId"] == first["conversationId"]

    def test_empty_conversation_id(self):
        response = self.client.post("/chat", json={"message": "Hello", "conversationId": ""}, headers=AUTH)

        assert response.status_code == 200
        conversation_id = response.json()["conversationId"]
        assert conversation_id
        assert len(self.repository.list_turns(conversation_id)) == 2

    def test_missing_message(self):
        response = self.client.post("/chat", json={}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body: message"}

    def test_empty_message(self):
        response = self.client.post("/chat", json={"message": ""}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "message is required"}

    def test_unknown_conversation(self):
        response = self.client.post("/chat", headers=AUTH, json={
            "message": "Hello", "conversationId": "does-not-exist"
        })
        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_other_users_conversation_looks_missing(self):
        owned = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH).json()
        response = self.client.post("/chat", headers={"Authorization": "Bearer token-2"}, json={
            "message": "Hello", "conversationId": owned["conversationId"]
        })
        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_upstream_failure(self):
        self.upstream.complete.side_effect = UpstreamError(details="OpenAI API error: 503")
        response = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH)
        assert response.status_code == 500
        assert response.json() == {"error": "Upstream model provider error"}
        assert self.repository.count_conversations("user-1") == 0

    def test_unsaved_reply(self):
        with patch.object(self.repository, "persist_exchange",
                          side_effect=PersistenceError(details="disk full")):
            response = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        assert response.status_code == 500
        data = response.json()
        assert data["unsaved"] is True
        assert data["message"] == "Hi there!"
        assert data["error"] == "Failed to save conversation"

    def test_unexpected_error(self):
        with patch.object(self.orchestrator, "send_message", side_effect=RuntimeError("boom")):
            response = self.client.post("/chat", json={"message": "Hello"}, headers=AUTH)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestRouteEndpoint(ApiTestCase):
    """Test POST /route."""

    def test_route(self):
        response = self.client.post("/route", headers=AUTH, json={
            "taskType": "code", "complexity": "high", "content": "x" * 40
        })

        assert response.status_code == 200
        data = response.json()
        assert data["selectedModel"]["name"] == "gpt-5-2025-08-07"
        assert data["routing"]["taskType"] == "code"
        assert data["estimates"]["tokens"] == 10
        assert data["userContext"]["languagePreference"] == "en"
        self.upstream.complete.assert_not_called()

    def test_missing_task_type(self):
        response = self.client.post("/route", json={}, headers=AUTH)
        assert response.status_code == 400
        assert "taskType" in response.json()["error"]

    def test_values_are_case_insensitive(self):
        response = self.client.post("/route", headers=AUTH, json={
            "taskType": "CHAT", "complexity": "HIGH", "priority": "Normal"
        })
        assert response.status_code == 200
        assert response.json()["routing"]["complexity"] == "high"
        assert response.json()["selectedModel"]["name"] == "gpt-5-2025-08-07"

    def test_bad_complexity(self):
        response = self.client.post("/route", json={"taskType": "chat", "complexity": "huge"}, headers=AUTH)
        assert response.status_code == 400

    def test_empty_catalog(self):
        empty = ChatRepository(os.path.join(self.temp_dir, "empty.db"))
        empty.initialize_schema()
        self.orchestrator.repository = empty

        response = self.client.post("/route", json={"taskType": "chat"}, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"error": "No active AI models available"}


class TestAnalyticsEndpoint(ApiTestCase):
    """Test POST /analytics."""

    def test_dashboard(self):
        self.client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        response = self.client.post("/analytics", json={"action": "get_dashboard"}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["timeRange"] == "7d"
        assert data["summary"]["totalMessages"] == 1
        assert data["summary"]["totalConversations"] == 1
        assert data["eventTypeBreakdown"] == {"ai_chat": 1}

    def test_log_event(self):
        response = self.client.post("/analytics", headers=AUTH, json={
            "action": "log_event", "eventType": "page_view", "eventData": {"page": "/"}
        })
        assert response.status_code == 200
        assert response.json() == {"success": True}
        events = [e for e in self.repository.fetch_analytics_events("user-1") if e.event_type == "page_view"]
        assert events[0].event_data == {"page": "/"}

    def test_log_event_requires_type(self):
        response = self.client.post("/analytics", json={"action": "log_event"}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "eventType is required"}

    def test_invalid_action(self):
        response = self.client.post("/analytics", json={"action": "delete_everything"}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action specified"}
