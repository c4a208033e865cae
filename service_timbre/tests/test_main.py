"""
Unit tests for Timbre main service.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from service_timbre.app.main import TimbreService, create_app
from service_timbre.app.models import TimbreDetails, TimbrePage, VoiceName
from service_timbre.app.validation import AcceptAllModelValidator, ModelConfigValidator
from shared.config import get_config
from shared.errors import ValidationError
from shared.logging import request_id_var, user_id_var


class TestTimbreService:
    """Test cases for TimbreService."""

    @pytest.fixture
    def timbre_service(self):
        """Create TimbreService instance."""
        return TimbreService()

    @pytest.fixture
    def client(self, timbre_service):
        """Create test client."""
        return TestClient(timbre_service.app)

    @pytest.fixture
    def details(self):
        return TimbreDetails(
            id="a1b2c3",
            tts_model_id="TTS_EdgeTTS",
            name="Xiaoxiao",
            tts_voice="zh-CN-XiaoxiaoNeural",
            languages="zh",
            sort=1,
        )

    @pytest.fixture
    def timbre_payload(self):
        return {
            "ttsModelId": "TTS_EdgeTTS",
            "name": "Xiaoxiao",
            "ttsVoice": "zh-CN-XiaoxiaoNeural",
            "languages": "zh",
            "sort": 1,
        }

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "timbre"
        assert "caching" in data["capabilities"]

    def test_health_with_dependencies(self, timbre_service, client):
        """Test health endpoint with dependency checks."""
        with patch.object(timbre_service.cache, "health_check", new_callable=AsyncMock, return_value=True), \
             patch.object(timbre_service.persistence, "health_check", new_callable=AsyncMock, return_value=True):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"redis": "ok", "postgres": "ok"}

    def test_health_degraded_without_backends(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_service_initialization(self, timbre_service):
        """Test service initialization."""
        assert timbre_service.service_name == "timbre"
        assert timbre_service.port == 8013
        assert isinstance(timbre_service.timbres.validator, AcceptAllModelValidator)
        assert timbre_service.timbres.invalidate_on_delete is False

    def test_config_switches(self):
        config = get_config("timbre", 8013, validate_tts_model=True, invalidate_on_delete=True,
                            cache_namespace="xz")
        service = TimbreService(config)

        assert isinstance(service.timbres.validator, ModelConfigValidator)
        assert service.timbres.invalidate_on_delete is True
        assert service.cache.details_key("1") == "xz:details:1"

    def test_page(self, timbre_service, client, details):
        page = TimbrePage(items=[details], total=1, page=1, limit=10)
        with patch.object(timbre_service.timbres, "list", new_callable=AsyncMock, return_value=page) as mock_list:
            response = client.get("/ttsVoice", params={"ttsModelId": "TTS_EdgeTTS", "name": "Xiao"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["ttsVoice"] == "zh-CN-XiaoxiaoNeural"
        mock_list.assert_awaited_once_with(1, 10, "TTS_EdgeTTS", "Xiao")

    def test_page_requires_model_id(self, client):
        response = client.get("/ttsVoice")
        assert response.status_code == 422

    def test_get_details(self, timbre_service, client, details):
        with patch.object(timbre_service.timbres, "get_details", new_callable=AsyncMock, return_value=details):
            response = client.get("/ttsVoice/a1b2c3")

        assert response.status_code == 200
        assert response.json()["ttsModelId"] == "TTS_EdgeTTS"

    def test_get_details_not_found(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "get_details", new_callable=AsyncMock, return_value=None):
            response = client.get("/ttsVoice/missing")

        assert response.status_code == 404

    def test_create(self, timbre_service, client, timbre_payload):
        with patch.object(timbre_service.timbres, "create", new_callable=AsyncMock, return_value="f" * 32) as mock_create:
            response = client.post("/ttsVoice", json=timbre_payload, headers={"X-User-Id": "7"})

        assert response.status_code == 201
        assert response.json() == {"id": "f" * 32}
        data = mock_create.await_args.args[0]
        assert data.tts_voice == "zh-CN-XiaoxiaoNeural"
        assert mock_create.await_args.kwargs == {"user_id": 7}

    def test_create_rejects_missing_fields(self, client):
        response = client.post("/ttsVoice", json={"name": "Xiaoxiao"})
        assert response.status_code == 422

    def test_create_invalid_model_maps_to_400(self, timbre_service, client, timbre_payload):
        with patch.object(timbre_service.timbres, "create", new_callable=AsyncMock,
                          side_effect=ValidationError("Invalid TTS model id")):
            response = client.post("/ttsVoice", json=timbre_payload)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_update(self, timbre_service, client, timbre_payload):
        with patch.object(timbre_service.timbres, "update", new_callable=AsyncMock) as mock_update:
            response = client.put("/ttsVoice/a1b2c3", json=timbre_payload)

        assert response.status_code == 200
        assert mock_update.await_args.args[0] == "a1b2c3"
        assert mock_update.await_args.kwargs == {"user_id": None}

    def test_update_store_failure_is_500(self, timbre_service, timbre_payload):
        client = TestClient(timbre_service.app, raise_server_exceptions=False)
        with patch.object(timbre_service.timbres, "update", new_callable=AsyncMock,
                          side_effect=RuntimeError("connection reset")):
            response = client.put("/ttsVoice/a1b2c3", json=timbre_payload)

        assert response.status_code == 500

    def test_delete(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "delete", new_callable=AsyncMock) as mock_delete:
            response = client.post("/ttsVoice/delete", json=["a", "b"])

        assert response.status_code == 200
        assert response.json()["deleted"] == 2
        mock_delete.assert_awaited_once_with(["a", "b"])

    def test_voice_names_passes_caller(self, timbre_service, client):
        voices = [VoiceName(id="c1", name="Cloned voice: Mine"), VoiceName(id="t1", name="Xiaoxiao")]
        with patch.object(timbre_service.timbres, "list_voice_names", new_callable=AsyncMock,
                          return_value=voices) as mock_names:
            response = client.get("/ttsVoice/names", params={"ttsModelId": "TTS_EdgeTTS"},
                                  headers={"X-User-Id": "42"})

        assert response.status_code == 200
        assert [v["id"] for v in response.json()] == ["c1", "t1"]
        mock_names.assert_awaited_once_with("TTS_EdgeTTS", None, user_id=42)

    def test_voice_names_empty_is_null(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "list_voice_names", new_callable=AsyncMock, return_value=None):
            response = client.get("/ttsVoice/names")

        assert response.status_code == 200
        assert response.json() is None

    def test_voice_name_by_id(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "get_name_by_id", new_callable=AsyncMock, return_value="Xiaoxiao"):
            response = client.get("/ttsVoice/names/t1")

        assert response.json() == {"id": "t1", "name": "Xiaoxiao"}

    def test_voice_name_by_id_not_found(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "get_name_by_id", new_callable=AsyncMock, return_value=None):
            response = client.get("/ttsVoice/names/none")

        assert response.status_code == 404

    def test_voice_by_code(self, timbre_service, client):
        with patch.object(timbre_service.timbres, "get_by_voice_code", new_callable=AsyncMock,
                          return_value=VoiceName(id="t1", name="Xiaoxiao")) as mock_code:
            response = client.get("/ttsVoice/voiceCode",
                                  params={"ttsModelId": "TTS_EdgeTTS", "voiceCode": "xx"})

        assert response.json() == {"id": "t1", "name": "Xiaoxiao"}
        mock_code.assert_awaited_once_with("TTS_EdgeTTS", "xx")

    def test_caller_id_in_log_context(self, timbre_service, client):
        seen = []

        async def record_context(*args, **kwargs):
            seen.append((user_id_var.get(), request_id_var.get()))
            return None

        with patch.object(timbre_service.timbres, "list_voice_names", new_callable=AsyncMock,
                          side_effect=record_context):
            client.get("/ttsVoice/names", headers={"X-User-Id": "42", "X-Request-Id": "req-1"})

        assert seen == [("42", "req-1")]

    def test_no_caller_id_leaves_context_empty(self, timbre_service, client):
        seen = []

        async def record_context(*args, **kwargs):
            seen.append(user_id_var.get())
            return None

        with patch.object(timbre_service.timbres, "list_voice_names", new_callable=AsyncMock,
                          side_effect=record_context):
            client.get("/ttsVoice/names")

        assert seen == [None]


def test_create_app():
    app = create_app()
    paths = {route.path for route in app.routes}
    assert {"/ttsVoice", "/ttsVoice/{timbre_id}", "/ttsVoice/names", "/health", "/metrics"} <= paths
