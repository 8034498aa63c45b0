import json
from dataclasses import replace

import httpx
import pytest

from app.core.metrics import request_metrics
from app.whatsapp.base import GatewayConfigurationError, GatewayError, GatewayUnavailableError, InstanceAlreadyExistsError
from app.whatsapp.evolution_client import EvolutionGatewayClient
from tests.fixtures_data import FETCH_INSTANCES_V1


def _client(settings, handler):
    return EvolutionGatewayClient(settings, transport=httpx.MockTransport(handler))


def test_fetch_instance_sends_api_key_and_parses_list(gateway_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json=FETCH_INSTANCES_V1)

    found = _client(gateway_settings, handler).fetch_instance("bot-b1")

    assert seen == {
        "path": "/instance/fetchInstances",
        "params": {"instanceName": "bot-b1"},
        "apikey": "test-api-key",
    }
    assert found.name == "bot-b1"
    assert found.is_open is True


def test_fetch_instance_returns_none_on_not_found(gateway_settings):
    client = _client(gateway_settings, lambda request: httpx.Response(404, json={"error": "Not Found"}))

    assert client.fetch_instance("bot-b1") is None


def test_fetch_instance_returns_none_on_empty_list(gateway_settings):
    client = _client(gateway_settings, lambda request: httpx.Response(200, json=[]))

    assert client.fetch_instance("bot-b1") is None


def test_fetch_instance_network_error_is_gateway_unavailable(gateway_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayUnavailableError):
        _client(gateway_settings, handler).fetch_instance("bot-b1")


def test_missing_base_url_is_configuration_error(gateway_settings):
    settings = replace(gateway_settings, base_url="")
    client = _client(settings, lambda request: httpx.Response(200, json=[]))

    with pytest.raises(GatewayConfigurationError):
        client.fetch_instance("bot-b1")


def test_create_instance_disables_qr_and_registers_webhook(gateway_settings):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"instance": {"instanceName": "bot-b1", "status": "created"}})

    result = _client(gateway_settings, handler).create_instance(
        "bot-b1",
        webhook_url=gateway_settings.webhook_url,
    )

    assert captured["method"] == "POST"
    assert captured["path"] == "/instance/create"
    assert captured["body"] == {
        "instanceName": "bot-b1",
        "qrcode": False,
        "integration": "WHATSAPP-BAILEYS",
        "webhook": {
            "url": "http://hooks.test/api/whatsapp/webhook",
            "events": ["connection.update", "qrcode.updated", "messages.upsert"],
        },
    }
    assert result["instance"]["status"] == "created"


@pytest.mark.parametrize(
    "body",
    [
        {"error": "Instance bot-b1 already exists"},
        {"status": 403, "response": {"message": ['This name "bot-b1" is already in use.']}},
    ],
)
def test_create_instance_already_exists_is_race_signal(gateway_settings, body):
    client = _client(gateway_settings, lambda request: httpx.Response(403, json=body))

    with pytest.raises(InstanceAlreadyExistsError):
        client.create_instance("bot-b1", webhook_url=gateway_settings.webhook_url)


def test_create_instance_other_errors_are_fatal(gateway_settings):
    client = _client(gateway_settings, lambda request: httpx.Response(500, text="Internal Server Error"))

    with pytest.raises(GatewayError) as exc:
        client.create_instance("bot-b1", webhook_url=gateway_settings.webhook_url)

    assert not isinstance(exc.value, InstanceAlreadyExistsError)
    assert exc.value.status_code == 500


def test_connect_extracts_qr_from_response(gateway_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/instance/connect/bot-b1"
        return httpx.Response(200, json={"pairingCode": None, "code": "2@abc", "base64": "data:image/png;base64,QR"})

    result = _client(gateway_settings, handler).connect("bot-b1")

    assert result.success is True
    assert result.qr_code == "data:image/png;base64,QR"


def test_connect_success_without_qr(gateway_settings):
    result = _client(gateway_settings, lambda request: httpx.Response(200, json={"count": 0})).connect("bot-b1")

    assert result.success is True
    assert result.qr_code is None


def test_connect_failures_are_reported_not_raised(gateway_settings):
    not_found = _client(gateway_settings, lambda request: httpx.Response(404, text="not found")).connect("bot-b1")
    assert not_found.success is False
    assert "404" in not_found.error

    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    timeout = _client(gateway_settings, handler).connect("bot-b1")
    assert timeout.success is False


def test_delete_instance_is_best_effort(gateway_settings):
    ok = _client(gateway_settings, lambda request: httpx.Response(200, json={"status": "SUCCESS"}))
    failing = _client(gateway_settings, lambda request: httpx.Response(500, text="boom"))

    def handler(request):
        raise httpx.ConnectError("down", request=request)

    unreachable = _client(gateway_settings, handler)

    assert ok.delete_instance("bot-b1") is True
    assert failing.delete_instance("bot-b1") is False
    assert unreachable.delete_instance("bot-b1") is False


def test_list_instances_returns_all_entries(gateway_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert "instanceName" not in request.url.params
        return httpx.Response(200, json=FETCH_INSTANCES_V1)

    instances = _client(gateway_settings, handler).list_instances()

    assert [item.name for item in instances] == ["bot-other", "bot-b1"]


def test_gateway_calls_are_counted_per_operation(gateway_settings):
    request_metrics.reset()

    def handler(request):
        if request.url.path.startswith("/instance/connect"):
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200, json=FETCH_INSTANCES_V1)

    client = _client(gateway_settings, handler)
    client.fetch_instance("bot-b1")
    client.connect("bot-b1")

    snapshot = request_metrics.snapshot_gateway()
    request_metrics.reset()

    assert snapshot["fetch_instance"]["calls"] == 1
    assert snapshot["fetch_instance"]["errors"] == 0
    assert snapshot["connect"]["calls"] == 1
    assert snapshot["connect"]["errors"] == 1
