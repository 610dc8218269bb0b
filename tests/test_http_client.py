"""Tests for the requests-based API backend."""
from unittest.mock import MagicMock

import pytest
import requests

from crunchloop.backends.http_client import HttpVmApi
from crunchloop.config import ApiSettings, WaitPolicy
from crunchloop.convergence import ConvergencePoller
from crunchloop.errors import ApiError, InvalidResponseError, NotFoundError, TransportError
from crunchloop.lifecycle import VmLifecycleService
from crunchloop.models import CreateVmRequest, UpdateVmRequest

VM_BODY = {
    "id": 12,
    "name": "web-1",
    "status": "creating",
    "memory_bytes": 2048 * 1024 * 1024,
    "cores": 2,
    "vmi": {"id": 3, "name": "ubuntu-24.04"},
    "root_volume": {"size_bytes": 20 * 1024 ** 3},
}


def make_response(status_code=200, body=None, text=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = text if text is not None else ("" if body is None else str(body))
    response.url = "https://cloud.example.com/api/v1/vms/12"
    response.request.method = "GET"
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return HttpVmApi("https://cloud.example.com/", timeout=12, session=session)


def sent(session):
    """(method, url, json) of the single request made."""
    args, kwargs = session.request.call_args
    return args[0], args[1], kwargs.get("json")


class TestRequests:
    """Request shapes sent to the API."""

    def test_create(self, client, session):
        session.request.return_value = make_response(201, VM_BODY)
        request = CreateVmRequest(
            name="web-1", memory_megabytes=2048, cores=2, vmi_id=3, root_volume_size_gigabytes=20
        )

        vm = client.create_vm(request)

        method, url, body = sent(session)
        assert method == "POST"
        assert url == "https://cloud.example.com/api/v1/vms"
        assert body == request.to_payload()
        assert "host_id" not in body
        assert vm.id == 12 and vm.status == "creating"

    def test_create_requires_201(self, client, session):
        session.request.return_value = make_response(200, VM_BODY)

        with pytest.raises(ApiError) as exc:
            client.create_vm(
                CreateVmRequest(
                    name="a", memory_megabytes=1, cores=1, vmi_id=1, root_volume_size_gigabytes=1
                )
            )
        assert exc.value.status_code == 200

    def test_get(self, client, session):
        session.request.return_value = make_response(200, VM_BODY)

        vm = client.get_vm(12)

        assert sent(session) == ("GET", "https://cloud.example.com/api/v1/vms/12", None)
        assert vm.name == "web-1"
        assert session.request.call_args.kwargs["timeout"] == 12

    def test_update_sends_only_mutable_fields(self, client, session):
        session.request.return_value = make_response(200, VM_BODY)

        client.update_vm(12, UpdateVmRequest(cores=4))

        assert sent(session) == ("PATCH", "https://cloud.example.com/api/v1/vms/12", {"cores": 4})

    def test_update_ignores_response_body(self, client, session):
        response = make_response(200, {"id": 12})
        session.request.return_value = response

        assert client.update_vm(12, UpdateVmRequest(cores=4)) is None
        response.json.assert_not_called()

    @pytest.mark.parametrize("action", ["start", "stop"])
    @pytest.mark.parametrize("status_code", [200, 202])
    def test_power_actions(self, client, session, action, status_code):
        session.request.return_value = make_response(status_code, {"status": "whatever"})

        result = getattr(client, f"{action}_vm")(12)

        assert result is None
        assert sent(session) == ("POST", f"https://cloud.example.com/api/v1/vms/12/{action}", None)

    def test_delete(self, client, session):
        session.request.return_value = make_response(204)

        client.delete_vm(12)

        assert sent(session) == ("DELETE", "https://cloud.example.com/api/v1/vms/12", None)

    def test_list_hosts(self, client, session):
        session.request.return_value = make_response(
            200, {"data": [{"id": 1, "name": "h1", "status": "online"}, {"id": 2, "name": "h2"}]}
        )

        hosts = client.list_hosts()

        assert [h.name for h in hosts] == ["h1", "h2"]
        assert sent(session)[1] == "https://cloud.example.com/api/v1/hosts"

    def test_list_vmis(self, client, session):
        session.request.return_value = make_response(200, {"data": [{"id": 3, "name": "ubuntu"}]})

        assert [v.id for v in client.list_vmis()] == [3]


class TestErrors:
    """Classification of failures."""

    def test_404_is_not_found(self, client, session):
        session.request.return_value = make_response(404, text='{"error":"not found"}')

        with pytest.raises(NotFoundError) as exc:
            client.get_vm(12)

        assert exc.value.status_code == 404
        assert exc.value.body == '{"error":"not found"}'

    def test_other_status_keeps_body(self, client, session):
        session.request.return_value = make_response(422, text='{"error":"bad cores"}')

        with pytest.raises(ApiError) as exc:
            client.update_vm(12, UpdateVmRequest(cores=999))

        assert not isinstance(exc.value, NotFoundError)
        assert exc.value.status_code == 422
        assert exc.value.method == "PATCH"
        assert '{"error":"bad cores"}' in str(exc.value)

    def test_connection_failure(self, client, session):
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError) as exc:
            client.get_vm(12)

        assert isinstance(exc.value.__cause__, requests.ConnectionError)
        assert "refused" in str(exc.value)

    def test_invalid_json(self, client, session):
        response = make_response(200, text="<html>")
        response.json.side_effect = ValueError("no json")
        session.request.return_value = response

        with pytest.raises(InvalidResponseError):
            client.get_vm(12)

    def test_body_missing_fields(self, client, session):
        session.request.return_value = make_response(200, {"name": "no id"})

        with pytest.raises(InvalidResponseError):
            client.get_vm(12)


class TestConstruction:
    def test_from_settings(self):
        client = HttpVmApi.from_settings(
            ApiSettings(url="https://cloud.example.com", request_timeout_seconds=5)
        )

        assert client.base_url == "https://cloud.example.com"
        assert client.timeout == 5

    def test_from_settings_requires_url(self):
        with pytest.raises(ValueError):
            HttpVmApi.from_settings(ApiSettings())

    def test_sessions_are_per_thread(self):
        import threading

        client = HttpVmApi("https://cloud.example.com")
        sessions = []
        thread = threading.Thread(target=lambda: sessions.append(client.session))
        thread.start()
        thread.join()

        assert client.session is client.session
        assert sessions[0] is not client.session


class TestLifecycleOverHttp:
    """The lifecycle service driving the HTTP backend."""

    def test_update_with_thin_body_still_converges(self, session, clock, cancel):
        stopped = dict(VM_BODY, status="stopped")
        session.request.side_effect = [
            make_response(200, stopped),
            make_response(200, {"id": 12}),
            make_response(200, dict(VM_BODY, status="updating")),
            make_response(200, stopped),
            make_response(200, stopped),
        ]
        client = HttpVmApi("https://cloud.example.com", session=session)
        service = VmLifecycleService(client, poller=ConvergencePoller(WaitPolicy(), clock=clock))

        vm = service.update(12, {"cores": 4}, cancel)

        assert vm.status == "stopped"
        methods = [c.args[0] for c in session.request.call_args_list]
        assert methods == ["GET", "PATCH", "GET", "GET", "GET"]
        assert clock.now == 10
