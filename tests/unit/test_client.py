"""Tests for the Nomad HTTP API client."""

import pytest
import requests
from unittest.mock import MagicMock, patch

from nomad_bench.config import NomadConfig, WatchConfig
from nomad_bench.orchestrator import NomadClient, OrchestratorError
from nomad_bench.status import AllocationWatcher


def make_response(status=200, json_data=None, headers=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.text = text
    resp.reason = "Error"
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def session():
    with patch("nomad_bench.orchestrator.client.requests.Session") as session_cls:
        instance = MagicMock()
        instance.headers = {}
        session_cls.return_value = instance
        yield instance


class TestListAllocations:
    def test_blocking_query_parameters(self, session):
        session.request.return_value = make_response(
            json_data=[
                {"ID": "a1", "ClientStatus": "running"},
                {"ID": "a2", "ClientStatus": "pending"},
            ],
            headers={"X-Nomad-Index": "42", "X-Nomad-KnownLeader": "false", "X-Nomad-LastContact": "15"},
        )
        client = NomadClient(address="http://nomad:4646/", wait="1m", region="eu")

        allocs, meta = client.list_allocations(wait_index=7, allow_stale=True)

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url == "http://nomad:4646/v1/allocations"
        assert kwargs["params"] == {"region": "eu", "index": 7, "wait": "1m", "stale": ""}
        connect_timeout, read_timeout = kwargs["timeout"]
        assert read_timeout > 60
        assert [a.client_status for a in allocs] == ["running", "pending"]
        assert meta.last_index == 42
        assert meta.known_leader is False
        assert meta.last_contact_ms == 15

    def test_stale_flag_omitted(self, session):
        session.request.return_value = make_response(json_data=[], headers={"X-Nomad-Index": "1"})
        client = NomadClient()

        client.list_allocations(wait_index=1, allow_stale=False)

        assert "stale" not in session.request.call_args.kwargs["params"]

    def test_missing_index_header(self, session):
        session.request.return_value = make_response(json_data=[])
        with pytest.raises(OrchestratorError, match="X-Nomad-Index"):
            NomadClient().list_allocations(wait_index=1)

    def test_transport_error(self, session):
        session.request.side_effect = requests.exceptions.ReadTimeout("timed out")
        with pytest.raises(OrchestratorError, match="timed out") as exc_info:
            NomadClient().list_allocations(wait_index=1)
        assert isinstance(exc_info.value.cause, requests.exceptions.ReadTimeout)

    def test_http_error(self, session):
        session.request.return_value = make_response(status=500, text="no leader")
        with pytest.raises(OrchestratorError, match="HTTP 500: no leader") as exc_info:
            NomadClient().list_allocations(wait_index=1)
        assert exc_info.value.status_code == 500

    def test_bad_json(self, session):
        session.request.return_value = make_response(
            json_data=ValueError("Expecting value"), headers={"X-Nomad-Index": "3"}
        )
        with pytest.raises(OrchestratorError, match="invalid JSON"):
            NomadClient().list_allocations(wait_index=1)

    def test_malformed_allocation_status(self, session):
        session.request.return_value = make_response(
            json_data=[{"ID": "a1", "ClientStatus": "running"}, {"ID": "a2", "ClientStatus": 3}],
            headers={"X-Nomad-Index": "9"},
        )
        with pytest.raises(OrchestratorError, match="malformed allocation at position 1") as exc_info:
            NomadClient().list_allocations(wait_index=1)
        assert isinstance(exc_info.value.cause, ValueError)

    def test_non_object_allocation_item(self, session):
        session.request.return_value = make_response(
            json_data=[{"ID": "a1", "ClientStatus": "running"}, "a2"],
            headers={"X-Nomad-Index": "9"},
        )
        with pytest.raises(OrchestratorError, match="unexpected item at position 1: str"):
            NomadClient().list_allocations(wait_index=1)

    def test_malformed_response_keeps_watcher_alive(self, session, make_sink):
        session.request.return_value = make_response(
            json_data=[{"ID": "a1", "ClientStatus": 3}],
            headers={"X-Nomad-Index": "9"},
        )
        sink = make_sink()
        watcher = AllocationWatcher(NomadClient(), sink, WatchConfig(error_backoff=0))

        assert watcher.run_once() is None

        assert watcher.state.cursor == 1
        assert watcher.consecutive_failures == 1
        assert sink.samples == []


class TestJobs:
    def test_register(self, session):
        session.request.return_value = make_response(json_data={"EvalID": "e-1"})
        client = NomadClient(token="secret")

        eval_id = client.register({"ID": "job-0"})

        assert eval_id == "e-1"
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith("/v1/jobs")
        assert session.request.call_args.kwargs["json"] == {"Job": {"ID": "job-0"}}
        assert session.headers["X-Nomad-Token"] == "secret"

    def test_list_jobs(self, session):
        session.request.return_value = make_response(json_data=[{"ID": "job-0"}, {"ID": "job-1"}])
        jobs = NomadClient().list_jobs()
        assert [j.id for j in jobs] == ["job-0", "job-1"]

    def test_list_jobs_unexpected_shape(self, session):
        session.request.return_value = make_response(json_data={"oops": True})
        with pytest.raises(OrchestratorError, match="expected a list"):
            NomadClient().list_jobs()

    def test_list_jobs_non_object_item(self, session):
        session.request.return_value = make_response(json_data=[{"ID": "job-0"}, None, {"ID": "job-2"}])
        with pytest.raises(OrchestratorError, match="unexpected item at position 1: NoneType"):
            NomadClient().list_jobs()

    def test_deregister_quotes_id(self, session):
        session.request.return_value = make_response(json_data={"EvalID": "e-2"})

        assert NomadClient().deregister("job/odd") == "e-2"

        method, url = session.request.call_args.args
        assert method == "DELETE"
        assert url.endswith("/v1/job/job%2Fodd")


def test_from_config():
    client = NomadClient.from_config(NomadConfig(address="http://x:1", namespace="ns", wait="10s"))
    assert client.address == "http://x:1"
    assert client.namespace == "ns"
    assert client._params() == {"namespace": "ns"}


def test_invalid_wait():
    with pytest.raises(ValueError):
        NomadClient(wait="forever")
