import types

import pytest
from botocore.exceptions import ClientError

from athena_stream.athena import AthenaGatewayConfig, AthenaQueryGateway
from athena_stream.client import QueryClient
from athena_stream.config import ClientConfig
from athena_stream.errors import ConfigError, GatewayError

_CONFIG = ClientConfig(
    bucket_uri="s3://bucket/out/",
    poll_interval_seconds=0.001,
    stream_check_interval_seconds=0.001,
)


class _FakeAthenaClient:
    """Simulates the boto3 Athena client with two result pages."""

    def __init__(self, states=("RUNNING", "SUCCEEDED"), reason=None):
        self._states = list(states)
        self._reason = reason
        self.start_calls = []
        self.result_calls = []
        self.stopped = []

    def start_query_execution(self, **kwargs):
        self.start_calls.append(kwargs)
        return {"QueryExecutionId": "exec-1"}

    def get_query_execution(self, QueryExecutionId):
        state = self._states.pop(0) if len(self._states) > 1 else self._states[0]
        status = {"State": state}
        if self._reason:
            status["StateChangeReason"] = self._reason
        return {"QueryExecution": {"QueryExecutionId": QueryExecutionId, "Status": status}}

    def get_query_results(self, **kwargs):
        self.result_calls.append(kwargs)
        if "NextToken" not in kwargs:
            return {
                "ResultSet": {
                    "ResultSetMetadata": {"ColumnInfo": [{"Name": "id"}, {"Name": "name"}]},
                    "Rows": [
                        {"Data": [{"VarCharValue": "id"}, {"VarCharValue": "name"}]},
                        {"Data": [{"VarCharValue": "1"}, {"VarCharValue": "Alice"}]},
                    ],
                },
                "NextToken": "page2-token",
                "ResponseMetadata": {"HTTPStatusCode": 200},
            }
        return {
            "ResultSet": {
                "ResultSetMetadata": {"ColumnInfo": [{"Name": "id"}, {"Name": "name"}]},
                "Rows": [{"Data": [{"VarCharValue": "2"}, {}]}],
            },
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    def stop_query_execution(self, QueryExecutionId):
        self.stopped.append(QueryExecutionId)


@pytest.mark.asyncio
async def test_submit_passes_output_location_and_context():
    """submit maps the storage location, database and workgroup onto StartQueryExecution."""
    fake_client = _FakeAthenaClient()
    gateway = AthenaQueryGateway(workgroup="primary", database="db", client=fake_client)

    handle = await gateway.submit("SELECT 1", _CONFIG)

    assert handle == "exec-1"
    assert fake_client.start_calls == [
        {
            "QueryString": "SELECT 1",
            "ResultConfiguration": {"OutputLocation": "s3://bucket/out/"},
            "QueryExecutionContext": {"Database": "db"},
            "WorkGroup": "primary",
        }
    ]


@pytest.mark.asyncio
async def test_submit_omits_unset_context():
    """Database and workgroup are only sent when configured."""
    fake_client = _FakeAthenaClient()
    gateway = AthenaQueryGateway(client=fake_client)

    await gateway.submit("SELECT 1", _CONFIG)

    assert set(fake_client.start_calls[0]) == {"QueryString", "ResultConfiguration"}


@pytest.mark.asyncio
async def test_poll_status_maps_states():
    """Running states poll False until SUCCEEDED polls True."""
    fake_client = _FakeAthenaClient(states=("QUEUED", "RUNNING", "SUCCEEDED"))
    gateway = AthenaQueryGateway(client=fake_client)

    assert await gateway.poll_status("exec-1", _CONFIG) is False
    assert await gateway.poll_status("exec-1", _CONFIG) is False
    assert await gateway.poll_status("exec-1", _CONFIG) is True


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["FAILED", "CANCELLED"])
async def test_poll_status_raises_for_aborted_queries(state):
    """FAILED and CANCELLED executions surface as gateway errors with the reason."""
    fake_client = _FakeAthenaClient(states=(state,), reason="SYNTAX_ERROR: line 1:8")
    gateway = AthenaQueryGateway(client=fake_client)

    with pytest.raises(GatewayError, match="SYNTAX_ERROR") as exc_info:
        await gateway.poll_status("exec-1", _CONFIG)

    assert exc_info.value.operation == "poll_status"
    assert exc_info.value.handle == "exec-1"


@pytest.mark.asyncio
async def test_fetch_page_passes_token_and_page_size():
    """fetch_page forwards NextToken and MaxResults and strips ResponseMetadata."""
    fake_client = _FakeAthenaClient()
    gateway = AthenaQueryGateway(page_size=500, client=fake_client)

    first = await gateway.fetch_page("exec-1", _CONFIG)
    second = await gateway.fetch_page("exec-1", _CONFIG, first.next_token)

    assert first.next_token == "page2-token"
    assert second.next_token is None
    assert "ResponseMetadata" not in first.payload
    assert fake_client.result_calls == [
        {"QueryExecutionId": "exec-1", "MaxResults": 500},
        {"QueryExecutionId": "exec-1", "NextToken": "page2-token", "MaxResults": 500},
    ]


@pytest.mark.asyncio
async def test_cancel_stops_query_execution():
    """cancel calls StopQueryExecution for the handle."""
    fake_client = _FakeAthenaClient()
    gateway = AthenaQueryGateway(client=fake_client)

    await gateway.cancel("exec-1", _CONFIG)

    assert fake_client.stopped == ["exec-1"]


@pytest.mark.asyncio
async def test_botocore_errors_are_wrapped():
    """ClientError from boto3 becomes a GatewayError chained to the original."""

    class _ThrottledClient(_FakeAthenaClient):
        def get_query_results(self, **kwargs):
            raise ClientError(
                {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}},
                "GetQueryResults",
            )

    gateway = AthenaQueryGateway(client=_ThrottledClient())

    with pytest.raises(GatewayError, match="ThrottlingException") as exc_info:
        await gateway.fetch_page("exec-1", _CONFIG)

    assert isinstance(exc_info.value.__cause__, ClientError)


def test_gateway_builds_boto3_client(monkeypatch):
    """Without an injected client the gateway creates one for the region."""
    calls = []
    fake_boto3 = types.SimpleNamespace(
        client=lambda service, region_name=None: calls.append((service, region_name))
        or _FakeAthenaClient()
    )
    monkeypatch.setitem(__import__("sys").modules, "boto3", fake_boto3)

    AthenaQueryGateway.from_config(AthenaGatewayConfig(region="us-east-1", database="db"))

    assert calls == [("athena", "us-east-1")]


def test_gateway_config_from_env(monkeypatch):
    """AthenaGatewayConfig reads region, workgroup, database and page size."""
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("ATHENA_WORKGROUP", "analytics")
    monkeypatch.setenv("ATHENA_DATABASE", "events")
    monkeypatch.setenv("ATHENA_PAGE_SIZE", "250")

    config = AthenaGatewayConfig.from_env()

    assert config == AthenaGatewayConfig(
        region="eu-west-1", workgroup="analytics", database="events", page_size=250
    )


def test_gateway_config_rejects_bad_page_size(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("ATHENA_PAGE_SIZE", "5000")

    with pytest.raises(ConfigError, match="ATHENA_PAGE_SIZE"):
        AthenaGatewayConfig.from_env()


@pytest.mark.asyncio
async def test_client_streams_athena_pages_end_to_end():
    """QueryClient over the Athena gateway drains both pages into records."""
    gateway = AthenaQueryGateway(client=_FakeAthenaClient())
    client = QueryClient(gateway, _CONFIG)

    rows = await client.execute("SELECT id, name FROM users")

    assert rows == [{"id": "1", "name": "Alice"}, {"id": "2", "name": None}]
