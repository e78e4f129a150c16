import asyncio
from typing import Any, Callable, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from athena_stream.athena.config import AthenaGatewayConfig
from athena_stream.config import ClientConfig
from athena_stream.errors import GatewayError
from athena_stream.gateway import ResultPage

_FINISHED = "SUCCEEDED"
_ABORTED = ("FAILED", "CANCELLED")


class AthenaQueryGateway:
    """QueryGateway backed by Athena query executions."""

    provider = "athena"

    def __init__(
        self,
        region: Optional[str] = None,
        workgroup: Optional[str] = None,
        database: Optional[str] = None,
        page_size: Optional[int] = None,
        client: Any = None,
    ) -> None:
        """Initialize with Athena connection settings or a prebuilt boto3 client."""
        if client is None:
            import boto3

            client = boto3.client("athena", region_name=region)
        self._client = client
        self._workgroup = workgroup
        self._database = database
        self._page_size = page_size

    @classmethod
    def from_config(cls, config: AthenaGatewayConfig) -> "AthenaQueryGateway":
        return cls(
            region=config.region,
            workgroup=config.workgroup,
            database=config.database,
            page_size=config.page_size,
        )

    async def submit(self, query: str, config: ClientConfig) -> str:
        """Start a query execution writing output under ``config.bucket_uri``."""
        return await self._run(
            "submit",
            None,
            _start_query_execution,
            self._client,
            query,
            config.bucket_uri,
            self._database,
            self._workgroup,
        )

    async def poll_status(self, handle: str, config: ClientConfig) -> bool:
        """Return True once the execution succeeded; raise if it failed or was cancelled."""
        state, reason = await self._run(
            "poll_status", handle, _get_query_state, self._client, handle
        )
        if state == _FINISHED:
            return True
        if state in _ABORTED:
            detail = f"query {state.lower()}"
            if reason:
                detail = f"{detail}: {reason}"
            raise GatewayError("poll_status", detail, handle)
        return False

    async def fetch_page(
        self, handle: str, config: ClientConfig, next_token: Optional[str] = None
    ) -> ResultPage:
        """Fetch one GetQueryResults page."""
        response = await self._run(
            "fetch_page",
            handle,
            _get_query_results,
            self._client,
            handle,
            next_token,
            self._page_size,
        )
        return ResultPage.from_response(response)

    async def cancel(self, handle: str, config: ClientConfig) -> None:
        """Stop a running query execution."""
        await self._run(
            "cancel", handle, self._client.stop_query_execution, QueryExecutionId=handle
        )

    async def _run(
        self, operation: str, handle: Optional[str], func: Callable, *args: Any, **kwargs: Any
    ) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise GatewayError(operation, str(exc), handle) from exc


def _start_query_execution(
    client,
    query: str,
    output_location: str,
    database: Optional[str],
    workgroup: Optional[str],
) -> str:
    kwargs = {
        "QueryString": query,
        "ResultConfiguration": {"OutputLocation": output_location},
    }
    if database:
        kwargs["QueryExecutionContext"] = {"Database": database}
    if workgroup:
        kwargs["WorkGroup"] = workgroup
    response = client.start_query_execution(**kwargs)
    return response["QueryExecutionId"]


def _get_query_state(client, handle: str) -> Tuple[str, Optional[str]]:
    response = client.get_query_execution(QueryExecutionId=handle)
    status = response["QueryExecution"]["Status"]
    return status["State"], status.get("StateChangeReason")


def _get_query_results(client, handle: str, next_token: Optional[str], page_size: Optional[int]):
    kwargs = {"QueryExecutionId": handle}
    if next_token:
        kwargs["NextToken"] = next_token
    if page_size:
        kwargs["MaxResults"] = page_size
    return client.get_query_results(**kwargs)
