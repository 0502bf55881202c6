"""HTTP client for a Cosmos SDK node's REST (gRPC gateway) endpoint."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from ..errors import RpcError
from .models import BlockResponse, TxResponse, Validator, ValidatorSlashEvent

logger = structlog.get_logger(__name__)

# gRPC status codes as reported in gateway error bodies.
GRPC_INVALID_ARGUMENT = 3
GRPC_NOT_FOUND = 5

SYNCING_PATH = "/cosmos/base/tendermint/v1beta1/syncing"
LATEST_BLOCK_PATH = "/cosmos/base/tendermint/v1beta1/blocks/latest"
BLOCK_BY_HEIGHT_PATH = "/cosmos/base/tendermint/v1beta1/blocks/{height}"
TX_BY_HASH_PATH = "/cosmos/tx/v1beta1/txs/{hash}"
VALIDATOR_PATH = "/cosmos/staking/v1beta1/validators/{address}"
VALIDATOR_SLASHES_PATH = "/cosmos/distribution/v1beta1/validators/{address}/slashes"


class NodeClient:
    """Read-only queries against one node.

    Methods raise ``RpcError`` on transport failures and unexpected responses.
    Lookups that the node answers with "not found" or "invalid argument" return
    an empty result instead.
    """

    def __init__(self, endpoint: str, *, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint.rstrip("/")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_syncing(self) -> bool:
        data = await self._get_json(SYNCING_PATH)
        return bool(data.get("syncing", False))

    async def fetch_latest_block(self) -> BlockResponse:
        data = await self._get_json(LATEST_BLOCK_PATH)
        return self._parse(BlockResponse, data)

    async def fetch_block_by_height(self, height: int) -> BlockResponse:
        data = await self._get_json(BLOCK_BY_HEIGHT_PATH.format(height=int(height)))
        return self._parse(BlockResponse, data)

    async def fetch_tx_by_hash(self, tx_hash: str) -> TxResponse | None:
        data = await self._get_optional_json(TX_BY_HASH_PATH.format(hash=tx_hash))
        if data is None or data.get("tx_response") is None:
            return None
        return self._parse(TxResponse, data["tx_response"])

    async def fetch_validator(self, validator_address: str) -> Validator | None:
        data = await self._get_optional_json(VALIDATOR_PATH.format(address=validator_address))
        if data is None or data.get("validator") is None:
            return None
        return self._parse(Validator, data["validator"])

    async def fetch_slashes(
        self, validator_address: str, starting_height: int, ending_height: int
    ) -> list[ValidatorSlashEvent]:
        path = VALIDATOR_SLASHES_PATH.format(address=validator_address)
        params: dict[str, Any] = {"starting_height": int(starting_height), "ending_height": int(ending_height)}
        events: list[ValidatorSlashEvent] = []
        while True:
            data = await self._get_optional_json(path, params=params)
            if data is None:
                return events
            for item in data.get("slashes") or []:
                events.append(self._parse(ValidatorSlashEvent, item))
            next_key = (data.get("pagination") or {}).get("next_key")
            if not next_key:
                return events
            params = {**params, "pagination.key": next_key}

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self.endpoint}{path}"
        try:
            return await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise RpcError(f"failed to reach {self.endpoint}: {exc!r}", endpoint=self.endpoint) from exc

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._request(path, params)
        if response.status_code != 200:
            raise self._unexpected(response)
        return self._json(response)

    async def _get_optional_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        response = await self._request(path, params)
        if response.status_code == 200:
            return self._json(response)

        code = _grpc_code(response)
        if response.status_code == 404 or code == GRPC_NOT_FOUND:
            return None
        if response.status_code == 400 or code == GRPC_INVALID_ARGUMENT:
            logger.warning(
                f"invalid argument response from {self.endpoint}",
                endpoint=self.endpoint,
                path=path,
                message=_error_message(response),
            )
            return None
        raise self._unexpected(response)

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise RpcError(
                f"unparseable response from {self.endpoint}: {exc}",
                endpoint=self.endpoint,
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise RpcError(
                f"unexpected response from {self.endpoint}: body is not a JSON object",
                endpoint=self.endpoint,
                status_code=response.status_code,
            )
        return data

    def _parse(self, model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise RpcError(
                f"unexpected {model.__name__} payload from {self.endpoint}: {exc}",
                endpoint=self.endpoint,
            ) from exc

    def _unexpected(self, response: httpx.Response) -> RpcError:
        return RpcError(
            f"unexpected response from {self.endpoint} status_code: {response.status_code}, "
            f"message: {_error_message(response)}",
            endpoint=self.endpoint,
            status_code=response.status_code,
        )


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _grpc_code(response: httpx.Response) -> int | None:
    code = _error_body(response).get("code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def _error_message(response: httpx.Response) -> str:
    message = _error_body(response).get("message")
    if isinstance(message, str) and message:
        return message
    return response.text[:500]
