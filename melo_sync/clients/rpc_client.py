import logging
import httpx
from pydantic import BaseModel
from typing import Any, Literal, Optional
from ..config import settings
from ..methods import RpcRequest

logger = logging.getLogger(__name__)

class RpcResult(BaseModel):
    """Outcome of one call: either a result or an error, never both."""
    result: Any = None
    error: Any = None
    kind: Optional[Literal["transport", "application"]] = None

    @property
    def ok(self) -> bool:
        # Melo reports failed actions with a false result
        return self.error is None and self.result is not None and self.result is not False

class RpcClient:
    def __init__(self, url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.url = url or settings.MELO_RPC_URL
        self.client = client or httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT_SECONDS)

    async def call(self, request: RpcRequest) -> RpcResult:
        """
        Sends one request and waits for its response.
        Failures are returned, not raised; check `ok` before using `result`.
        """
        try:
            resp = await self.client.post(self.url, json=request.envelope())
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Call to {request.method} failed: {e}")
            return RpcResult(error=str(e), kind="transport")

        if not isinstance(data, dict) or ("result" not in data and "error" not in data):
            logger.warning(f"Malformed response to {request.method}: {data!r}")
            return RpcResult(error="malformed response", kind="transport")

        if data.get("error") is not None:
            logger.debug(f"{request.method} returned error: {data['error']}")
            return RpcResult(error=data["error"], kind="application")

        return RpcResult(result=data.get("result"))

    async def close(self):
        await self.client.aclose()
