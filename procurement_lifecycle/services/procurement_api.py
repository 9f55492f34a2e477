"""
HTTP adapter for the portal's `/procurement` endpoints.

Every response is the portal envelope `{success, data, message?}`. A non-2xx
status or `success: false` becomes a ProcurementError carrying the server's
message verbatim. Calls are never retried.
"""

from typing import Any, Optional

import httpx
import structlog

from procurement_lifecycle.config import settings
from procurement_lifecycle.exceptions import (
    DEFAULT_ERROR_MESSAGE,
    NetworkError,
    ServerError,
    error_for_status,
)
from procurement_lifecycle.schemas.common import ApiEnvelope, Page
from procurement_lifecycle.schemas.procurement import (
    ProcurementCreate,
    ProcurementDraft,
    ProcurementRequest,
    ProcurementStatus,
    ProcurementUpdate,
    RemarksRequest,
)

logger = structlog.get_logger()

BASE_PATH = "/procurement"


def build_http_client(
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    token = token if token is not None else settings.API_TOKEN
    timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    kwargs: dict[str, Any] = {
        "base_url": (base_url or settings.API_BASE_URL).rstrip("/"),
        "headers": headers,
    }
    if timeout is not None:
        kwargs["timeout"] = httpx.Timeout(timeout)
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(**kwargs)


def _message_from(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
        # FastAPI-style {"detail": "..."} bodies
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    return None


class PortalHttpClient:
    """Shared request/unwrap logic for the portal's REST resources."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        self._http = http or build_http_client()
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> ApiEnvelope:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("procurement_network_error", method=method, path=path, error=str(exc))
            raise NetworkError(DEFAULT_ERROR_MESSAGE) from exc

        if response.is_error:
            message = _message_from(response)
            logger.warning(
                "procurement_api_error",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message,
            )
            raise error_for_status(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return ApiEnvelope(success=True)

        try:
            envelope = ApiEnvelope.model_validate(response.json())
        except ValueError as exc:
            logger.warning("procurement_bad_envelope", method=method, path=path)
            raise ServerError(DEFAULT_ERROR_MESSAGE, status_code=response.status_code) from exc

        if not envelope.success:
            logger.warning(
                "procurement_api_error",
                method=method,
                path=path,
                status_code=response.status_code,
                message=envelope.message,
            )
            raise ServerError(envelope.message or DEFAULT_ERROR_MESSAGE, status_code=response.status_code)

        return envelope

    @staticmethod
    def _parse(model, data: Any, path: str):
        """Validate response data; a shape the models cannot read is a server fault."""
        try:
            return model.model_validate(data)
        except ValueError as exc:
            logger.warning(
                "procurement_bad_payload", path=path, model=getattr(model, "__name__", str(model))
            )
            raise ServerError(DEFAULT_ERROR_MESSAGE) from exc


class ProcurementApiClient(PortalHttpClient):
    async def list_requests(
        self,
        status: Optional[ProcurementStatus] = None,
        q: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[ProcurementRequest]:
        params: dict[str, Any] = {"page": page, "limit": limit or settings.PAGE_LIMIT}
        if status:
            params["status"] = ProcurementStatus(status).value
        if q:
            params["q"] = q

        envelope = await self._request("GET", BASE_PATH, params=params)
        return self._parse(
            Page[ProcurementRequest],
            {"data": envelope.data or [], "pagination": envelope.pagination},
            BASE_PATH,
        )

    async def get_draft(self, request_id: int) -> ProcurementDraft:
        path = f"{BASE_PATH}/{request_id}/draft"
        envelope = await self._request("GET", path)
        draft = self._parse(ProcurementDraft, envelope.data or {}, path)
        if draft.id is None:
            draft.id = request_id
        return draft

    async def create(self, payload: ProcurementCreate) -> Optional[ProcurementRequest]:
        envelope = await self._request(
            "POST", BASE_PATH, json=payload.model_dump(mode="json", by_alias=True)
        )
        return self._as_request(envelope)

    async def update(self, request_id: int, payload: ProcurementUpdate) -> Optional[ProcurementRequest]:
        envelope = await self._request(
            "PUT", f"{BASE_PATH}/{request_id}", json=payload.model_dump(mode="json", by_alias=True)
        )
        return self._as_request(envelope)

    async def delete(self, request_id: int) -> None:
        await self._request("DELETE", f"{BASE_PATH}/{request_id}")

    async def transition(
        self, request_id: int, action: str, remarks: Optional[RemarksRequest] = None
    ) -> Optional[ProcurementRequest]:
        """PATCH /procurement/{id}/{action}; approve and reject carry a remarks body."""
        kwargs = {}
        if remarks is not None:
            kwargs["json"] = remarks.model_dump(mode="json", by_alias=True, exclude_none=True)
        envelope = await self._request("PATCH", f"{BASE_PATH}/{request_id}/{action}", **kwargs)
        return self._as_request(envelope)

    async def upload_proof(
        self,
        request_id: int,
        filename: str,
        content: bytes,
        content_type: str,
        proof_type: str,
        description: Optional[str] = None,
    ) -> Any:
        data = {"requestId": str(request_id), "type": proof_type}
        if description:
            data["description"] = description
        envelope = await self._request(
            "POST",
            f"{BASE_PATH}/upload-proof",
            data=data,
            files={"file": (filename, content, content_type)},
        )
        return envelope.data

    @staticmethod
    def _as_request(envelope: ApiEnvelope) -> Optional[ProcurementRequest]:
        # Mutations may answer with the request, a bare id, or nothing at all.
        if isinstance(envelope.data, dict) and "id" in envelope.data:
            try:
                return ProcurementRequest.model_validate(envelope.data)
            except ValueError:
                logger.debug("procurement_response_not_a_request")
        return None
