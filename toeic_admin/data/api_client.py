"""
HTTP client for the TOEIC test-bank REST backend.

Wraps httpx with bearer-token auth, envelope checking, circuit breaking,
retries for reads and dry-run support for everything that writes.
"""

import mimetypes
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
import structlog

from toeic_admin.core.config import ApiConfig
from toeic_admin.core.exceptions import (
    ApiError,
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    UploadError,
)
from toeic_admin.core.messages import notify
from toeic_admin.utils.reliability import with_circuit_breaker, with_retry

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]

_STATUS_ERRORS = {
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
}

# POSTs that change nothing on the backend and still run in dry-run mode
_SAFE_POSTS = frozenset({"/auth/login"})

_DRY_RUN_ENVELOPE = {"success": True, "dryRun": True}


class ToeicApiClient:
    """
    Thin REST wrapper used by every service.

    Responses are returned as decoded JSON envelopes. Errors surface as
    ``ApiError`` subclasses carrying the backend's own message.
    """

    def __init__(
        self,
        config: ApiConfig,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.BaseTransport] = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.token_provider = token_provider
        self.dry_run = dry_run

        self.client = httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
            headers={"Accept": "application/json"},
            transport=transport,
            follow_redirects=True,
        )

        logger.debug("API client initialized", base_url=config.base_url, dry_run=dry_run)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ToeicApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_provider() if self.token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    @with_circuit_breaker(name="toeic_api", expected_exception=httpx.TransportError)
    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send once; used for anything that may change data."""
        return self.client.request(method, path, headers=self._auth_headers(), **kwargs)

    @with_circuit_breaker(name="toeic_api", expected_exception=httpx.TransportError)
    @with_retry(max_attempts=3, retry_exceptions=(httpx.TransportError,))
    def _send_idempotent(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send with retries on connection failures; reads only."""
        return self.client.request(method, path, headers=self._auth_headers(), **kwargs)

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an authenticated request and unwrap the response envelope.

        Raises:
            ApiError: On HTTP errors, ``success: false`` envelopes and
                connection failures
        """
        if self.dry_run and method != "GET" and path not in _SAFE_POSTS:
            logger.info(
                f"DRY RUN: Would {method} {path}",
                has_body=json is not None,
                has_files=bool(files),
            )
            return dict(_DRY_RUN_ENVELOPE)

        kwargs: Dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params
        if files:
            kwargs["files"] = files
        if data:
            kwargs["data"] = data

        logger.debug("Making API request", method=method, path=path, has_data=bool(json or files))

        try:
            if method == "GET":
                response = self._send_idempotent(method, path, **kwargs)
            else:
                response = self._send(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("API timeout", method=method, path=path, error=str(e))
            raise ApiError(notify("network.timeout"), path=path, details={"error": str(e)})
        except httpx.TransportError as e:
            logger.error("API connection error", method=method, path=path, error=str(e))
            raise ApiError(notify("network.error"), path=path, details={"error": str(e)})

        return self._handle_response(response, path)

    def _handle_response(self, response: httpx.Response, path: str) -> Any:
        body = self._decode(response)
        message = body.get("message") if isinstance(body, dict) else None

        if response.is_error:
            error_cls = _STATUS_ERRORS.get(response.status_code, ApiError)
            logger.warning(
                "API HTTP error",
                status_code=response.status_code,
                path=path,
                message=message,
            )
            raise error_cls(
                message or f"HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                path=path,
                details={"response": body},
            )

        if isinstance(body, dict) and body.get("success") is False:
            logger.warning("API request unsuccessful", path=path, message=message)
            raise ApiError(
                message or "Request failed",
                status_code=response.status_code,
                path=path,
                details={"response": body},
            )

        return body

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text[:500]}

    # Verbs

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Optional[Any] = None) -> Any:
        return self._request("POST", path, json=json)

    def patch(self, path: str, json: Optional[Any] = None) -> Any:
        return self._request("PATCH", path, json=json)

    def delete(self, path: str, json: Optional[Any] = None) -> Any:
        return self._request("DELETE", path, json=json)

    def upload(
        self,
        path: str,
        field: str,
        file_path: Path,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        POST a file as multipart form data.

        Args:
            path: API path
            field: Form field the backend expects the file under
            file_path: Local file to send
            data: Extra form fields

        Returns:
            Decoded response envelope
        """
        file_path = Path(file_path).expanduser()
        if not file_path.is_file():
            raise UploadError(f"File not found: {file_path}", details={"path": str(file_path)})

        if self.dry_run:
            logger.info(f"DRY RUN: Would upload {file_path.name} to {path}", field=field)
            return {**_DRY_RUN_ENVELOPE, "url": f"dry-run://{file_path.name}"}

        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        with file_path.open("rb") as fh:
            return self._request(
                "POST", path, files={field: (file_path.name, fh, content_type)}, data=data
            )

    def health_check(self) -> Dict[str, Any]:
        """
        Check that the backend answers and whether the stored token is accepted.

        Raises:
            ApiError: When the backend is unreachable or misbehaving
        """
        try:
            body = self.get("/auth/me")
        except AuthenticationError:
            return {"reachable": True, "authenticated": False}
        user = (body.get("data") or {}).get("user") or {}
        return {"reachable": True, "authenticated": True, "user": user.get("email")}
