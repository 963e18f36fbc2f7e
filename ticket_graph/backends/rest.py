"""JSON-over-HTTP transport with retry, backoff and endpoint fallback."""

import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import structlog

from ticket_graph.errors import AuthError, NotFoundError, RemoteError, TransientRemoteError

logger = structlog.get_logger()

MAX_ATTEMPTS = 3
BACKOFF_BASE = 0.5
MAX_RETRY_DELAY = 60.0


@dataclass
class Endpoint:
    """One request shape in a fallback chain."""

    method: str
    path: str
    params: dict[str, Any] | None = None
    json: Any = None
    name: str = field(default="")


class RestClient:
    """Thin wrapper over ``httpx.Client`` speaking JSON to Atlassian-style REST APIs."""

    def __init__(
        self,
        base_url: str,
        email: str | None = None,
        token: str | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Site root, e.g. https://acme.atlassian.net
            email: Account email for basic auth
            token: API token for basic auth
            max_attempts: Total attempts for retryable failures
            backoff_base: First backoff delay in seconds, doubled per attempt
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not base_url:
            raise ValueError("base_url required")
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base

        auth = httpx.BasicAuth(email, token) if email and token else None
        self.client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            headers={"Accept": "application/json"},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        logger.debug("REST client initialized", base_url=self.base_url, authenticated=auth is not None)

    def close(self) -> None:
        self.client.close()

    def _retry_delay(self, response: httpx.Response | None, attempt: int) -> float:
        """Server-supplied Retry-After wins over exponential backoff, capped at MAX_RETRY_DELAY."""
        delay = self.backoff_base * (2**attempt)
        if response is not None:
            retry_after = response.headers.get("retry-after")
            if retry_after:
                try:
                    delay = max(0.0, float(retry_after))
                except ValueError:
                    logger.debug("Ignoring non-numeric Retry-After", value=retry_after)
        return min(delay, MAX_RETRY_DELAY)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded body.

        Raises:
            NotFoundError: on 404
            AuthError: on 401/403
            TransientRemoteError: on 429/5xx/transport errors after ``max_attempts`` tries
            RemoteError: on any other non-success status
        """
        clean_params = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        last_error: RemoteError = TransientRemoteError(f"{method} {path}: no attempts made")

        for attempt in range(self.max_attempts):
            response: httpx.Response | None = None
            try:
                response = self.client.request(method, path, params=clean_params or None, json=json)
            except httpx.TransportError as e:
                last_error = TransientRemoteError(f"{method} {path} failed: {e}")
                last_error.__cause__ = e
                logger.warning("Transport error", method=method, path=path, attempt=attempt + 1, error=str(e))
            else:
                status = response.status_code
                if status < 400:
                    return self._decode(response)
                if status == 404:
                    raise NotFoundError(f"{method} {path}: not found", status=status)
                if status in (401, 403):
                    logger.error("Authentication rejected", method=method, path=path, status=status)
                    raise AuthError(f"{method} {path}: authentication failed ({status})", status=status)
                if status != 429 and status < 500:
                    raise RemoteError(f"{method} {path}: HTTP {status} {response.text[:200]}", status=status)
                last_error = TransientRemoteError(f"{method} {path}: HTTP {status}", status=status)
                logger.warning("Retryable response", method=method, path=path, status=status, attempt=attempt + 1)

            if attempt + 1 < self.max_attempts:
                delay = self._retry_delay(response, attempt)
                logger.debug("Backing off", method=method, path=path, delay=delay)
                time.sleep(delay)

        raise last_error

    def request_first(self, endpoints: list[Endpoint], accept: Callable[[Any], bool]) -> Any:
        """Try each endpoint in order and return the first payload ``accept`` approves.

        Auth failures propagate immediately; any other failure moves on to the
        next endpoint. If every endpoint fails, the last error is raised.
        """
        last_error: RemoteError | None = None
        for endpoint in endpoints:
            label = endpoint.name or f"{endpoint.method} {endpoint.path}"
            try:
                data = self.request(endpoint.method, endpoint.path, params=endpoint.params, json=endpoint.json)
            except AuthError:
                raise
            except RemoteError as e:
                logger.debug("Endpoint failed, trying next", endpoint=label, error=str(e))
                last_error = e
                continue
            if accept(data):
                logger.debug("Endpoint succeeded", endpoint=label)
                return data
            logger.debug("Endpoint returned unexpected payload, trying next", endpoint=label)
            last_error = RemoteError(f"{label}: unexpected response shape")

        if last_error is None:
            raise ValueError("No endpoints to try")
        raise last_error
