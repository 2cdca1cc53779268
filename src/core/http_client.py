# ===========================================================================
# SyncBench -- DAEMON REST CLIENT
# ===========================================================================
# FILE: src/core/http_client.py
#
# WHAT THIS IS:
#   The one place that talks HTTP to a daemon instance. The readiness
#   prober and the completion detector both go through DaemonClient.
#
# CALLS USED:
#   POST /rest/scan?folder=<id>        scan trigger (readiness probe)
#   GET  /rest/events?since=<lastId>   event stream (completion detector)
#
#   Every request carries the instance's API key in the X-API-Key header
#   (header name configurable). A fresh connection is used per request.
#
# ERROR CLASSIFICATION:
#   timeout / read error      -> ProbeTransientError   (caller retries)
#   connection refused        -> ConnectionFailedError (retried in wait loop)
#   anything else from httpx  -> ProbeFatalError
#   non-2xx status            -> returned as HttpResponse; events() raises
#                                exception_from_http_status()
# ===========================================================================

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from src.core.events import Event, parse_events
from src.core.exceptions import (
    ConnectionFailedError,
    ParseError,
    ProbeFatalError,
    ProbeTransientError,
    exception_from_http_status,
)
from src.monitoring.logger import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CONFIGURATION DATACLASS
# ---------------------------------------------------------------------------

@dataclass
class HttpClientConfig:
    """
    Settings for one DaemonClient.

    Attributes:
        timeout_seconds: Max time to wait for a response.
        user_agent: User-Agent header for requests.
        api_key_header: Header carrying the instance credential.
    """
    timeout_seconds: float = 30.0
    user_agent: str = "SyncBench/1.0"
    api_key_header: str = "X-API-Key"


# ---------------------------------------------------------------------------
# RESPONSE DATACLASS
# ---------------------------------------------------------------------------

@dataclass
class HttpResponse:
    """
    Structured HTTP response.

    Attributes:
        status_code: HTTP status code (200, 401, 404, etc.)
        body: Response body as string.
        headers: Response headers as dict.
        latency_seconds: How long the request took.
        request_url: The URL that was requested.
    """
    status_code: int = 0
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    latency_seconds: float = 0.0
    request_url: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """
        Parse body as JSON.

        Raises ParseError if the body is not valid JSON. An empty body
        decodes to None.
        """
        if not self.body.strip():
            return None
        try:
            return json.loads(self.body)
        except (json.JSONDecodeError, TypeError) as e:
            raise ParseError(
                f"Response from {self.request_url} is not JSON: {e}",
                field="<body>",
            )


# ---------------------------------------------------------------------------
# DAEMON CLIENT
# ---------------------------------------------------------------------------

class DaemonClient:
    """
    REST client bound to one daemon instance.

    Usage:
        client = DaemonClient("http://127.0.0.1:8082", api_key="abc123")
        response = client.scan("default")
        events = client.events()      # advances the since= cursor

    transport is passed to httpx.Client; tests use httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        config: Optional[HttpClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.config = config or HttpClientConfig()
        self._transport = transport
        self.last_event_id = 0

    def post(self, path: str, params: Optional[Dict[str, Any]] = None) -> HttpResponse:
        """Send an HTTP POST request with an empty body."""
        return self._request("POST", path, params)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> HttpResponse:
        """Send an HTTP GET request."""
        return self._request("GET", path, params)

    def scan(self, folder: str) -> HttpResponse:
        """Ask the daemon to rescan a folder. 2xx means the index is usable."""
        return self.post("/rest/scan", {"folder": folder})

    def events(self) -> List[Event]:
        """
        Fetch the events newer than the last one seen.

        Raises:
            ProbeTransientError: timeout or read failure
            ProbeFatalError: connection refused, non-2xx status, bad payload
        """
        response = self.get("/rest/events", {"since": self.last_event_id})
        if not response.is_success:
            raise exception_from_http_status(
                response.status_code, response.body, response.request_url,
            )
        evs = parse_events(response.json())
        if evs:
            self.last_event_id = max(self.last_event_id, evs[-1].id)
        return evs

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.config.user_agent}
        if self.api_key:
            headers[self.config.api_key_header] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> HttpResponse:
        url = self.base_url + path
        start_time = time.time()

        try:
            with httpx.Client(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.request(
                    method, url, params=params, headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            logger.debug("http_timeout", method=method, url=url, error=str(e))
            raise ProbeTransientError(f"Timeout: {method} {url}: {e}", url=url)
        except httpx.ReadError as e:
            logger.debug("http_read_error", method=method, url=url, error=str(e))
            raise ProbeTransientError(f"Read error: {method} {url}: {e}", url=url)
        except httpx.ConnectError as e:
            raise ConnectionFailedError(f"Cannot connect to {url}: {e}", url=url)
        except httpx.HTTPError as e:
            raise ProbeFatalError(f"{method} {url} failed: {type(e).__name__}: {e}")

        latency = time.time() - start_time
        logger.debug(
            "http_request", method=method, url=str(response.request.url),
            status=response.status_code, latency_s=round(latency, 3),
        )
        return HttpResponse(
            status_code=response.status_code,
            body=response.text,
            headers=dict(response.headers),
            latency_seconds=latency,
            request_url=str(response.request.url),
        )


# ---------------------------------------------------------------------------
# FACTORY: Create a DaemonClient from the loaded Config
# ---------------------------------------------------------------------------

def create_daemon_client(instance_config, http_config=None, transport=None) -> DaemonClient:
    """
    Build a DaemonClient for one instance section of the Config
    (config.sender or config.receiver).
    """
    cfg = HttpClientConfig()
    if http_config is not None:
        cfg.timeout_seconds = float(http_config.timeout_seconds)
        cfg.user_agent = http_config.user_agent
        cfg.api_key_header = http_config.api_key_header
    return DaemonClient(
        instance_config.base_url,
        api_key=instance_config.api_key,
        config=cfg,
        transport=transport,
    )
