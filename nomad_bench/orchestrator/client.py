"""Nomad HTTP API client.

Covers the small slice of the API the benchmark needs: job registration,
listing and deregistration, plus the blocking allocation listing used by the
status watch loop.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import DEFAULT_NOMAD_ADDR, NomadConfig, parse_duration
from .base import Allocation, JobStub, OrchestratorError, QueryMeta

# Margin on top of the server-side wait before the client gives up on a
# blocking query. The server adds up to wait/16 of jitter.
BLOCKING_READ_MARGIN = 15.0


class NomadClient:
    """Client for the Nomad HTTP API.

    Non-blocking GETs retry on connection errors and 5xx responses. The
    blocking allocation query is sent through a separate adapter without
    retries so that the watch loop alone decides what happens after a failure.
    """

    def __init__(
        self,
        address: str = DEFAULT_NOMAD_ADDR,
        token: Optional[str] = None,
        region: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: int = 30,
        wait: str = "5m",
    ):
        self.address = address.rstrip("/")
        self.token = token
        self.region = region
        self.namespace = namespace
        self.timeout = timeout
        self.wait = wait
        self._wait_seconds = parse_duration(wait).total_seconds()
        self._session: Optional[requests.Session] = None
        self._blocking_session: Optional[requests.Session] = None

    @classmethod
    def from_config(cls, config: NomadConfig) -> "NomadClient":
        return cls(
            address=config.address,
            token=config.token,
            region=config.region,
            namespace=config.namespace,
            timeout=config.timeout,
            wait=config.wait,
        )

    # --- Sessions ---

    def _new_session(self, retry: Retry) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(
            max_retries=retry,
            pool_connections=2,
            pool_maxsize=4,
        )
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update({"User-Agent": "nomad-bench/0.3"})
        if self.token:
            session.headers["X-Nomad-Token"] = self.token
        return session

    def _get_session(self) -> requests.Session:
        """Get or create the session used for regular API calls."""
        if self._session is None:
            retry = Retry(
                total=4,
                connect=4,
                read=2,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=("GET",),
            )
            self._session = self._new_session(retry)
        return self._session

    def _get_blocking_session(self) -> requests.Session:
        """Get or create the session used for blocking queries."""
        if self._blocking_session is None:
            self._blocking_session = self._new_session(Retry(total=0, read=False, redirect=False))
        return self._blocking_session

    def close(self) -> None:
        """Close the sessions and release resources."""
        for session in (self._session, self._blocking_session):
            if session is not None:
                session.close()
        self._session = None
        self._blocking_session = None

    # --- Request plumbing ---

    def _params(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self.region:
            params["region"] = self.region
        if self.namespace:
            params["namespace"] = self.namespace
        if extra:
            params.update(extra)
        return params

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        blocking: bool = False,
    ) -> requests.Response:
        session = self._get_blocking_session() if blocking else self._get_session()
        if blocking:
            timeout = (self.timeout, self._wait_seconds + self._wait_seconds / 16 + BLOCKING_READ_MARGIN)
        else:
            timeout = self.timeout

        try:
            resp = session.request(
                method,
                f"{self.address}{path}",
                params=self._params(params),
                json=json_body,
                timeout=timeout,
            )
        except requests.exceptions.RequestException as e:
            raise OrchestratorError(operation, str(e), e) from e

        if resp.status_code >= 400:
            detail = resp.text.strip() or resp.reason
            raise OrchestratorError(
                operation,
                f"HTTP {resp.status_code}: {detail}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _decode(operation: str, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise OrchestratorError(operation, f"invalid JSON response: {e}", e) from e

    @classmethod
    def _decode_list(cls, operation: str, resp: requests.Response) -> List[Dict[str, Any]]:
        """Decode a JSON list of objects. Any other item shape is an error."""
        data = cls._decode(operation, resp)
        if not isinstance(data, list):
            raise OrchestratorError(operation, f"expected a list, got {type(data).__name__}")
        for position, item in enumerate(data):
            if not isinstance(item, dict):
                raise OrchestratorError(
                    operation, f"unexpected item at position {position}: {type(item).__name__}"
                )
        return data

    @staticmethod
    def _query_meta(operation: str, resp: requests.Response) -> QueryMeta:
        raw_index = resp.headers.get("X-Nomad-Index")
        if raw_index is None:
            raise OrchestratorError(operation, "response is missing the X-Nomad-Index header")
        try:
            last_index = int(raw_index)
        except ValueError as e:
            raise OrchestratorError(operation, f"invalid X-Nomad-Index header {raw_index!r}", e) from e

        try:
            last_contact = int(resp.headers.get("X-Nomad-LastContact", "0"))
        except ValueError:
            last_contact = 0
        return QueryMeta(
            last_index=last_index,
            known_leader=resp.headers.get("X-Nomad-KnownLeader", "true") == "true",
            last_contact_ms=last_contact,
        )

    # --- Allocations ---

    def list_allocations(self, wait_index: int, allow_stale: bool = True) -> Tuple[List[Allocation], QueryMeta]:
        """List all allocations with a blocking query.

        The server holds the request until its index moves past ``wait_index``
        or the wait time elapses.

        Raises:
            OrchestratorError: On any transport, HTTP or decoding failure.
        """
        operation = "list allocations"
        params: Dict[str, Any] = {"index": wait_index, "wait": self.wait}
        if allow_stale:
            params["stale"] = ""
        resp = self._request(operation, "GET", "/v1/allocations", params=params, blocking=True)
        meta = self._query_meta(operation, resp)
        items = self._decode_list(operation, resp)
        allocations = []
        for position, item in enumerate(items):
            try:
                allocations.append(Allocation.from_api(item))
            except ValueError as e:
                raise OrchestratorError(operation, f"malformed allocation at position {position}: {e}", e) from e
        return allocations, meta

    # --- Jobs ---

    def register(self, job: Dict[str, Any]) -> str:
        """Register a job and return the evaluation ID.

        Args:
            job: Job in the API wire representation.
        """
        operation = "register job"
        resp = self._request(operation, "POST", "/v1/jobs", json_body={"Job": job})
        data = self._decode(operation, resp)
        return data.get("EvalID", "") if isinstance(data, dict) else ""

    def list_jobs(self) -> List[JobStub]:
        """List all registered jobs."""
        operation = "list jobs"
        resp = self._request(operation, "GET", "/v1/jobs")
        return [JobStub.from_api(item) for item in self._decode_list(operation, resp)]

    def deregister(self, job_id: str) -> str:
        """Deregister a job and return the evaluation ID."""
        operation = "deregister job"
        resp = self._request(operation, "DELETE", f"/v1/job/{quote(job_id, safe='')}")
        data = self._decode(operation, resp)
        return data.get("EvalID", "") if isinstance(data, dict) else ""
