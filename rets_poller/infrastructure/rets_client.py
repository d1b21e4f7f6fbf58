"""
RETS session client.

The poller only needs three calls from the remote source: `login()`,
`find(criteria)` and `logout()`. `SessionClient` is that contract;
`RetsSessionClient` fulfils it over HTTP with httpx, speaking just enough RETS
(capability URLs, reply codes, COMPACT-DECODED search bodies) to feed the
executor.

Login is retried with tenacity on transport-level errors only; reply codes and
HTTP status errors surface immediately as SessionError.
"""

from __future__ import annotations

import hashlib
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable
from urllib.parse import urljoin

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from rets_poller.config import DEFAULT_PROTOCOL_VERSION, PollerConfig, Settings, get_settings
from rets_poller.domain.errors import SessionError
from rets_poller.utils.logging import get_logger
from rets_poller.utils.stats import NullStatsReporter, StatsCollector

log = get_logger(__name__)

REPLY_SUCCESS = 0
REPLY_NO_RECORDS = 20201
SESSION_COOKIE = "RETS-Session-ID"
_URL_CAPABILITIES = frozenset(
    {
        "Action",
        "ChangePassword",
        "GetMetadata",
        "GetObject",
        "Login",
        "LoginComplete",
        "Logout",
        "PostObject",
        "Search",
        "ServerInformation",
        "Update",
    }
)


@runtime_checkable
class SessionClient(Protocol):
    """
    Remote listing source as seen by the executor.

    One instance is shared by every query of a tick, so implementations must
    tolerate repeated login/logout cycles.
    """

    def login(self) -> None: ...

    def find(self, criteria: Mapping[str, Any]) -> List[Dict[str, Any]]: ...

    def logout(self) -> None: ...


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def _split_compact(text: Optional[str], delimiter: str) -> List[str]:
    """Split a COMPACT row; rows are wrapped in a leading and trailing delimiter."""
    if not text:
        return []
    if text.startswith(delimiter):
        text = text[len(delimiter) :]
    if text.endswith(delimiter):
        text = text[: -len(delimiter)]
    return text.split(delimiter)


def parse_reply(body: bytes | str) -> ET.Element:
    """Parse a RETS envelope and raise SessionError on a failing reply code."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise SessionError(f"Malformed RETS response: {exc}") from exc

    if root.tag != "RETS":
        raise SessionError(f"Unexpected RETS response root <{root.tag}>")
    try:
        code = int(root.get("ReplyCode", "0"))
    except ValueError as exc:
        raise SessionError(f"Invalid RETS ReplyCode {root.get('ReplyCode')!r}") from exc
    if code not in (REPLY_SUCCESS, REPLY_NO_RECORDS):
        raise SessionError(root.get("ReplyText") or f"RETS reply code {code}", reply_code=code)
    return root


def parse_capabilities(root: ET.Element, base_url: str) -> Dict[str, str]:
    """
    Extract `Key=Value` capability lines from a login reply.

    RETS 1.5+ wraps them in <RETS-RESPONSE>; older servers put them in the
    envelope body. Relative URLs are resolved against the login URL.
    """
    container = root.find("RETS-RESPONSE")
    text = (container.text if container is not None else root.text) or ""
    capabilities: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep and key:
            capabilities[key.strip()] = value.strip()
    return {
        key: urljoin(base_url, value) if key in _URL_CAPABILITIES else value
        for key, value in capabilities.items()
    }


def parse_compact(root: ET.Element) -> List[Dict[str, Any]]:
    """Turn a COMPACT / COMPACT-DECODED search reply into a list of dicts."""
    if int(root.get("ReplyCode", "0")) == REPLY_NO_RECORDS:
        return []

    delimiter_node = root.find("DELIMITER")
    delimiter = "\t"
    if delimiter_node is not None and delimiter_node.get("value"):
        delimiter = chr(int(delimiter_node.get("value", "09"), 16))

    columns = _split_compact(root.findtext("COLUMNS"), delimiter)
    records: List[Dict[str, Any]] = []
    for data in root.iter("DATA"):
        values = _split_compact(data.text, delimiter)
        records.append(dict(zip(columns, values)))
    return records


class RetsSessionClient:
    """
    httpx-backed RETS client with a single login session at a time.

    Cookies (including the RETS session id) live on the underlying
    `httpx.Client`, so one instance must not be shared across threads.
    """

    def __init__(
        self,
        login_url: str,
        username: str,
        password: str,
        user_agent: str,
        user_agent_password: Optional[str] = None,
        version: str = DEFAULT_PROTOCOL_VERSION,
        auth_method: str = "digest",
        timeout: float = 30.0,
        retry_attempts: int = 3,
        stats: Optional[StatsCollector] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.login_url = login_url
        self.user_agent = user_agent
        self.user_agent_password = user_agent_password
        self.version = version
        self.retry_attempts = max(1, retry_attempts)
        self._stats = stats or NullStatsReporter()
        auth: httpx.Auth = (
            httpx.BasicAuth(username, password)
            if auth_method == "basic"
            else httpx.DigestAuth(username, password)
        )
        self._http = httpx.Client(
            auth=auth,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={"User-Agent": user_agent, "RETS-Version": version, "Accept": "*/*"},
        )
        self._capabilities: Dict[str, str] = {}

    @classmethod
    def from_config(
        cls,
        config: PollerConfig,
        settings: Optional[Settings] = None,
        stats: Optional[StatsCollector] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "RetsSessionClient":
        settings = settings or get_settings()
        return cls(
            login_url=config.url,
            username=config.username,
            password=config.password,
            user_agent=config.user_agent,
            user_agent_password=config.user_agent_password,
            version=config.protocol_version,
            auth_method=config.auth_method,
            timeout=settings.http_timeout_seconds,
            retry_attempts=settings.login_retry_attempts,
            stats=stats,
            transport=transport,
        )

    @property
    def logged_in(self) -> bool:
        return bool(self._capabilities)

    @property
    def capabilities(self) -> Dict[str, str]:
        return dict(self._capabilities)

    def _ua_headers(self) -> Dict[str, str]:
        if not self.user_agent_password:
            return {}
        session_id = self._http.cookies.get(SESSION_COOKIE) or ""
        ua_digest = _md5(f"{self.user_agent}:{self.user_agent_password}")
        return {
            "RETS-UA-Authorization": "Digest "
            + _md5(f"{ua_digest}::{session_id}:{self.version}")
        }

    def _get(self, action: str, url: str, params: Optional[Dict[str, Any]] = None) -> ET.Element:
        try:
            response = self._http.get(url, params=params, headers=self._ua_headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SessionError(
                f"RETS {action} failed: HTTP {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        return parse_reply(response.content)

    def login(self) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        with self._stats.time("login"):
            for attempt in retrying:
                with attempt:
                    root = self._get("login", self.login_url)

        capabilities = parse_capabilities(root, self.login_url)
        if "Search" not in capabilities:
            raise SessionError("RETS login reply does not advertise a Search capability")
        self._capabilities = capabilities
        log.debug("RETS login succeeded", extra={"url": self.login_url})

    def find(self, criteria: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Run one DMQL2 search and return its records.

        `criteria` carries `search_type`, `class`, `query`, `select` and `limit`;
        an empty `select` asks the server for every field.
        """
        if not self.logged_in:
            raise SessionError("Not logged in: call login() before find()")

        params: Dict[str, Any] = {
            "SearchType": criteria.get("search_type"),
            "Class": criteria.get("class"),
            "Query": criteria.get("query"),
            "QueryType": "DMQL2",
            "Format": "COMPACT-DECODED",
            "StandardNames": 0,
            "Count": 0,
        }
        if criteria.get("limit") is not None:
            params["Limit"] = criteria["limit"]
        if criteria.get("select"):
            params["Select"] = criteria["select"]
        params = {key: value for key, value in params.items() if value is not None}

        with self._stats.time("search"):
            root = self._get("search", self._capabilities["Search"], params=params)
        records = parse_compact(root)
        self._stats.count("records", len(records))
        return records

    def logout(self) -> None:
        """Close the remote session; a no-op when not logged in."""
        if not self.logged_in:
            return
        logout_url = self._capabilities.get("Logout")
        try:
            if logout_url:
                with self._stats.time("logout"):
                    self._get("logout", logout_url)
        finally:
            self._capabilities = {}
            self._http.cookies.clear()

    def close(self) -> None:
        self._http.close()


__all__ = [
    "REPLY_NO_RECORDS",
    "RetsSessionClient",
    "SessionClient",
    "parse_capabilities",
    "parse_compact",
    "parse_reply",
]
