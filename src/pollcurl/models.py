"""Canonical data shapes shared across pollcurl modules.

The models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ClientSettings`.

**Request models** -- validated once at submission time and handed to the
transport:
    :class:`RequestOptions`, :class:`RequestDescriptor`, :class:`JsonBody`,
    :class:`FileBody`, :class:`RawBody`, and :class:`BasicAuth`.

**Lifecycle models** -- produced while a request is being polled:
    :class:`RequestState`, :class:`StatusReport`, :class:`Response`, and the
    mutable :class:`RequestRecord` owned by the client's request store.

Pydantic v2 models are used everywhere validation matters. The request
record is a plain dataclass because the poll loop mutates it in place on
every tick.
"""

from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "PATCH")
"""HTTP methods the transport engines accept."""

DEFAULT_USER_AGENT = "pollcurl"


# --- Lifecycle state ---


class RequestState(str, enum.Enum):
    """Lifecycle states shared by the client and the transport.

    Values use the transport's wire spelling so a reported ``state`` field
    maps onto a member with ``RequestState(value)``.
    """

    INIT = "Init"
    SENDING = "Sending"
    RECEIVING = "Receiving"
    COMPLETE = "Complete"
    ERROR = "Error"
    TIMEOUT = "Timeout"
    CANCELLED = "Cancelled"
    IDLE = "Idle"
    ACKNOWLEDGED = "Acknowledged"


# --- Configuration ---


class ClientSettings(BaseModel):
    """Tunables for a :class:`~pollcurl.client.PollingClient` and its transport.

    Persisted as ``config.json`` in the config directory and resolved with
    environment overrides by :func:`~pollcurl.config.resolve_settings`.
    """

    poll_interval_ms: int = Field(
        default=100, gt=0, description="Milliseconds between poll ticks"
    )
    default_timeout: Optional[float] = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds when the caller gives none; null disables it",
    )
    transport: str = Field(
        default="httpx", description="Transport engine name (built-in or entry point)"
    )
    max_workers: int = Field(
        default=4, gt=0, description="Worker threads owned by the httpx engine"
    )
    stall_timeout: int = Field(
        default=30,
        gt=0,
        description="Seconds without progress before the engine reports Timeout",
    )
    idle_timeout: int = Field(
        default=3600,
        gt=0,
        description="Seconds without a poll before the engine treats a request as idle",
    )
    cleanup_interval: int = Field(
        default=300, gt=0, description="Seconds between engine housekeeping passes"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent sent when the request does not set one",
    )


# --- Request bodies ---


class JsonBody(BaseModel):
    """A body serialised as JSON by the transport."""

    kind: Literal["json"] = "json"
    json_: Any = Field(default=None, alias="json")

    model_config = ConfigDict(populate_by_name=True)


class FileBody(BaseModel):
    """A body read from a file at send time."""

    kind: Literal["file"] = "file"
    path: str


class RawBody(BaseModel):
    """A body sent verbatim."""

    kind: Literal["raw"] = "raw"
    raw: str


RequestBody = Annotated[Union[JsonBody, FileBody, RawBody], Field(discriminator="kind")]


class BasicAuth(BaseModel):
    """HTTP basic-auth credentials."""

    username: str
    password: str = ""


def _coerce_body(value: Any) -> Any:
    """Pick the body variant for a caller-supplied value.

    Dicts and lists become JSON, a string naming a readable file becomes a
    file body, anything else is sent raw.
    """
    if value is None or isinstance(value, (JsonBody, FileBody, RawBody)):
        return value
    if isinstance(value, (dict, list)):
        return JsonBody(json=value)
    if isinstance(value, bytes):
        return RawBody(raw=value.decode("utf-8", errors="replace"))
    if isinstance(value, str) and value and os.path.isfile(value) and os.access(value, os.R_OK):
        return FileBody(path=value)
    return RawBody(raw=str(value))


def _coerce_auth(value: Any) -> Any:
    if isinstance(value, str):
        username, _, password = value.partition(":")
        return BasicAuth(username=username, password=password)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return BasicAuth(username=str(value[0]), password=str(value[1]))
    return value


class _RequestFields(BaseModel):
    """Fields shared by the caller-facing options and the transport descriptor."""

    model_config = ConfigDict(extra="forbid")

    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[RequestBody] = None
    query: Optional[dict[str, Any]] = None
    form: Optional[dict[str, Any]] = None
    auth: Optional[BasicAuth] = None
    timeout: Optional[float] = Field(default=60.0, gt=0)
    insecure: bool = False
    proxy: Optional[str] = None
    follow_redirects: bool = True
    stream: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"expected an absolute http(s) URL, got {value!r}")
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _check_method(cls, value: Any) -> str:
        method = str(value).upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method

    @field_validator("body", mode="before")
    @classmethod
    def _check_body(cls, value: Any) -> Any:
        return _coerce_body(value)

    @field_validator("auth", mode="before")
    @classmethod
    def _check_auth(cls, value: Any) -> Any:
        return _coerce_auth(value)


class RequestDescriptor(_RequestFields):
    """The request description that crosses the transport boundary.

    Identical to :class:`RequestOptions` minus the callbacks. ``stream`` is
    always resolved to a bool here.
    """

    stream: bool = False


class RequestOptions(_RequestFields):
    """Every option :meth:`~pollcurl.client.PollingClient.request` recognises.

    Unknown keys are rejected. ``stream`` left as ``None`` resolves to
    ``True`` exactly when an ``on_chunk`` callback is registered.

    Example::

        RequestOptions(
            url="https://api.example.com/chat",
            method="POST",
            body={"prompt": "hi"},
            on_chunk=print,
            on_complete=lambda resp: print(resp.status),
        )
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    on_complete: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_chunk: Optional[Callable[..., Any]] = None

    @model_validator(mode="after")
    def _resolve_stream(self) -> "RequestOptions":
        if self.stream is None:
            self.stream = self.on_chunk is not None
        return self

    def descriptor(self) -> RequestDescriptor:
        """Return the transport-facing part of these options."""
        return RequestDescriptor(
            url=self.url,
            method=self.method,
            headers=dict(self.headers),
            body=self.body,
            query=self.query,
            form=self.form,
            auth=self.auth,
            timeout=self.timeout,
            insecure=self.insecure,
            proxy=self.proxy,
            follow_redirects=self.follow_redirects,
            stream=bool(self.stream),
        )


# --- Status and response ---


class StatusReport(BaseModel):
    """One answer from ``transport.get_status``.

    ``state`` is optional: older engines report only ``completed`` plus the
    response fields and the client infers the state.
    """

    model_config = ConfigDict(extra="ignore")

    completed: bool = False
    state: Optional[str] = None
    status: Optional[int] = None
    body: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    error: Optional[str] = None


class Response(BaseModel):
    """The completed response handed to ``on_complete``."""

    request_id: str
    status: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @property
    def ok(self) -> bool:
        """``True`` for 2xx and 3xx statuses."""
        return self.status is not None and 200 <= self.status < 400

    def json(self) -> Any:  # type: ignore[override]
        """Return the body decoded as JSON, the raw text, or ``None`` when empty."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except (json.JSONDecodeError, TypeError):
            return self.body


@dataclass
class RequestRecord:
    """Client-side bookkeeping for one submitted request.

    Created in ``Init`` by :meth:`~pollcurl.client.PollingClient.request`,
    mutated by the poll loop and the cancellation controller, and removed
    from the store once terminal and callback-complete.

    Attributes:
        id: Unique request identifier.
        state: Current lifecycle state.
        on_complete: Called with a :class:`Response` on success.
        on_error: Called with a :class:`~pollcurl.exceptions.RequestFailed`.
        on_chunk: Called with each newly arrived body suffix.
        last_body: Most recently observed cumulative body.
        last_body_length: Length of ``last_body``; never decreases.
        error: Error detail, set only in ``Error`` (and the other failure states).
        timeout_deadline: Clock value after which the request times out
            locally; ``None`` disables the check.
        status: HTTP status from the latest snapshot.
        headers: Response headers from the latest snapshot.
        callbacks_discharged: Set once the terminal callback has been handled.
    """

    id: str
    state: RequestState = RequestState.INIT
    on_complete: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_chunk: Optional[Callable[..., Any]] = None
    last_body: str = ""
    last_body_length: int = 0
    error: Optional[str] = None
    timeout_deadline: Optional[float] = None
    status: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    method: str = "GET"
    url: str = ""
    submitted_at: float = 0.0
    callbacks_discharged: bool = False

    @property
    def has_callbacks(self) -> bool:
        return any((self.on_complete, self.on_error, self.on_chunk))

    def to_response(self) -> Response:
        """Build the :class:`Response` handed to ``on_complete``."""
        return Response(
            request_id=self.id,
            status=self.status,
            headers=dict(self.headers),
            body=self.last_body,
        )
