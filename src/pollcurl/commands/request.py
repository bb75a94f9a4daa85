"""Request commands -- send one HTTP request through the polling client.

Provides ``pollcurl request URL`` plus the ``get``/``post``/``put``/
``delete``/``head``/``patch`` shorthands. Each invocation builds a
:class:`~pollcurl.client.PollingClient` on a fresh event loop, submits a
single request, and waits for its terminal callback. Streamed chunks go to
stdout as they arrive; the status line goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import typer

from pollcurl.client import PollingClient
from pollcurl.exceptions import HTTPStatusError, InvalidOptionsError
from pollcurl.models import FileBody, JsonBody, RawBody, Response
from pollcurl.output import debug, render_response, status_line, warning, write_chunk

URL_ARG = typer.Argument(help="Absolute http(s) URL.")
HEADER_OPT = typer.Option(None, "--header", "-H", help="Header as 'Name: value' (repeatable).")
DATA_OPT = typer.Option(None, "--data", "-d", help="Raw body; '@path' sends a file.")
JSON_OPT = typer.Option(None, "--json-body", help="JSON body (parsed before sending).")
FORM_OPT = typer.Option(None, "--form", "-F", help="Form field as key=value (repeatable).")
QUERY_OPT = typer.Option(None, "--query", help="Query parameter as key=value (repeatable).")
USER_OPT = typer.Option(None, "--user", "-u", help="Basic auth as user:password.")
TIMEOUT_OPT = typer.Option(None, "--timeout", "-t", help="Timeout in seconds.")
INSECURE_OPT = typer.Option(False, "--insecure", "-k", help="Skip TLS verification.")
PROXY_OPT = typer.Option(None, "--proxy", help="Proxy URL.")
STREAM_OPT = typer.Option(False, "--stream/--no-stream", help="Print the body as it arrives.")
FAIL_OPT = typer.Option(False, "--fail", "-f", help="Exit non-zero on HTTP 4xx/5xx.")


def request_command(
    url: str = URL_ARG,
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = HEADER_OPT,
    data: Optional[str] = DATA_OPT,
    json_body: Optional[str] = JSON_OPT,
    form: Optional[list[str]] = FORM_OPT,
    query: Optional[list[str]] = QUERY_OPT,
    user: Optional[str] = USER_OPT,
    timeout: Optional[float] = TIMEOUT_OPT,
    insecure: bool = INSECURE_OPT,
    proxy: Optional[str] = PROXY_OPT,
    stream: bool = STREAM_OPT,
    fail: bool = FAIL_OPT,
) -> None:
    """Send an HTTP request.

    Example::

        pollcurl request https://httpbin.org/post -X POST --json-body '{"a": 1}'
        pollcurl request https://example.com/events --stream
    """
    perform_request(
        method, url, header, data, json_body, form, query, user, timeout, insecure, proxy, stream, fail
    )


def make_verb_command(method: str) -> Callable[..., None]:
    """Build the shorthand command for *method* (e.g. ``pollcurl get URL``)."""

    def verb_command(
        url: str = URL_ARG,
        header: Optional[list[str]] = HEADER_OPT,
        data: Optional[str] = DATA_OPT,
        json_body: Optional[str] = JSON_OPT,
        form: Optional[list[str]] = FORM_OPT,
        query: Optional[list[str]] = QUERY_OPT,
        user: Optional[str] = USER_OPT,
        timeout: Optional[float] = TIMEOUT_OPT,
        insecure: bool = INSECURE_OPT,
        proxy: Optional[str] = PROXY_OPT,
        stream: bool = STREAM_OPT,
        fail: bool = FAIL_OPT,
    ) -> None:
        perform_request(
            method, url, header, data, json_body, form, query, user, timeout, insecure, proxy, stream, fail
        )

    verb_command.__doc__ = f"Send a {method} request."
    verb_command.__name__ = f"{method.lower()}_command"
    return verb_command


def perform_request(
    method: str,
    url: str,
    header: Optional[list[str]],
    data: Optional[str],
    json_body: Optional[str],
    form: Optional[list[str]],
    query: Optional[list[str]],
    user: Optional[str],
    timeout: Optional[float],
    insecure: bool,
    proxy: Optional[str],
    stream: bool,
    fail: bool,
) -> Response:
    """Build options from CLI values, run the request, and render the result.

    Raises:
        InvalidOptionsError: For malformed headers, pairs, or JSON.
        RequestFailed: When the request ends in Error/Timeout/Cancelled.
        HTTPStatusError: With ``fail`` and a 4xx/5xx status.
    """
    from pollcurl.config import resolve_settings

    options: dict[str, Any] = {
        "url": url,
        "method": method,
        "headers": parse_headers(header or []),
        "insecure": insecure,
        "proxy": proxy,
    }
    if timeout is not None:
        options["timeout"] = timeout
    if form:
        options["form"] = parse_pairs(form, "form field")
    if query:
        options["query"] = parse_pairs(query, "query parameter")
    if user:
        options["auth"] = user
    body = build_body(data, json_body)
    if body is not None:
        options["body"] = body

    settings = resolve_settings()
    debug(f"{method} {url} via transport '{settings.transport}'")
    response = asyncio.run(_run(options, settings, stream))

    status_line(response)
    if stream:
        if response.body and not response.body.endswith("\n"):
            write_chunk("\n")
    else:
        render_response(response)

    if fail and response.status is not None and response.status >= 400:
        raise HTTPStatusError(f"HTTP {response.status} from {url}", response.status)
    return response


async def _run(options: dict[str, Any], settings: Any, stream: bool) -> Response:
    loop = asyncio.get_running_loop()
    done: asyncio.Future[Response] = loop.create_future()

    def on_complete(response: Response) -> None:
        if not done.done():
            done.set_result(response)

    def on_error(exc: Exception) -> None:
        if not done.done():
            done.set_exception(exc)

    client = PollingClient(settings=settings, notify=warning)
    try:
        client.request(
            options,
            on_complete=on_complete,
            on_error=on_error,
            on_chunk=write_chunk if stream else None,
            stream=stream,
        )
        return await done
    finally:
        client.destroy()


def parse_headers(values: list[str]) -> dict[str, str]:
    """Parse ``'Name: value'`` strings into a header dict."""
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise InvalidOptionsError(f"Invalid header (expected 'Name: value'): {raw}")
        headers[name.strip()] = value.strip()
    return headers


def parse_pairs(values: list[str], what: str) -> dict[str, str]:
    """Parse ``key=value`` strings into a dict."""
    pairs: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise InvalidOptionsError(f"Invalid {what} (expected key=value): {raw}")
        pairs[key] = value
    return pairs


def build_body(data: Optional[str], json_body: Optional[str]) -> Optional[Any]:
    """Pick the body variant for ``--data``/``--json-body``; ``--json-body`` wins."""
    if json_body is not None:
        try:
            return JsonBody(json=json.loads(json_body))
        except json.JSONDecodeError as exc:
            raise InvalidOptionsError(f"Invalid --json-body: {exc}") from exc
    if data is None:
        return None
    if data.startswith("@"):
        return FileBody(path=data[1:])
    return RawBody(raw=data)
