"""Per-request context: request accessors, response writing and the handler chain."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Callable
from urllib.parse import parse_qs, quote

import jinja2

Handler = Callable[["Context"], None]
H = dict[str, Any]

_JSON_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)

_FORM_METHODS = frozenset({"POST", "PUT", "PATCH"})
_URI_SAFE = "/:@!$&'()*+,;=-._~"


def _canonical_header(key: str) -> str:
    """Return the canonical form of a header name, e.g. ``content-type`` -> ``Content-Type``."""
    if not key or any(ch.isspace() or ch in ":" for ch in key):
        return key
    return "-".join(word[:1].upper() + word[1:].lower() for word in key.split("-"))


def _wsgi_text(value: str) -> str:
    """Decode a WSGI native string (bytes carried as latin-1) as UTF-8."""
    try:
        return value.encode("latin-1").decode("utf-8", "replace")
    except UnicodeEncodeError:
        return value


def _encode_json(obj: Any) -> bytes:
    text = json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return (text.translate(_JSON_ESCAPES) + "\n").encode("utf-8")


class Context:
    """State for one request as it passes through middleware and its handler.

    ``environ`` is the WSGI environment of the request. ``engine``, when given,
    supplies ``html_templates`` (a :class:`jinja2.Environment`) for :meth:`html`.
    The response built up here is read back through :attr:`response_status`,
    :attr:`response_headers` and :attr:`body`.
    """

    def __init__(self, environ: Mapping[str, Any], engine: Any = None) -> None:
        self.environ = environ
        self.engine = engine
        self.path: str = _wsgi_text(
            environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
        ) or "/"
        self.method: str = environ.get("REQUEST_METHOD", "GET").upper()
        self.params: dict[str, str] = {}
        self.status_code: int = 0
        self.handlers: list[Handler] = []
        self.index: int = -1

        self._headers: dict[str, str] = {}
        self._sent_headers: dict[str, str] | None = None
        self._wrote_status: int | None = None
        self._body = bytearray()
        self._query_values: dict[str, list[str]] | None = None
        self._form_values: dict[str, list[str]] | None = None

    # -- handler chain -------------------------------------------------

    def next(self) -> None:
        """Run the remaining handlers in the chain, in order."""
        self.index += 1
        count = len(self.handlers)
        while self.index < count:
            self.handlers[self.index](self)
            self.index += 1

    def fail(self, code: int, err: str) -> None:
        """Stop the handler chain and reply with a JSON error message."""
        self.index = len(self.handlers)
        self.json(code, {"message": err})

    # -- request -------------------------------------------------------

    @property
    def request_uri(self) -> str:
        """The request target as sent by the client: path plus query string."""
        raw = self.environ.get("REQUEST_URI") or self.environ.get("RAW_URI")
        if raw:
            return raw
        uri = quote(self.path, safe=_URI_SAFE)
        query = self.environ.get("QUERY_STRING", "")
        return f"{uri}?{query}" if query else uri

    def param(self, key: str) -> str:
        """Return the path parameter ``key``, or an empty string."""
        return self.params.get(key, "")

    def _query(self) -> dict[str, list[str]]:
        if self._query_values is None:
            self._query_values = parse_qs(
                _wsgi_text(self.environ.get("QUERY_STRING", "")), keep_blank_values=True
            )
        return self._query_values

    def _read_body(self) -> bytes:
        try:
            length = int(self.environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        stream = self.environ.get("wsgi.input")
        if length <= 0 or stream is None:
            return b""
        return stream.read(length)

    def _form(self) -> dict[str, list[str]]:
        if self._form_values is None:
            values: dict[str, list[str]] = {}
            content_type = self.environ.get("CONTENT_TYPE", "").split(";")[0].strip().lower()
            if self.method in _FORM_METHODS and content_type == "application/x-www-form-urlencoded":
                body = self._read_body().decode("utf-8", "replace")
                for key, items in parse_qs(body, keep_blank_values=True).items():
                    values.setdefault(key, []).extend(items)
            for key, items in self._query().items():
                values.setdefault(key, []).extend(items)
            self._form_values = values
        return self._form_values

    def post_form(self, key: str) -> str:
        """Return the first form value for ``key``: body fields first, then the query."""
        items = self._form().get(key)
        return items[0] if items else ""

    def query(self, key: str) -> str:
        """Return the first query-string value for ``key``, or an empty string."""
        items = self._query().get(key)
        return items[0] if items else ""

    # -- response ------------------------------------------------------

    @property
    def response_status(self) -> int:
        """The status code that goes out on the wire."""
        return self._wrote_status if self._wrote_status is not None else 200

    @property
    def response_headers(self) -> list[tuple[str, str]]:
        """The headers that go out: those set before the status was written."""
        headers = self._sent_headers if self._sent_headers is not None else self._headers
        return list(headers.items())

    @property
    def body(self) -> bytes:
        """The response body written so far."""
        return bytes(self._body)

    def _write_header(self, code: int) -> None:
        if self._wrote_status is None:
            self._wrote_status = code
            self._sent_headers = dict(self._headers)

    def _write(self, data: bytes) -> None:
        self._write_header(200)
        self._body.extend(data)

    def status(self, code: int) -> None:
        """Record ``code`` and write it as the response status if none was written yet."""
        self.status_code = code
        self._write_header(code)

    def set_header(self, key: str, value: str) -> None:
        """Set a response header; it has no effect once the status is written."""
        self._headers[_canonical_header(key)] = value

    def string(self, code: int, fmt: str, *args: Any) -> None:
        """Reply with plain text built from ``fmt`` and ``args``."""
        self.set_header("Content-Type", "text/plain")
        self.status(code)
        text = fmt % args if args else fmt
        self._write(text.encode("utf-8"))

    def json(self, code: int, obj: Any) -> None:
        """Reply with ``obj`` encoded as JSON."""
        self.set_header("Content-Type", "application/json")
        self.status(code)
        try:
            payload = _encode_json(obj)
        except (TypeError, ValueError) as err:
            self.set_header("Content-Type", "text/plain; charset=utf-8")
            self.set_header("X-Content-Type-Options", "nosniff")
            self._write_header(500)
            self._write(f"{err}\n".encode("utf-8"))
            return
        self._write(payload)

    def data(self, code: int, data: bytes) -> None:
        """Reply with raw bytes."""
        self.status(code)
        self._write(data)

    def html(self, code: int, name: str, data: Any = None) -> None:
        """Render the engine's template ``name`` and reply with it as HTML.

        A mapping is passed to the template as its variables; any other value
        is available as ``data``. Rendering errors end in :meth:`fail` with 500.
        """
        self.set_header("Content-Type", "text/html")
        self.status(code)
        templates = getattr(self.engine, "html_templates", None)
        if templates is None:
            self.fail(500, f'html/template: no template "{name}" loaded')
            return
        if data is None:
            variables: dict[str, Any] = {}
        elif isinstance(data, Mapping):
            variables = dict(data)
        else:
            variables = {"data": data}
        try:
            rendered = templates.get_template(name).render(variables)
        except jinja2.TemplateError as err:
            self.fail(500, str(err) or name)
            return
        self._write(rendered.encode("utf-8"))

    def html_text(self, code: int, html: str) -> None:
        """Reply with the given HTML text."""
        self.set_header("Content-Type", "text/html")
        self.status(code)
        self._write(html.encode("utf-8"))