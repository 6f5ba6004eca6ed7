"""Example applications built on the engine, and a command that serves them."""

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from wsgiref.simple_server import make_server

from geeweb.context import Context, Handler
from geeweb.engine import Engine
from geeweb.logger import _format_duration, logger

_log = logging.getLogger("geeweb")

_DEFAULT_ADDR = ":9999"


def _go_quote(text: str) -> str:
    """Quote ``text`` as a double-quoted, escaped string literal."""
    return json.dumps(text, ensure_ascii=False)


def _canonical_header(name: str) -> str:
    return "-".join(word.capitalize() for word in name.split("_"))


def _request_headers(environ: Mapping[str, Any]) -> dict[str, list[str]]:
    headers: dict[str, list[str]] = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            headers[_canonical_header(key[5:])] = [value]
    for key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
        if environ.get(key):
            headers[_canonical_header(key)] = [environ[key]]
    return headers


def _request_url(environ: Mapping[str, Any]) -> str:
    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "") or "/"
    query = environ.get("QUERY_STRING", "")
    return f"{path}?{query}" if query else path


def _echo_path(environ: Mapping[str, Any]) -> str:
    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "") or "/"
    return f"URL.Path = {_go_quote(path)}\n"


def _echo_headers(environ: Mapping[str, Any]) -> str:
    lines = []
    for name, values in sorted(_request_headers(environ).items()):
        quoted = " ".join(_go_quote(value) for value in values)
        lines.append(f"Header[{_go_quote(name)}] = [{quoted}]\n")
    return "".join(lines)


_BASE_ROUTES: dict[tuple[str, str], Callable[[Mapping[str, Any]], str]] = {
    ("GET", "/"): _echo_path,
    ("GET", "/hello"): _echo_headers,
}


def base_app(
    environ: Mapping[str, Any], start_response: Callable[..., Any]
) -> Iterable[bytes]:
    """Echo the request path at ``/`` and the request headers at ``/hello``."""
    method = environ.get("REQUEST_METHOD", "GET").upper()
    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "") or "/"
    route = _BASE_ROUTES.get((method, path))
    if route is not None:
        text = route(environ)
    else:
        text = f"404 NOT FOUND: {_request_url(environ)}\n"
    body = text.encode("utf-8")
    start_response(
        "200 OK",
        [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("Content-Length", str(len(body))),
        ],
    )
    return [body]


def _hello_gee(ctx: Context) -> None:
    ctx.html_text(200, "<h1>Hello Gee</h1>")


def _hello_query(ctx: Context) -> None:
    ctx.string(200, "hello %s, you're at %s\n", ctx.query("name"), ctx.path)


def _hello_param(ctx: Context) -> None:
    ctx.string(200, "hello %s, you're at %s\n", ctx.param("name"), ctx.path)


def _login(ctx: Context) -> None:
    ctx.json(
        200,
        {"username": ctx.post_form("username"), "password": ctx.post_form("password")},
    )


def _assets(ctx: Context) -> None:
    ctx.json(200, {"filepath": ctx.param("filepath")})


def build_context_app() -> Engine:
    """An app answering ``/``, ``/hello?name=`` and a form POST to ``/login``."""
    app = Engine()
    app.get("/", _hello_gee)
    app.get("/hello", _hello_query)
    app.post("/login", _login)
    return app


def build_router_app() -> Engine:
    """An app showing named (``:name``) and catch-all (``*filepath``) parameters."""
    app = Engine()
    app.get("/", _hello_gee)
    app.get("/hello", _hello_query)
    app.get("/hello/:name", _hello_param)
    app.get("/assets/*filepath", _assets)
    return app


def build_group_app() -> Engine:
    """An app with routes split into ``/v1`` and ``/v2`` groups."""
    app = Engine()
    app.get("/index", lambda ctx: ctx.html_text(200, "<h1>Index Page</h1>"))
    v1 = app.group("/v1")
    v1.get("/", _hello_gee)
    v1.get("/hello", _hello_query)
    v2 = app.group("/v2")
    v2.get("/hello/:name", _hello_param)
    v2.post("/login", _login)
    return app


def only_for_v2() -> Handler:
    """Middleware for the ``/v2`` group that logs each request's duration."""

    def middleware(ctx: Context) -> None:
        start = time.perf_counter_ns()
        ctx.next()
        elapsed = time.perf_counter_ns() - start
        _log.info(
            "[%d] %s in %s for group v2",
            ctx.status_code,
            ctx.request_uri,
            _format_duration(elapsed),
        )

    return middleware


def build_middleware_app() -> Engine:
    """An app with a global request logger and extra logging for ``/v2``."""
    app = Engine()
    app.use(logger())
    app.get("/", _hello_gee)
    v2 = app.group("/v2")
    v2.use(only_for_v2())
    v2.get("/hello/:name", _hello_param)
    return app


def format_as_date(t: dt.date) -> str:
    """Format a date or datetime as ``YYYY-MM-DD``."""
    return f"{t.year}-{t.month:02d}-{t.day:02d}"


@dataclass(frozen=True)
class _Student:
    name: str
    age: int


def build_template_app(template_glob: str, static_root: str) -> Engine:
    """An app rendering templates from ``template_glob`` and serving ``static_root``."""
    app = Engine()
    app.use(logger())
    app.set_func_map({"FormatAsDate": format_as_date})
    app.load_html_glob(template_glob)
    app.static("/assets", static_root)

    students = (_Student("Geektutu", 20), _Student("Jack", 22))

    app.get("/", lambda ctx: ctx.html(200, "css.tmpl", None))
    app.get(
        "/students",
        lambda ctx: ctx.html(200, "arr.tmpl", {"title": "gee", "stuArr": students}),
    )
    app.get(
        "/date",
        lambda ctx: ctx.html(
            200,
            "custom_func.tmpl",
            {"title": "gee", "now": dt.datetime(2019, 8, 17, tzinfo=dt.timezone.utc)},
        ),
    )
    return app


_BUILDERS: dict[str, Callable[[], Engine]] = {
    "context": build_context_app,
    "router": build_router_app,
    "group": build_group_app,
    "middleware": build_middleware_app,
}


def main(argv: list[str] | None = None) -> int:
    """Serve one of the example applications."""
    parser = argparse.ArgumentParser(prog="geeweb", description="Serve an example app.")
    parser.add_argument(
        "app",
        nargs="?",
        default="template",
        choices=["base", *_BUILDERS, "template"],
        help="which example to serve (default: template)",
    )
    parser.add_argument("--addr", default=_DEFAULT_ADDR, help="host:port to listen on")
    parser.add_argument("--templates", default="templates/*", help="template glob")
    parser.add_argument("--static", default="./static", help="static file directory")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
    )

    if args.app == "base":
        host, _, port = args.addr.rpartition(":")
        with make_server(host, int(port), base_app) as server:
            server.serve_forever()
        return 0

    if args.app == "template":
        app = build_template_app(args.templates, args.static)
    else:
        app = _BUILDERS[args.app]()
    app.run(args.addr)
    return 0