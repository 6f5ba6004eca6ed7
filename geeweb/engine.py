"""Application engine: route groups, middleware, templates and static files."""

from __future__ import annotations

import glob
import logging
import mimetypes
import os
import posixpath
from collections.abc import Callable, Iterable, Mapping
from email.utils import formatdate
from http import HTTPStatus
from pathlib import Path
from typing import Any
from urllib.parse import quote
from wsgiref.simple_server import make_server

import jinja2

from geeweb.context import Context, Handler
from geeweb.router import Router

_log = logging.getLogger("geeweb")

_HTML_ESCAPES = str.maketrans(
    {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&#34;", "'": "&#39;"}
)


def _clean(path: str) -> str:
    """Return the shortest equivalent of a slash-separated path."""
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join_paths(*elems: str) -> str:
    """Join the non-empty elements with slashes and clean the result."""
    joined = "/".join(elem for elem in elems if elem)
    return _clean(joined) if joined else ""


def _status_line(code: int) -> str:
    try:
        phrase = HTTPStatus(code).phrase
    except ValueError:
        phrase = "status code %d" % code
    return f"{code} {phrase}"


def _content_type(path: Path, content: bytes) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed:
        if guessed.startswith("text/") and "charset" not in guessed:
            return guessed + "; charset=utf-8"
        return guessed
    if b"\x00" not in content[:512]:
        try:
            content[:512].decode("utf-8")
        except UnicodeDecodeError:
            pass
        else:
            return "text/plain; charset=utf-8"
    return "application/octet-stream"


def _open_target(root: Path, name: str) -> Path:
    """Locate ``name`` below ``root`` without letting it climb out of it."""
    cleaned = _clean("/" + name.lstrip("/"))
    return root.joinpath(cleaned.lstrip("/"))


def _not_found(ctx: Context) -> None:
    ctx.set_header("Content-Type", "text/plain; charset=utf-8")
    ctx.set_header("X-Content-Type-Options", "nosniff")
    ctx.data(404, b"404 page not found\n")


def _redirect(ctx: Context, target: str) -> None:
    query = ctx.environ.get("QUERY_STRING", "")
    if query:
        target = f"{target}?{query}"
    ctx.set_header("Location", target)
    ctx.status(301)


def _send_file(ctx: Context, path: Path) -> None:
    content = path.read_bytes()
    ctx.set_header("Content-Type", _content_type(path, content))
    ctx.set_header("Last-Modified", formatdate(path.stat().st_mtime, usegmt=True))
    ctx.data(200, content)


def _send_listing(ctx: Context, directory: Path) -> None:
    lines = ["<pre>\n"]
    for entry in sorted(directory.iterdir(), key=lambda item: item.name):
        name = entry.name + ("/" if entry.is_dir() else "")
        lines.append(f'<a href="{quote(name)}">{name.translate(_HTML_ESCAPES)}</a>\n')
    lines.append("</pre>\n")
    ctx.set_header("Content-Type", "text/html; charset=utf-8")
    ctx.data(200, "".join(lines).encode("utf-8"))


def _serve_path(ctx: Context, root: Path, url_path: str) -> None:
    """Serve the file or directory at ``url_path`` below ``root``."""
    if url_path.endswith("/index.html"):
        _redirect(ctx, "./")
        return
    target = _open_target(root, _clean(url_path if url_path.startswith("/") else "/" + url_path))
    if not target.exists():
        _not_found(ctx)
        return
    if target.is_dir():
        if not url_path.endswith("/"):
            _redirect(ctx, posixpath.basename(url_path.rstrip("/")) + "/")
            return
        index = target / "index.html"
        if index.is_file():
            _send_file(ctx, index)
        else:
            _send_listing(ctx, target)
        return
    if url_path.endswith("/"):
        _redirect(ctx, "../" + posixpath.basename(url_path.rstrip("/")))
        return
    _send_file(ctx, target)


class RouterGroup:
    """A set of routes sharing a path prefix and middleware."""

    def __init__(self, prefix: str, parent: RouterGroup | None, engine: Engine) -> None:
        self.prefix = prefix
        self.middlewares: list[Handler] = []
        self.parent = parent
        self.engine = engine

    def group(self, prefix: str) -> RouterGroup:
        """Create a nested group whose prefix extends this group's prefix."""
        new_group = RouterGroup(self.prefix + prefix, self, self.engine)
        self.engine.groups.append(new_group)
        return new_group

    def use(self, *args: Handler) -> None:
        """Add middleware run for every request under this group's prefix."""
        self.middlewares.extend(args)

    def _add_route(self, method: str, comp: str, handler: Handler) -> None:
        pattern = self.prefix + comp
        _log.info("Route %4s - %s", method, pattern)
        self.engine.router.add_route(method, pattern, handler)

    def get(self, pattern: str, handler: Handler) -> None:
        """Register ``handler`` for GET requests matching ``pattern``."""
        self._add_route("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler) -> None:
        """Register ``handler`` for POST requests matching ``pattern``."""
        self._add_route("POST", pattern, handler)

    def _create_static_handler(self, relative_path: str, root: Path) -> Handler:
        absolute_path = _join_paths(self.prefix, relative_path)

        def handler(ctx: Context) -> None:
            target = _open_target(root, ctx.param("filepath"))
            try:
                target.stat()
            except OSError:
                ctx.status(404)
                return
            if not ctx.path.startswith(absolute_path):
                _not_found(ctx)
                return
            _serve_path(ctx, root, ctx.path[len(absolute_path):])

        return handler

    def static(self, relative_path: str, root: str | os.PathLike[str]) -> None:
        """Serve the files under directory ``root`` at ``relative_path``."""
        handler = self._create_static_handler(relative_path, Path(root))
        self.get(_join_paths(relative_path, "/*filepath"), handler)


class Engine(RouterGroup):
    """The WSGI application: the root route group plus shared state."""

    def __init__(self) -> None:
        self.router = Router()
        self.groups: list[RouterGroup] = []
        self.html_templates: jinja2.Environment | None = None
        self.func_map: dict[str, Callable[..., Any]] = {}
        super().__init__("", None, self)
        self.groups.append(self)

    def set_func_map(self, func_map: Mapping[str, Callable[..., Any]]) -> None:
        """Set the functions made available to templates loaded afterwards."""
        self.func_map = dict(func_map)

    def load_html_glob(self, pattern: str) -> None:
        """Load every template file matching ``pattern``, named by base file name."""
        files = sorted(path for path in glob.glob(pattern) if os.path.isfile(path))
        if not files:
            raise ValueError(f"html/template: pattern matches no files: `{pattern}`")
        sources = {os.path.basename(path): Path(path).read_text(encoding="utf-8") for path in files}
        env = jinja2.Environment(loader=jinja2.DictLoader(sources), autoescape=True)
        env.globals.update(self.func_map)
        env.filters.update(self.func_map)
        for name in sources:
            env.get_template(name)
        self.html_templates = env

    def run(self, addr: str) -> None:
        """Serve the application on ``addr`` (``host:port``) until interrupted."""
        host, _, port = addr.rpartition(":")
        with make_server(host, int(port), self) as server:
            server.serve_forever()

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        ctx = Context(environ, self)
        ctx.handlers = [
            middleware
            for group in self.groups
            if ctx.path.startswith(group.prefix)
            for middleware in group.middlewares
        ]
        self.router.handle(ctx)

        body = ctx.body
        headers = ctx.response_headers
        if not any(name.lower() == "content-length" for name, _ in headers):
            headers.append(("Content-Length", str(len(body))))
        start_response(_status_line(ctx.response_status), headers)
        return [body]