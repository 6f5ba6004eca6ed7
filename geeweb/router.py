"""Route registration and lookup built on the routing trie."""

from __future__ import annotations

from typing import Any, Callable

from geeweb.trie import Node

Handler = Callable[[Any], None]


def parse_pattern(pattern: str) -> list[str]:
    """Split a route pattern or request path into its non-empty segments.

    Only one ``*`` segment is honoured: everything after the first segment
    starting with ``*`` is dropped, since the wildcard captures it.
    """
    parts: list[str] = []
    for item in pattern.split("/"):
        if not item:
            continue
        parts.append(item)
        if item.startswith("*"):
            break
    return parts


def _not_found(ctx: Any) -> None:
    ctx.string(404, "404 NOT FOUND: %s\n", ctx.path)


class Router:
    """Maps an HTTP method and a path to the handler registered for it."""

    def __init__(self) -> None:
        self._roots: dict[str, Node] = {}
        self._handlers: dict[str, Handler | None] = {}

    @staticmethod
    def _key(method: str, pattern: str) -> str:
        return f"{method}-{pattern}"

    def add_route(self, method: str, pattern: str, handler: Handler | None) -> None:
        """Register ``handler`` for requests with ``method`` matching ``pattern``."""
        parts = parse_pattern(pattern)
        root = self._roots.setdefault(method, Node())
        root.insert(pattern, parts, 0)
        self._handlers[self._key(method, pattern)] = handler

    def get_route(self, method: str, path: str) -> tuple[Node | None, dict[str, str]]:
        """Find the route matching ``path``.

        Returns the matching trie node and the parameters taken from the path,
        or ``(None, {})`` when nothing matches.
        """
        root = self._roots.get(method)
        if root is None:
            return None, {}

        search_parts = parse_pattern(path)
        node = root.search(search_parts, 0)
        if node is None:
            return None, {}

        params: dict[str, str] = {}
        for index, part in enumerate(parse_pattern(node.pattern)):
            if part.startswith(":"):
                params[part[1:]] = search_parts[index]
            if part.startswith("*") and len(part) > 1:
                params[part[1:]] = "/".join(search_parts[index:])
                break
        return node, params

    def get_routes(self, method: str) -> list[Node]:
        """Return every node that ends a route registered for ``method``."""
        root = self._roots.get(method)
        if root is None:
            return []
        return root.travel()

    def handle(self, ctx: Any) -> None:
        """Append the matching handler (or a 404 handler) to ``ctx`` and run the chain."""
        node, params = self.get_route(ctx.method, ctx.path)
        if node is not None:
            ctx.params = params
            ctx.handlers.append(self._handlers[self._key(ctx.method, node.pattern)])
        else:
            ctx.handlers.append(_not_found)
        ctx.next()