"""Prefix tree used to match request paths against registered route patterns."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(eq=False)
class Node:
    """One segment of a route pattern in the routing trie.

    ``pattern`` is the full route and is set only on nodes that end a route.
    ``part`` is the path segment this node stands for. ``is_wild`` is true
    when the segment starts with ``:`` or ``*`` and so matches any segment.
    """

    pattern: str = ""
    part: str = ""
    children: list[Node] = field(default_factory=list)
    is_wild: bool = False

    def __str__(self) -> str:
        wild = "true" if self.is_wild else "false"
        return f"node{{pattern={self.pattern}, part={self.part}, isWild={wild}}}"

    def insert(self, pattern: str, parts: list[str], height: int) -> None:
        """Add the route ``pattern``, split into ``parts``, below this node."""
        if len(parts) == height:
            self.pattern = pattern
            return

        part = parts[height]
        child = self.match_child(part)
        if child is None:
            child = Node(part=part, is_wild=part.startswith((":", "*")))
            self.children.append(child)
        child.insert(pattern, parts, height + 1)

    def search(self, parts: list[str], height: int) -> Node | None:
        """Return the node whose route matches ``parts``, or None."""
        if len(parts) == height or self.part.startswith("*"):
            return self if self.pattern else None

        part = parts[height]
        for child in self.match_children(part):
            result = child.search(parts, height + 1)
            if result is not None:
                return result
        return None

    def travel(self) -> list[Node]:
        """Return every node below and including this one that ends a route."""
        found: list[Node] = []
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            if node.pattern:
                found.append(node)
            stack.extend(reversed(node.children))
        return found

    def match_child(self, part: str) -> Node | None:
        """Return the first child matching ``part`` exactly or by wildcard."""
        return next(
            (child for child in self.children if child.part == part or child.is_wild),
            None,
        )

    def match_children(self, part: str) -> list[Node]:
        """Return all children matching ``part`` exactly or by wildcard."""
        return [child for child in self.children if child.part == part or child.is_wild]