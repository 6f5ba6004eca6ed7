"""A small WSGI web framework with trie routing, groups, middleware, templates and static files."""

__version__ = "0.1.0"
__all__ = ["__version__"]