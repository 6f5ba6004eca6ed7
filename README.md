# geeweb

A small web framework for WSGI. It provides:

- a prefix-tree router (`geeweb.router.Router`, built on `geeweb.trie.Node`)
  with named parameters (`/hello/:name`) and catch-all parameters
  (`/assets/*filepath`);
- a request `Context` (`geeweb.context`) with helpers for query strings, form
  values, path parameters and plain-text, JSON, raw and HTML responses;
- route groups with shared prefixes that can be nested;
- middleware chains run through `Context.next()`, including a request
  `logger()` (`geeweb.logger`);
- HTML rendering with Jinja2 templates and serving of static files
  (`geeweb.engine.Engine`).

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## A first application

```python
from geeweb.engine import Engine
from geeweb.logger import logger


def index(ctx):
    ctx.html_text(200, "<h1>Hello Gee</h1>")


def hello(ctx):
    ctx.string(200, "hello %s, you're at %s\n", ctx.param("name"), ctx.path)


def assets(ctx):
    ctx.json(200, {"filepath": ctx.param("filepath")})


app = Engine()
app.use(logger())
app.get("/", index)
app.get("/hello/:name", hello)
app.get("/assets/*filepath", assets)

app.run(":9999")
```

A request for a path with no route gets status 404 and the text
`404 NOT FOUND: <path>`.

`Engine` is a WSGI application (it implements `__call__(environ,
start_response)`), so it can be handed to any WSGI server instead of calling
`run`. `run(addr)` takes `host:port` (an empty host listens on all
interfaces) and serves with the standard library's `wsgiref` server until
interrupted.

## The request context

Each handler receives a `Context`:

- `ctx.path`, `ctx.method`, `ctx.params`, `ctx.request_uri`;
- `ctx.param(key)`, `ctx.query(key)` and `ctx.post_form(key)` return the
  first value or an empty string. `post_form` reads URL-encoded bodies of
  POST, PUT and PATCH requests, then falls back to the query string;
- `ctx.string(code, fmt, *args)` replies with `text/plain` built with `%`
  formatting; `ctx.json(code, obj)` replies with compact JSON with sorted
  keys (an object that cannot be encoded gives a 500 with the error text);
  `ctx.data(code, data)` replies with raw bytes; `ctx.html_text(code, html)`
  replies with HTML text; `ctx.html(code, name, data)` renders a loaded
  template;
- `ctx.status(code)` and `ctx.set_header(key, value)`. Headers set after the
  status has been written are not sent.

## Route groups and middleware

```python
v1 = app.group("/v1")
v1.get("/hello", lambda ctx: ctx.string(200, "hello %s\n", ctx.query("name")))

v2 = app.group("/v2")
v2.use(my_middleware)
v2.post("/login", lambda ctx: ctx.json(200, {"username": ctx.post_form("username")}))
```

Groups nest: `app.group("/v1").group("/v2")` has the prefix `/v1/v2`.
A middleware is a function taking the context; it calls `ctx.next()` to run
the rest of the chain and may call `ctx.fail(code, message)` to stop it with
a JSON body `{"message": ...}`. The middleware of every group whose prefix
starts the request path runs, in the order the groups were created, before
the route handler.

`logger()` logs `[status] uri in duration` for each request, and route
registration logs `Route GET - /pattern`. Both go to the standard `logging`
logger named `geeweb` at INFO level, so configure logging to see them.

## Templates and static files

```python
app.set_func_map({"FormatAsDate": format_as_date})
app.load_html_glob("templates/*")
app.static("/assets", "./static")

app.get("/date", lambda ctx: ctx.html(200, "custom_func.tmpl", {"title": "gee"}))
```

Templates are Jinja2 templates with autoescaping, named by their base file
name. The function map is available in them both as global functions and as
filters; set it before calling `load_html_glob`, which raises `ValueError`
when the pattern matches no files. A mapping passed to `ctx.html` becomes the
template's variables; any other value is available as `data`. A missing
template or a rendering error ends in `ctx.fail(500, ...)`.

`static(relative_path, root)` serves the files under `root` below the given
URL prefix, with content types guessed from file names, directory listings
and `index.html` for directories. A missing file answers with status 404 and
an empty body.

## Demo server

```
geeweb-demo [base|context|router|group|middleware|template] [--addr HOST:PORT]
            [--templates GLOB] [--static DIR]
```

serves one of the example applications in `geeweb.apps` on `:9999` by
default. The default, `template`, loads templates from `templates/*` and
static files from `./static` relative to the working directory, so run it
where those exist or pass `--templates` and `--static`. The examples are
also available as functions: `base_app` (a plain WSGI app echoing the path
at `/` and request headers at `/hello`), `build_context_app`,
`build_router_app`, `build_group_app`, `build_middleware_app` and
`build_template_app(template_glob, static_root)`.

## What it does not do

Only `get` and `post` are offered for registering routes on a group; other
methods need `Router.add_route` directly. `run` uses the single-threaded
`wsgiref` development server with no TLS; use a production WSGI server for
anything else. No templates or static files ship with the package.