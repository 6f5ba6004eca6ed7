import datetime as dt
import io
import json
import logging

import pytest

from geeweb.apps import (
    base_app,
    build_context_app,
    build_group_app,
    build_middleware_app,
    build_router_app,
    build_template_app,
    format_as_date,
    main,
    only_for_v2,
)
from geeweb.engine import Engine


def environ_for(path, method="GET", query="", body=None, content_type=None, headers=None):
    environ = {
        "REQUEST_METHOD": method,
        "SCRIPT_NAME": "",
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "wsgi.input": io.BytesIO(body or b""),
    }
    if body is not None:
        environ["CONTENT_LENGTH"] = str(len(body))
    if content_type is not None:
        environ["CONTENT_TYPE"] = content_type
    environ.update(headers or {})
    return environ


def recorder():
    captured = {}

    def start_response(status, response_headers):
        captured["status"] = status
        captured["headers"] = dict(response_headers)

    return captured, start_response


def call(app, path, method="GET", query="", body=None, content_type=None, headers=None):
    environ = environ_for(path, method, query, body, content_type, headers)
    captured, start_response = recorder()
    payload = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], payload


def test_base_root_echoes_path():
    captured, start_response = recorder()
    body = b"".join(base_app(environ_for("/"), start_response))
    assert captured["status"] == "200 OK"
    assert body == b'URL.Path = "/"\n'


def test_base_hello_echoes_headers():
    captured, start_response = recorder()
    environ = environ_for(
        "/hello",
        headers={"HTTP_ACCEPT": "*/*", "HTTP_USER_AGENT": "curl/7.54.0"},
    )
    body = b"".join(base_app(environ, start_response))
    assert body.decode() == (
        'Header["Accept"] = ["*/*"]\n' 'Header["User-Agent"] = ["curl/7.54.0"]\n'
    )


def test_base_unknown_path():
    captured, start_response = recorder()
    body = b"".join(base_app(environ_for("/world"), start_response))
    assert body == b"404 NOT FOUND: /world\n"


def test_context_root_html():
    status, headers, body = call(build_context_app(), "/")
    assert status == "200 OK"
    assert headers["Content-Type"] == "text/html"
    assert body == b"<h1>Hello Gee</h1>"


def test_context_hello_query():
    _, _, body = call(build_context_app(), "/hello", query="name=geektutu")
    assert body == b"hello geektutu, you're at /hello\n"


def test_context_login_form():
    form = b"username=geektutu&password=password"
    _, headers, body = call(
        build_context_app(),
        "/login",
        method="POST",
        body=form,
        content_type="application/x-www-form-urlencoded",
    )
    assert headers["Content-Type"] == "application/json"
    assert json.loads(body) == {"username": "geektutu", "password": "password"}


def test_context_not_found():
    status, _, body = call(build_context_app(), "/xxx")
    assert status.startswith("404")
    assert body == b"404 NOT FOUND: /xxx\n"


def test_router_param():
    _, _, body = call(build_router_app(), "/hello/geektutu")
    assert body == b"hello geektutu, you're at /hello/geektutu\n"


def test_router_wildcard():
    _, _, body = call(build_router_app(), "/assets/css/geektutu.css")
    assert json.loads(body) == {"filepath": "css/geektutu.css"}


def test_router_query_route_still_exact():
    _, _, body = call(build_router_app(), "/hello", query="name=geektutu")
    assert body == b"hello geektutu, you're at /hello\n"


def test_group_index_and_v1():
    app = build_group_app()
    assert call(app, "/index")[2] == b"<h1>Index Page</h1>"
    assert call(app, "/v1/")[2] == b"<h1>Hello Gee</h1>"
    assert call(app, "/v1/hello", query="name=geektutu")[2] == (
        b"hello geektutu, you're at /v1/hello\n"
    )


def test_group_v2_routes():
    app = build_group_app()
    _, _, body = call(app, "/v2/hello/geektutu")
    assert body == b"hello geektutu, you're at /v2/hello/geektutu\n"
    _, _, login = call(
        app,
        "/v2/login",
        method="POST",
        body=b"username=geektutu&password=password",
        content_type="application/x-www-form-urlencoded",
    )
    assert json.loads(login)["username"] == "geektutu"


def test_group_unprefixed_hello_is_missing():
    _, _, body = call(build_group_app(), "/hello")
    assert body == b"404 NOT FOUND: /hello\n"


def test_middleware_logs_in_order(caplog):
    app = build_middleware_app()
    with caplog.at_level(logging.INFO, logger="geeweb"):
        _, _, body = call(app, "/v2/hello/geektutu")
    assert body == b"hello geektutu, you're at /v2/hello/geektutu\n"
    messages = [r.getMessage() for r in caplog.records if "/v2/hello/geektutu in" in r.getMessage()]
    assert len(messages) == 2
    assert messages[0].startswith("[200] /v2/hello/geektutu in ")
    assert messages[0].endswith(" for group v2")
    assert not messages[1].endswith("for group v2")


def test_middleware_root_not_logged_for_v2(caplog):
    app = build_middleware_app()
    with caplog.at_level(logging.INFO, logger="geeweb"):
        _, _, body = call(app, "/")
    assert body == b"<h1>Hello Gee</h1>"
    assert not any("for group v2" in r.getMessage() for r in caplog.records)
    assert any(r.getMessage().startswith("[200] / in ") for r in caplog.records)


def test_only_for_v2_runs_handler(caplog):
    app = Engine()
    app.use(only_for_v2())
    app.get("/x", lambda ctx: ctx.string(201, "done"))
    with caplog.at_level(logging.INFO, logger="geeweb"):
        status, _, body = call(app, "/x")
    assert status.startswith("201")
    assert body == b"done"
    assert any(r.getMessage().startswith("[201] /x in ") for r in caplog.records)


def test_format_as_date():
    assert format_as_date(dt.datetime(2019, 8, 17, tzinfo=dt.timezone.utc)) == "2019-08-17"
    assert format_as_date(dt.date(2020, 1, 5)) == "2020-01-05"


@pytest.fixture
def site(tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "css.tmpl").write_text("<p>styled</p>", encoding="utf-8")
    (templates / "arr.tmpl").write_text(
        "<p>hello, {{ title }}</p>\n"
        "{% for s in stuArr %}<p>{{ loop.index0 }}: {{ s.name }} is {{ s.age }} years old</p>\n"
        "{% endfor %}",
        encoding="utf-8",
    )
    (templates / "custom_func.tmpl").write_text(
        "<p>hello, {{ title }}</p>\n<p>Date: {{ FormatAsDate(now) }}</p>",
        encoding="utf-8",
    )
    static = tmp_path / "static"
    (static / "css").mkdir(parents=True)
    (static / "css" / "geektutu.css").write_text("p { color: orange; }\n", encoding="utf-8")
    return build_template_app(str(templates / "*"), str(static))


def test_template_students(site):
    _, headers, body = call(site, "/students")
    text = body.decode()
    assert headers["Content-Type"] == "text/html"
    assert "<p>hello, gee</p>" in text
    assert "<p>0: Geektutu is 20 years old</p>" in text
    assert "<p>1: Jack is 22 years old</p>" in text


def test_template_date(site):
    _, _, body = call(site, "/date")
    assert "<p>Date: 2019-08-17</p>" in body.decode()


def test_template_root(site):
    _, _, body = call(site, "/")
    assert body == b"<p>styled</p>"


def test_template_static_file(site):
    status, _, body = call(site, "/assets/css/geektutu.css")
    assert status == "200 OK"
    assert body == b"p { color: orange; }\n"


def test_template_static_missing(site):
    status, _, body = call(site, "/assets/css/missing.css")
    assert status.startswith("404")
    assert body == b""


def test_template_app_without_templates(tmp_path):
    with pytest.raises(ValueError):
        build_template_app(str(tmp_path / "none" / "*"), str(tmp_path))


def test_main_rejects_unknown_app():
    with pytest.raises(SystemExit) as excinfo:
        main(["nonsense"])
    assert excinfo.value.code == 2