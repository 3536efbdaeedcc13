import logging

import pytest
from pytest_httpserver import HTTPServer

from arraymeta.backend import ShimTransport, get_transport, parse_csv_records
from arraymeta.errors import BackendError
from arraymeta.md.decoder import decode_records
from arraymeta.types import TransportType

HEADER = "name,dimensions,attributes,srs,trs,extent"


def csv_row(record) -> str:
    values = (record.name, record.dimensions, record.attributes, record.srs, record.trs, record.extent)
    return ",".join(f"'{value}'" for value in values)


def paths(server: HTTPServer):
    return [request.path for request, _ in server.log]


@pytest.fixture
def shim(httpserver: HTTPServer) -> ShimTransport:
    return ShimTransport(httpserver.url_for("/"), user="scidb", password="secret", read_timeout=2.0)


def expect_session(server: HTTPServer, query: str, output: str, token: str = "tok") -> None:
    server.expect_request("/login", query_string={"username": "scidb", "password": "secret"}).respond_with_data(
        token + "\n"
    )
    server.expect_request("/new_session", query_string={"auth": token}).respond_with_data("7\n")
    server.expect_request(
        "/execute_query",
        query_string={"id": "7", "query": query, "release": "0", "save": "csv", "stream": "1", "auth": token},
    ).respond_with_data("")
    server.expect_request("/read_lines", query_string={"id": "7", "n": "0", "auth": token}).respond_with_data(output)
    server.expect_request("/release_session", query_string={"id": "7", "auth": token}).respond_with_data("")


def test_fetch_runs_full_session(httpserver: HTTPServer, shim: ShimTransport, landsat_record) -> None:
    expect_session(httpserver, "eo_all(landsat)", f"{HEADER}\n{csv_row(landsat_record)}\n")

    records = shim.fetch(["landsat"])

    assert records == [landsat_record]
    assert paths(httpserver) == ["/login", "/new_session", "/execute_query", "/read_lines", "/release_session"]
    assert [d.name for d in decode_records(records)] == ["landsat"]


def test_fetch_all_uses_empty_query(httpserver: HTTPServer, shim: ShimTransport, landsat_record, plain_record) -> None:
    expect_session(httpserver, "eo_all()", "\n".join([HEADER, csv_row(landsat_record), csv_row(plain_record)]))

    assert [r.name for r in shim.fetch()] == ["landsat", "plain"]


def test_token_is_reused(httpserver: HTTPServer, shim: ShimTransport, plain_record) -> None:
    expect_session(httpserver, "eo_all(plain)", f"{HEADER}\n{csv_row(plain_record)}\n")

    shim.fetch(["plain"])
    shim.fetch(["plain"])

    assert paths(httpserver).count("/login") == 1
    assert paths(httpserver).count("/release_session") == 2


def test_session_released_when_query_fails(httpserver: HTTPServer, shim: ShimTransport) -> None:
    httpserver.expect_request("/login").respond_with_data("tok")
    httpserver.expect_request("/new_session").respond_with_data("7")
    httpserver.expect_request("/execute_query").respond_with_data("query failed", status=500)
    httpserver.expect_request("/release_session").respond_with_data("")

    with pytest.raises(BackendError):
        shim.fetch(["landsat"])

    assert paths(httpserver)[-1] == "/release_session"
    assert "/read_lines" not in paths(httpserver)

    # failed query forgets the token
    with pytest.raises(BackendError):
        shim.fetch(["landsat"])
    assert paths(httpserver).count("/login") == 2


def test_release_failure_is_only_logged(httpserver: HTTPServer, shim: ShimTransport, plain_record, caplog) -> None:
    httpserver.expect_request("/login").respond_with_data("tok")
    httpserver.expect_request("/new_session").respond_with_data("7")
    httpserver.expect_request("/execute_query").respond_with_data("")
    httpserver.expect_request("/read_lines").respond_with_data(f"{HEADER}\n{csv_row(plain_record)}")
    httpserver.expect_request("/release_session").respond_with_data("gone", status=500)

    with caplog.at_level(logging.WARNING, logger="arraymeta.backend.shim"):
        records = shim.fetch(["plain"])

    assert [r.name for r in records] == ["plain"]
    assert "release_session" in caplog.text


def test_without_credentials_no_login(httpserver: HTTPServer, plain_record) -> None:
    httpserver.expect_request("/new_session", query_string="").respond_with_data("3")
    httpserver.expect_request("/execute_query").respond_with_data("")
    httpserver.expect_request("/read_lines", query_string={"id": "3", "n": "0"}).respond_with_data(
        f"{HEADER}\n{csv_row(plain_record)}"
    )
    httpserver.expect_request("/release_session", query_string={"id": "3"}).respond_with_data("")

    shim = ShimTransport(httpserver.url_for("/"))
    assert [r.name for r in shim.fetch(["plain"])] == ["plain"]
    assert "/login" not in paths(httpserver)


def test_unreachable_backend_raises_backend_error() -> None:
    shim = ShimTransport("http://127.0.0.1:9", connect_timeout=0.5, read_timeout=0.5)
    with pytest.raises(BackendError) as excinfo:
        shim.fetch(["plain"])
    assert excinfo.value.cause is not None


def test_parse_csv_records_skips_header_and_short_rows(caplog) -> None:
    text = "\n".join([HEADER, "'a','[i;;;0;;;10;;;10;;;0;;;0;;;9]','<v;;;double>','','',''", "'b','x'", ""])
    with caplog.at_level(logging.WARNING, logger="arraymeta.backend.shim"):
        records = parse_csv_records(text)
    assert [r.name for r in records] == ["a"]
    assert records[0].srs == ""
    assert "ignored" in caplog.text


def test_registry_builds_shim_transport() -> None:
    transport = get_transport(TransportType.SHIM, base_url="http://example.com:8083/")
    assert isinstance(transport, ShimTransport)
    assert transport.base_url == "http://example.com:8083"
    assert transport.transport_type is TransportType.SHIM
    with pytest.raises(ValueError):
        get_transport("carrier-pigeon")
