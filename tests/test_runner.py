from __future__ import annotations

import csv
import io
import logging
from pathlib import Path

import pytest

from conftest import FILE_ROWS, FakeConnection
from config_snitch import report_logger
from config_snitch.errors import ConnectivityError, PreconditionError
from config_snitch.report_logger import ReportLogger
from config_snitch.runner import ServerListRunner, ServerState, read_server_list


def _connector(failing=(), fail_on=None):
    opened = {}

    def connect(server):
        if server in failing:
            raise ConnectivityError(server, "Login timeout expired")
        conn = FakeConnection(fail_on=fail_on)
        opened[server] = conn
        return conn

    connect.opened = opened
    return connect


def _rows(report: ReportLogger):
    return list(csv.reader(io.StringIO(report.render()[0])))[1:]


def test_read_server_list_skips_blanks_and_comments(tmp_path: Path) -> None:
    path = tmp_path / "servers.txt"
    path.write_text("sql01\n\n  sql02  \n# retired\nsql03 # dr site\n", encoding="utf-8")

    assert read_server_list(str(path)) == ["sql01", "sql02", "sql03"]


def test_read_server_list_missing_file(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError, match="not found"):
        read_server_list(str(tmp_path / "nope.txt"))


def test_one_unreachable_server_does_not_stop_the_batch() -> None:
    report = ReportLogger(console=lambda msg: None)
    connect = _connector(failing={"host2"})

    runs = ServerListRunner(report, connect).run(["host1", "host2", "host3"])

    assert [r.state for r in runs] == [ServerState.DONE, ServerState.FAILED, ServerState.DONE]
    assert report.servers == ["host1", "host3"]
    detail = report.render()[1]
    assert "Server: host1" in detail and "Server: host3" in detail
    assert "Server: host2" not in detail

    errors = [row for row in _rows(report) if row[1] == "Connection Error"]
    assert errors == [["host2", "Connection Error", "", "", "host2: Login timeout expired"]]


def test_rows_follow_server_then_rule_order() -> None:
    report = ReportLogger(console=lambda msg: None)

    ServerListRunner(report, _connector(failing={"host2"})).run(["host1", "host2", "host3"])

    servers = [row[0] for row in _rows(report)]
    assert servers == sorted(servers)
    assert [row[1] for row in _rows(report) if row[0] == "host1"][:2] == ["MAXDOP", "Memory Model"]


def test_collection_failure_is_recorded_and_connection_closed() -> None:
    report = ReportLogger(console=lambda msg: None)
    connect = _connector(fail_on="sys.master_files")

    (run,) = ServerListRunner(report, connect).run(["host1"])

    assert run.state is ServerState.FAILED
    assert connect.opened["host1"].closed
    assert _rows(report) == [["host1", "Connection Error", "", "", "Invalid object name"]]
    assert report.servers == []


def test_every_server_failing_still_yields_rows() -> None:
    report = ReportLogger(console=lambda msg: None)

    ServerListRunner(report, _connector(failing={"a", "b"})).run(["a", "b"])

    assert [row[0] for row in _rows(report)] == ["a", "b"]
    assert report.render()[1] == ""


def test_parallel_run_keeps_input_order() -> None:
    servers = [f"host{i:02d}" for i in range(12)]
    sequential = ReportLogger(console=lambda msg: None)
    parallel = ReportLogger(console=lambda msg: None)

    ServerListRunner(sequential, _connector(failing={"host05"})).run(servers)
    runs = ServerListRunner(parallel, _connector(failing={"host05"}), workers=4).run(servers)

    assert [r.server for r in runs] == servers
    assert parallel.render() == sequential.render()


def test_unexpected_exception_is_contained() -> None:
    report = ReportLogger(console=lambda msg: None)

    def connect(server):
        raise ValueError("driver exploded")

    (run,) = ServerListRunner(report, connect).run(["host1"])

    assert run.state is ServerState.FAILED
    assert isinstance(run.error, ValueError)
    assert _rows(report)[0][4] == "driver exploded"


def test_report_failure_for_one_server_becomes_an_error_row(monkeypatch) -> None:
    real_format = report_logger.format_server_detail

    def format_or_fail(facts, files):
        if facts.server_name == "h1":
            raise TypeError("unsupported format string passed to NoneType.__format__")
        return real_format(facts, files)

    monkeypatch.setattr(report_logger, "format_server_detail", format_or_fail)
    report = ReportLogger(console=lambda msg: None)

    runs = ServerListRunner(report, _connector()).run(["h1", "h2"])

    assert [r.state for r in runs] == [ServerState.FAILED, ServerState.DONE]
    assert report.servers == ["h2"]
    assert "Server: h1" not in report.render()[1]
    h1_rows = [row for row in _rows(report) if row[0] == "h1"]
    assert h1_rows == [["h1", "Connection Error", "", "", "unsupported format string passed to NoneType.__format__"]]


def test_unknown_file_sizes_do_not_stop_the_batch() -> None:
    report = ReportLogger(console=lambda msg: None)
    files = [{**FILE_ROWS[0], "current_size_mb": None, "growth_value": None}]

    def connect(server):
        return FakeConnection(file_rows=files)

    runs = ServerListRunner(report, connect).run(["h1", "h2"])

    assert [r.state for r in runs] == [ServerState.DONE, ServerState.DONE]
    assert "growth unknown" in report.render()[1]


def test_one_start_line_and_one_failure_line_per_server(caplog) -> None:
    caplog.set_level(logging.DEBUG)
    report = ReportLogger(console=lambda msg: None)
    connect = _connector(failing={"host2"}, fail_on=None)

    def connect_or_break(server):
        if server == "host3":
            return FakeConnection(fail_on="sys.master_files")
        return connect(server)

    ServerListRunner(report, connect_or_break).run(["host1", "host2", "host3"])

    for server in ("host1", "host2", "host3"):
        mentions = [r for r in caplog.records if server in r.getMessage() and r.levelno >= logging.INFO]
        starts = [r for r in mentions if "Analyzing" in r.getMessage()]
        failures = [r for r in mentions if r.levelno >= logging.WARNING]
        assert len(starts) == 1
        assert len(failures) == (0 if server == "host1" else 1)
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING and "host" not in r.getMessage()]
