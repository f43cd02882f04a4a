from __future__ import annotations

import dataclasses

import pytest

from config_snitch.models import MEMORY_MODEL_LOCKED, DatabaseFile, ServerFacts


def make_facts(**overrides) -> ServerFacts:
    """Facts for an 8 CPU / 64 GB box that passes every rule."""
    facts = ServerFacts(
        server_name="sql01",
        cpu_count=8,
        numa_node_count=1,
        hyperthread_ratio=2,
        socket_count=1,
        soft_numa_description="OFF",
        memory_model=MEMORY_MODEL_LOCKED,
        total_memory_gb=64.0,
        committed_memory_gb=40.0,
        current_max_dop=8,
        cost_threshold_for_parallelism=25,
        min_server_memory_mb=0,
        max_server_memory_mb=60 * 1024,
        backup_compression_enabled=True,
        instant_file_initialization_enabled=True,
        tempdb_file_count=8,
        tempdb_distinct_size_count=1,
        tempdb_percent_growth_file_count=0,
    )
    return dataclasses.replace(facts, **overrides)


def make_file(**overrides) -> DatabaseFile:
    values = dict(
        database_name="Sales",
        logical_file_name="Sales_data",
        file_type="data",
        current_size_mb=1024.0,
        is_percent_growth=False,
        growth_value=256.0,
        max_size_descriptor="unlimited",
    )
    values.update(overrides)
    return DatabaseFile(**values)


SERVER_ROW = {
    "cpu_count": 16,
    "hyperthread_ratio": 2,
    "socket_count": 2,
    "softnuma_configuration_desc": "OFF",
    "sql_memory_model_desc": "CONVENTIONAL",
    "physical_memory_kb": 128 * 1024 * 1024,
    "committed_kb": 32 * 1024 * 1024,
    "numa_node_count": 1,
    "max_dop": 0,
    "cost_threshold": 5,
    "min_server_memory_mb": 0,
    "max_server_memory_mb": 2147483647,
    "backup_compression": 0,
    "instant_file_initialization_enabled": "N",
    "tempdb_file_count": 1,
    "tempdb_distinct_sizes": 1,
    "tempdb_percent_growth_files": 0,
}

FILE_ROWS = [
    {
        "database_name": "Sales",
        "logical_name": "Sales_data",
        "type_desc": "ROWS",
        "current_size_mb": 2048.0,
        "is_percent_growth": True,
        "growth_value": 10,
        "max_size_desc": "unlimited",
    },
    {
        "database_name": "Sales",
        "logical_name": "Sales_log",
        "type_desc": "LOG",
        "current_size_mb": 512.0,
        "is_percent_growth": False,
        "growth_value": 64.0,
        "max_size_desc": "2097152 MB",
    },
]


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self._rows = []
        self.closed = False

    def execute(self, sql):
        self.conn.executed.append(sql)
        if self.conn.fail_on and self.conn.fail_on in sql:
            raise RuntimeError("Invalid object name")
        rows = self.conn.rows_for(sql)
        columns = list(rows[0].keys()) if rows else ["empty"]
        self.description = [(name, None) for name in columns]
        self._rows = [tuple(row[c] for c in columns) for row in rows]

    def fetchall(self):
        return self._rows

    def close(self):
        self.closed = True
        self.conn.cursors_closed += 1


class FakeConnection:
    """Answers the collector's two queries from canned rows."""

    def __init__(self, server_row=None, file_rows=None, fail_on=None):
        self.server_row = SERVER_ROW if server_row is None else server_row
        self.file_rows = FILE_ROWS if file_rows is None else file_rows
        self.fail_on = fail_on
        self.executed = []
        self.cursors_closed = 0
        self.closed = False

    def rows_for(self, sql):
        if "sys.dm_os_sys_info" in sql:
            return [self.server_row] if self.server_row else []
        if "sys.master_files" in sql:
            return self.file_rows
        return []

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


@pytest.fixture
def compliant_facts() -> ServerFacts:
    return make_facts()


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()
