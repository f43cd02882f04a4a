import logging

from .errors import CollectionError
from .models import DatabaseFile, ServerFacts

SERVER_FACTS_QUERY = """
SELECT
    si.cpu_count,
    si.hyperthread_ratio,
    si.socket_count,
    si.softnuma_configuration_desc,
    si.sql_memory_model_desc,
    si.physical_memory_kb,
    si.committed_kb,
    (SELECT COUNT(*) FROM sys.dm_os_nodes
        WHERE node_state_desc NOT LIKE '%DAC%') AS numa_node_count,
    (SELECT CAST(value_in_use AS int) FROM sys.configurations
        WHERE name = 'max degree of parallelism') AS max_dop,
    (SELECT CAST(value_in_use AS int) FROM sys.configurations
        WHERE name = 'cost threshold for parallelism') AS cost_threshold,
    (SELECT CAST(value_in_use AS int) FROM sys.configurations
        WHERE name = 'min server memory (MB)') AS min_server_memory_mb,
    (SELECT CAST(value_in_use AS int) FROM sys.configurations
        WHERE name = 'max server memory (MB)') AS max_server_memory_mb,
    (SELECT CAST(value_in_use AS int) FROM sys.configurations
        WHERE name = 'backup compression default') AS backup_compression,
    (SELECT TOP 1 instant_file_initialization_enabled FROM sys.dm_server_services
        WHERE servicename LIKE 'SQL Server (%') AS instant_file_initialization_enabled,
    (SELECT COUNT(*) FROM tempdb.sys.database_files
        WHERE type_desc = 'ROWS') AS tempdb_file_count,
    (SELECT COUNT(DISTINCT size) FROM tempdb.sys.database_files
        WHERE type_desc = 'ROWS') AS tempdb_distinct_sizes,
    (SELECT COUNT(*) FROM tempdb.sys.database_files
        WHERE type_desc = 'ROWS' AND is_percent_growth = 1) AS tempdb_percent_growth_files
FROM sys.dm_os_sys_info si
"""

# tempdb (database_id 2) is covered by the server facts query
DATABASE_FILES_QUERY = """
SELECT
    DB_NAME(mf.database_id) AS database_name,
    mf.name AS logical_name,
    mf.type_desc,
    CAST(mf.size AS bigint) * 8 / 1024.0 AS current_size_mb,
    mf.is_percent_growth,
    CASE WHEN mf.is_percent_growth = 1 THEN mf.growth
         ELSE CAST(mf.growth AS bigint) * 8 / 1024.0 END AS growth_value,
    CASE mf.max_size
         WHEN -1 THEN 'unlimited'
         WHEN 0 THEN 'no growth'
         ELSE CAST(CAST(mf.max_size AS bigint) * 8 / 1024 AS varchar(20)) + ' MB' END AS max_size_desc
FROM sys.master_files mf
WHERE mf.type_desc IN ('ROWS', 'LOG')
  AND mf.database_id <> 2
ORDER BY DB_NAME(mf.database_id), mf.file_id
"""


class FactCollector:
    """Runs the fixed diagnostic queries against an open connection."""

    def __init__(self, conn):
        self.conn = conn

    def query_dict(self, sql):
        #"""Execute a SQL query and return the results as a list of dictionaries."""
        cursor = None
        try:
            cursor = self.conn.cursor()
            cursor.execute(sql)
            columns = [column[0] for column in cursor.description]
            results = [dict(zip(columns, row)) for row in cursor.fetchall()]
            logging.debug("Query executed successfully.")
            return results
        except Exception as e:
            logging.debug(f"Failed to execute query: {e}")
            raise CollectionError(str(e)) from e
        finally:
            if cursor is not None:
                cursor.close()

    def collect_server_facts(self, server_name):
        rows = self.query_dict(SERVER_FACTS_QUERY)
        if not rows:
            raise CollectionError(f"{server_name}: server facts query returned no rows")
        return ServerFacts.from_row(server_name, rows[0])

    def collect_database_files(self):
        return [DatabaseFile.from_row(row) for row in self.query_dict(DATABASE_FILES_QUERY)]
