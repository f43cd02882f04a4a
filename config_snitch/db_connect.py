import pyodbc
import logging

from .errors import ConnectivityError

DEFAULT_DRIVER = "{ODBC Driver 17 for SQL Server}"
DEFAULT_DATABASE = "master"
DEFAULT_TIMEOUT = 15


def build_connection_string(server, database=DEFAULT_DATABASE, driver=DEFAULT_DRIVER):
    return (
        f"DRIVER={driver};"
        f"SERVER={server};"
        f"DATABASE={database};"
        f"Trusted_Connection=yes;"
    )


def get_connection(server, database=DEFAULT_DATABASE, driver=DEFAULT_DRIVER, timeout=DEFAULT_TIMEOUT):
    #"""Open a trusted connection to one server. No retries; a failure is the caller's to record."""
    connection_string = build_connection_string(server, database, driver)
    try:
        conn = pyodbc.connect(connection_string, timeout=timeout)
    except pyodbc.Error as e:
        logging.debug(f"Connection to {server} failed: {e}")
        raise ConnectivityError(server, str(e)) from e

    logging.info(f"✅ Database connection established to {server}.")
    return conn
