import argparse
import datetime
import functools
import logging
import os
import sys

from .db_connect import DEFAULT_DATABASE, DEFAULT_DRIVER, DEFAULT_TIMEOUT, get_connection
from .errors import PreconditionError
from .report_logger import ReportLogger
from .runner import ServerListRunner, read_server_list


def build_parser():
    parser = argparse.ArgumentParser(description="SQL Server configuration health report")
    parser.add_argument('--servers', required=True, help="File with one SQL Server host per line")
    parser.add_argument('--output-dir', default=".", help="Directory for the report and log files")
    parser.add_argument('--database', default=DEFAULT_DATABASE, help="Database to connect to [default: master]")
    parser.add_argument('--driver', default=DEFAULT_DRIVER, help="ODBC driver name")
    parser.add_argument('--timeout', type=int, default=DEFAULT_TIMEOUT, help="Connection timeout in seconds")
    parser.add_argument('--workers', type=int, default=1, help="Servers analyzed in parallel")
    parser.add_argument('--json', action='store_true', help="Also write the recommendations as JSON")
    parser.add_argument('--dry-run', action='store_true', help="Read the server list without connecting to any server")
    parser.add_argument('--verbose', action='store_true', help="Enable verbose output")
    parser.add_argument('--debug', action='store_true', help="Enable debug output")
    return parser


def setup_logging(output_dir, timestamp, verbose=False, debug=False):
    os.makedirs(output_dir, exist_ok=True)
    log_path = os.path.join(output_dir, f"config_snitch_{timestamp}.log")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
    root.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console)
    return log_path


def main(argv=None):
    args = build_parser().parse_args(argv)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    setup_logging(args.output_dir, timestamp, verbose=args.verbose, debug=args.debug)

    try:
        servers = read_server_list(args.servers)
    except PreconditionError as e:
        logging.error(f"❌ {e}")
        return 2

    logging.info(f"🔧 SQL Config Snitch - {len(servers)} server(s) from {args.servers}")

    if args.dry_run:
        print("🧪 Dry Run Mode: Skipping SQL Server connections.")
        for server in servers:
            print(f" - {server}")
        return 0

    report = ReportLogger()
    connect = functools.partial(get_connection, database=args.database, driver=args.driver, timeout=args.timeout)
    ServerListRunner(report, connect, workers=args.workers).run(servers)

    report.export(args.output_dir, timestamp)
    if args.json:
        report.export_json(args.output_dir, timestamp)
    report.print_summary()
    return 0


if __name__ == "__main__":
    sys.exit(main())
