import enum
import logging
import os
from concurrent.futures import ThreadPoolExecutor

from .InfraMathDef import evaluate
from .errors import PreconditionError
from .fact_collector import FactCollector
from .models import SETTING_CONNECTION_ERROR, Recommendation


def read_server_list(path):
    """Hosts from a newline-delimited file. Blank lines and '#' comments are skipped."""
    if not os.path.isfile(path):
        raise PreconditionError(f"Server list not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        servers = []
        for line in f:
            host = line.split("#", 1)[0].strip()
            if host:
                servers.append(host)
    return servers


class ServerState(enum.Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    ANALYZED = "analyzed"
    DONE = "done"
    FAILED = "failed"


class ServerRun:
    """Progress and results for one server in one run."""

    def __init__(self, server):
        self.server = server
        self.state = ServerState.PENDING
        self.facts = None
        self.files = []
        self.recommendations = []
        self.error = None

    def fail(self, error):
        self.state = ServerState.FAILED
        self.error = error
        self.recommendations = [Recommendation(
            server_name=self.server,
            setting=SETTING_CONNECTION_ERROR,
            current_value="",
            recommended_value="",
            rationale=str(error),
        )]


class ServerListRunner:
    """Walks the server list: connect, collect, evaluate, report.

    One server's failure becomes a "Connection Error" row and never stops the batch.
    """

    def __init__(self, report, connect, collector_factory=FactCollector, workers=1):
        self.report = report
        self.connect = connect
        self.collector_factory = collector_factory
        self.workers = max(1, int(workers))

    def analyze_server(self, server):
        run = ServerRun(server)
        logging.info(f"🔧 Analyzing {server}")
        conn = None
        try:
            conn = self.connect(server)
            run.state = ServerState.CONNECTED

            collector = self.collector_factory(conn)
            run.facts = collector.collect_server_facts(server)
            run.files = collector.collect_database_files()
            run.recommendations = evaluate(run.facts, run.files)
            run.state = ServerState.ANALYZED
        except Exception as e:
            logging.error(f"❌ {server} failed: {e}")
            run.fail(e)
        finally:
            if conn is not None:
                try:
                    conn.close()
                except Exception as e:
                    logging.warning(f"Could not close connection to {server}: {e}")
        return run

    def publish(self, run):
        if run.state is ServerState.ANALYZED:
            try:
                self.report.append_server_result(run.facts, run.files, run.recommendations)
            except Exception as e:
                logging.error(f"❌ {run.server} failed: {e}")
                run.fail(e)
            else:
                run.state = ServerState.DONE
                logging.info(f"✅ {run.server}: {len(run.recommendations)} recommendation(s)")
                return
        self.report.append_recommendations(run.recommendations)

    def run(self, servers):
        servers = list(servers)
        if self.workers == 1 or len(servers) < 2:
            runs = []
            for server in servers:
                run = self.analyze_server(server)
                self.publish(run)
                runs.append(run)
            return runs

        # merged after the join so the report keeps input order
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            runs = list(pool.map(self.analyze_server, servers))
        for run in runs:
            self.publish(run)
        return runs
