from io import StringIO
import csv
import json
import os
import threading

from .models import SETTING_CONNECTION_ERROR

RECOMMENDATIONS_HEADER = ["Server Name", "Setting", "Current Value", "Recommended Value", "Recommendation"]


class ReportLogger:
    """Accumulates the recommendations table and the detailed analysis for a run."""

    def __init__(self, console=print):
        self.console = console
        self.recommendations = StringIO()
        self.detail = StringIO()
        self.entries = []
        self.servers = []
        self._lock = threading.Lock()
        self._csv = csv.writer(self.recommendations, lineterminator="\n")
        self._csv.writerow(RECOMMENDATIONS_HEADER)

    def _write_rows(self, entries, rows):
        for entry, row in zip(entries, rows):
            self._csv.writerow(row)
            self.entries.append(entry)

    def append_recommendations(self, entries):
        entries = list(entries)
        rows = [entry.as_row() for entry in entries]
        with self._lock:
            self._write_rows(entries, rows)

    def append_server_detail(self, facts, files):
        block = format_server_detail(facts, files)
        with self._lock:
            self.servers.append(facts.server_name)
            self.detail.write(block)

    def append_server_result(self, facts, files, entries):
        #"""Detail block and its rows go in together or not at all."""
        entries = list(entries)
        block = format_server_detail(facts, files)
        rows = [entry.as_row() for entry in entries]
        with self._lock:
            self.servers.append(facts.server_name)
            self.detail.write(block)
            self._write_rows(entries, rows)

    def render(self):
        with self._lock:
            return self.recommendations.getvalue(), self.detail.getvalue()

    def export(self, output_dir=".", timestamp="run"):
        #"""Write both report files, names carry the run timestamp. Returns the two paths."""
        recommendations_text, detail_text = self.render()
        os.makedirs(output_dir, exist_ok=True)
        rec_path = os.path.join(output_dir, f"config_recommendations_{timestamp}.csv")
        detail_path = os.path.join(output_dir, f"config_detailed_analysis_{timestamp}.txt")

        with open(rec_path, "w", encoding="utf-8", newline="") as f:
            f.write(recommendations_text)
        self.console(f"\n📄 Recommendations saved to: {rec_path}")

        with open(detail_path, "w", encoding="utf-8") as f:
            f.write(detail_text)
        self.console(f"📄 Detailed analysis saved to: {detail_path}")
        return rec_path, detail_path

    def export_json(self, output_dir=".", timestamp="run"):
        #"""Export the recommendations as a JSON document."""
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, f"config_recommendations_{timestamp}.json")
        with self._lock:
            report = {
                "servers": list(self.servers),
                "recommendations": [entry.as_dict() for entry in self.entries],
            }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, default=str)
        self.console(f"📄 JSON report saved to: {path}")
        return path

    def print_summary(self):
        with self._lock:
            entries = list(self.entries)
            server_count = len(self.servers)
        errors = [e for e in entries if e.setting == SETTING_CONNECTION_ERROR]
        findings = [e for e in entries if e.setting != SETTING_CONNECTION_ERROR]

        self.console("\n📋 Summary:")
        self.console(f" - ✅ Servers analyzed: {server_count}")
        self.console(f" - ⚠️ Recommendations: {len(findings)}")
        self.console(f" - ❌ Connection errors: {len(errors)}")
        if errors:
            self.console(" - Unreachable servers:")
            for entry in errors[:5]:
                self.console(f"   {entry.server_name}: {entry.rationale}")


def _show(value):
    return "unknown" if value is None else value


def _on_off(value):
    if value is None:
        return "unknown"
    return "enabled" if value else "disabled"


def _gb(value):
    return "unknown" if value is None else f"{value:.2f}"


def format_server_detail(facts, files):
    """Narrative block for one server: facts first, then every database file."""
    lines = [
        "=" * 60,
        f"Server: {facts.server_name}",
        "=" * 60,
        "🖥️ CPU & NUMA Layout:",
        f" - Logical CPUs: {_show(facts.cpu_count)}",
        f" - NUMA Nodes: {_show(facts.numa_node_count)}",
        f" - Hyperthread Ratio: {_show(facts.hyperthread_ratio)}",
        f" - Sockets: {_show(facts.socket_count)}",
        f" - Soft-NUMA: {_show(facts.soft_numa_description)}",
        "💾 Memory:",
        f" - Memory Model: {_show(facts.memory_model)}",
        f" - Physical Memory: {_gb(facts.total_memory_gb)} GB",
        f" - Committed Memory: {_gb(facts.committed_memory_gb)} GB",
        f" - Min Server Memory: {_show(facts.min_server_memory_mb)} MB",
    ]
    if facts.max_memory_unbounded:
        lines.append(" - Max Server Memory: unlimited")
    else:
        lines.append(f" - Max Server Memory: {_show(facts.max_server_memory_mb)} MB")

    lines += [
        "🧠 Parallelism:",
        f" - Current maxDOP: {_show(facts.current_max_dop)}",
        f" - Cost Threshold for Parallelism: {_show(facts.cost_threshold_for_parallelism)}",
        "🗃️ TempDB:",
        f" - Data Files: {_show(facts.tempdb_file_count)}",
        f" - Distinct File Sizes: {_show(facts.tempdb_distinct_size_count)}",
        f" - Files With Percent Growth: {_show(facts.tempdb_percent_growth_file_count)}",
        "📦 Backup & I/O:",
        f" - Backup Compression Default: {_on_off(facts.backup_compression_enabled)}",
        f" - Instant File Initialization: {_on_off(facts.instant_file_initialization_enabled)}",
        f"📁 Database Files ({len(files)}):",
    ]
    for f in files:
        lines.append(
            f" - {f.database_name} | {f.logical_file_name} | {f.file_type} | "
            f"{f.size_description} | growth {f.growth_description} | max {f.max_size_descriptor}"
        )
    lines.append("")
    return "\n".join(lines) + "\n"
