# SQL Config Snitch
# Best-practice rules for SQL Server instance configuration. Every check takes the
# facts gathered from one server and hands back the changes it would make; nothing
# here talks to a server or writes a file.
#
# Rule catalog (evaluation order):
#   MAXDOP, Memory Model, Cost Threshold for Parallelism, TempDB Configuration,
#   Max Server Memory, Backup Compression, Instant File Initialization,
#   per-file growth mode, per-file growth disabled

import math

from .models import (
    MEMORY_MODEL_LOCKED,
    SETTING_BACKUP_COMPRESSION,
    SETTING_COST_THRESHOLD,
    SETTING_FILE_GROWTH_DISABLED,
    SETTING_FILE_GROWTH_MODE,
    SETTING_INSTANT_FILE_INIT,
    SETTING_MAX_MEMORY,
    SETTING_MAXDOP,
    SETTING_MEMORY_MODEL,
    SETTING_TEMPDB,
    Recommendation,
)

MAXDOP_SINGLE_NODE_CAP = 8
MAXDOP_MULTI_NODE_CAP = 16
TEMPDB_FILE_CAP = 8
MIN_COST_THRESHOLD = 25
OS_MEMORY_RESERVE_GB = 4
MAX_MEMORY_RATIO = 0.9


def recommend_maxdop(cpu_count, numa_node_count):
    """Recommended 'max degree of parallelism' for a CPU/NUMA layout.

    Single node: one worker per CPU up to 8.
    Multiple nodes: half the CPUs of a node, never above 16. A node with a single
    CPU comes out as 0, which the engine reads as "let SQL Server decide".
    """
    if numa_node_count == 1:
        return min(cpu_count, MAXDOP_SINGLE_NODE_CAP)

    per_numa = math.ceil(cpu_count / numa_node_count)
    return min(per_numa, MAXDOP_MULTI_NODE_CAP, per_numa // 2)


def recommend_max_memory_gb(total_memory_gb):
    #"""Leave 4 GB or 10% of physical RAM to the OS, whichever is smaller."""
    return max(total_memory_gb - OS_MEMORY_RESERVE_GB, total_memory_gb * MAX_MEMORY_RATIO)


def _positive(value):
    return value is not None and value > 0


class ConfigChecker:
    """Runs the rule catalog against one server's facts and file inventory."""

    def __init__(self, facts, files=()):
        self.facts = facts
        self.files = list(files)

    def _recommend(self, setting, current, recommended, rationale):
        return Recommendation(
            server_name=self.facts.server_name,
            setting=setting,
            current_value=current,
            recommended_value=recommended,
            rationale=rationale,
        )

    def check_maxdop(self):
        facts = self.facts
        if not (_positive(facts.cpu_count) and _positive(facts.numa_node_count)):
            return []
        if facts.current_max_dop is None:
            return []

        recommended = recommend_maxdop(facts.cpu_count, facts.numa_node_count)
        if facts.current_max_dop == recommended:
            return []

        if facts.numa_node_count == 1:
            reason = f"Single NUMA node with {facts.cpu_count} CPUs - cap parallelism at the CPU count, max {MAXDOP_SINGLE_NODE_CAP}"
        else:
            reason = (
                f"{facts.numa_node_count} NUMA nodes with {facts.cpu_count} CPUs - "
                f"keep parallel plans inside half a NUMA node, max {MAXDOP_MULTI_NODE_CAP}"
            )
        return [self._recommend(SETTING_MAXDOP, facts.current_max_dop, recommended, reason)]

    def check_memory_model(self):
        model = self.facts.memory_model
        if model is None or model == MEMORY_MODEL_LOCKED:
            return []
        return [self._recommend(
            SETTING_MEMORY_MODEL,
            model,
            MEMORY_MODEL_LOCKED,
            "Grant 'Lock pages in memory' to the service account so the buffer pool is not paged out",
        )]

    def check_cost_threshold(self):
        threshold = self.facts.cost_threshold_for_parallelism
        if threshold is None or threshold >= MIN_COST_THRESHOLD:
            return []
        return [self._recommend(
            SETTING_COST_THRESHOLD,
            threshold,
            MIN_COST_THRESHOLD,
            f"Cheap queries go parallel below a cost of {MIN_COST_THRESHOLD}; raise the threshold",
        )]

    def check_tempdb(self):
        #"""All tempdb findings end up on one row, fragments joined with '; '."""
        facts = self.facts
        current, recommended, reasons = [], [], []

        if _positive(facts.cpu_count) and facts.tempdb_file_count is not None:
            wanted = min(facts.cpu_count, TEMPDB_FILE_CAP)
            if facts.tempdb_file_count != wanted:
                current.append(f"{facts.tempdb_file_count} files")
                recommended.append(f"{wanted} files")
                reasons.append(f"Use one tempdb data file per CPU up to {TEMPDB_FILE_CAP}")

        if facts.tempdb_distinct_size_count is not None and facts.tempdb_distinct_size_count > 1:
            current.append(f"{facts.tempdb_distinct_size_count} distinct file sizes")
            recommended.append("equal file sizes")
            reasons.append("Uneven tempdb files break proportional fill, make every file the same size")

        if facts.tempdb_percent_growth_file_count is not None and facts.tempdb_percent_growth_file_count > 0:
            current.append(f"{facts.tempdb_percent_growth_file_count} files with percent growth")
            recommended.append("fixed-size growth")
            reasons.append("Percent growth lets tempdb files drift apart, grow by a fixed MB amount")

        if not reasons:
            return []
        return [self._recommend(SETTING_TEMPDB, "; ".join(current), "; ".join(recommended), "; ".join(reasons))]

    def check_max_memory(self):
        facts = self.facts
        if facts.max_server_memory_mb is None or facts.total_memory_gb is None:
            return []

        target_gb = recommend_max_memory_gb(facts.total_memory_gb)
        if facts.max_memory_unbounded:
            current = "unlimited"
            reason = "Max server memory is not set; SQL Server can starve the OS"
        elif facts.max_server_memory_mb / 1024 > target_gb:
            current = f"{facts.max_server_memory_mb / 1024:.1f} GB"
            reason = f"Max server memory leaves less than {OS_MEMORY_RESERVE_GB} GB or 10% of RAM to the OS"
        else:
            return []
        return [self._recommend(SETTING_MAX_MEMORY, current, f"{target_gb:.1f} GB", reason)]

    def check_backup_compression(self):
        if self.facts.backup_compression_enabled is not False:
            return []
        return [self._recommend(
            SETTING_BACKUP_COMPRESSION,
            "disabled",
            "enabled",
            "Compressed backups are smaller and usually faster; turn on 'backup compression default'",
        )]

    def check_instant_file_initialization(self):
        if self.facts.instant_file_initialization_enabled is not False:
            return []
        return [self._recommend(
            SETTING_INSTANT_FILE_INIT,
            "disabled",
            "enabled",
            "Grant 'Perform volume maintenance tasks' so data file growth skips zero-filling",
        )]

    def check_file_growth(self):
        #"""One row per offending file; growth mode before growth disabled for each file."""
        results = []
        for f in self.files:
            where = f"{f.database_name}.{f.logical_file_name} ({f.file_type})"
            if f.is_percent_growth:
                results.append(self._recommend(
                    SETTING_FILE_GROWTH_MODE,
                    f"{where}: {f.growth_description}",
                    "fixed-size growth",
                    "Percent growth makes each growth event larger than the last; use a fixed MB increment",
                ))
            if f.growth_value is not None and f.growth_value == 0:
                results.append(self._recommend(
                    SETTING_FILE_GROWTH_DISABLED,
                    f"{where}: no growth",
                    "non-zero growth",
                    f"Autogrowth is disabled at {f.size_description}; the file fails once it fills up",
                ))
        return results

    def run_all_checks(self):
        results = []
        results.extend(self.check_maxdop())
        results.extend(self.check_memory_model())
        results.extend(self.check_cost_threshold())
        results.extend(self.check_tempdb())
        results.extend(self.check_max_memory())
        results.extend(self.check_backup_compression())
        results.extend(self.check_instant_file_initialization())
        results.extend(self.check_file_growth())
        return results


def evaluate(facts, files=()):
    """Recommendations for one server, in catalog order. Empty when compliant."""
    return ConfigChecker(facts, files).run_all_checks()
