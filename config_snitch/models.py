from dataclasses import dataclass
from typing import Optional

# sp_configure reports this for 'max server memory (MB)' when it was never set
UNBOUNDED_MEMORY_MB = 2147483647

# sys.dm_os_sys_info.sql_memory_model_desc
MEMORY_MODEL_LOCKED = "LOCK_PAGES"

FILE_TYPE_DATA = "data"
FILE_TYPE_LOG = "log"

SETTING_MAXDOP = "MAXDOP"
SETTING_MEMORY_MODEL = "Memory Model"
SETTING_COST_THRESHOLD = "Cost Threshold for Parallelism"
SETTING_TEMPDB = "TempDB Configuration"
SETTING_MAX_MEMORY = "Max Server Memory"
SETTING_BACKUP_COMPRESSION = "Backup Compression"
SETTING_INSTANT_FILE_INIT = "Instant File Initialization"
SETTING_FILE_GROWTH_MODE = "File Growth Mode"
SETTING_FILE_GROWTH_DISABLED = "File Growth Disabled"
SETTING_CONNECTION_ERROR = "Connection Error"

SETTING_CATALOG = (
    SETTING_MAXDOP,
    SETTING_MEMORY_MODEL,
    SETTING_COST_THRESHOLD,
    SETTING_TEMPDB,
    SETTING_MAX_MEMORY,
    SETTING_BACKUP_COMPRESSION,
    SETTING_INSTANT_FILE_INIT,
    SETTING_FILE_GROWTH_MODE,
    SETTING_FILE_GROWTH_DISABLED,
)


def _to_int(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value):
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_bool(value):
    #"""Accepts the Y/N, 1/0 and True/False flavours the DMVs hand back."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().upper()
    if text in ("Y", "YES", "1", "TRUE", "ON"):
        return True
    if text in ("N", "NO", "0", "FALSE", "OFF"):
        return False
    return None


def _kb_to_gb(value):
    kb = _to_float(value)
    return None if kb is None else kb / 1024 / 1024


@dataclass(frozen=True)
class ServerFacts:
    """Engine and host facts gathered from one server in one run.

    Anything other than server_name may be None when the server did not report
    it; the rules that depend on a missing fact are skipped.
    """

    server_name: str
    cpu_count: Optional[int] = None
    numa_node_count: Optional[int] = None
    hyperthread_ratio: Optional[int] = None
    socket_count: Optional[int] = None
    soft_numa_description: Optional[str] = None
    memory_model: Optional[str] = None
    total_memory_gb: Optional[float] = None
    committed_memory_gb: Optional[float] = None
    current_max_dop: Optional[int] = None
    cost_threshold_for_parallelism: Optional[int] = None
    min_server_memory_mb: Optional[int] = None
    max_server_memory_mb: Optional[int] = None
    backup_compression_enabled: Optional[bool] = None
    instant_file_initialization_enabled: Optional[bool] = None
    tempdb_file_count: Optional[int] = None
    tempdb_distinct_size_count: Optional[int] = None
    tempdb_percent_growth_file_count: Optional[int] = None

    @classmethod
    def from_row(cls, server_name, row):
        """Build facts from the column dict returned by the server facts query."""
        return cls(
            server_name=server_name,
            cpu_count=_to_int(row.get("cpu_count")),
            numa_node_count=_to_int(row.get("numa_node_count")),
            hyperthread_ratio=_to_int(row.get("hyperthread_ratio")),
            socket_count=_to_int(row.get("socket_count")),
            soft_numa_description=row.get("softnuma_configuration_desc"),
            memory_model=row.get("sql_memory_model_desc"),
            total_memory_gb=_kb_to_gb(row.get("physical_memory_kb")),
            committed_memory_gb=_kb_to_gb(row.get("committed_kb")),
            current_max_dop=_to_int(row.get("max_dop")),
            cost_threshold_for_parallelism=_to_int(row.get("cost_threshold")),
            min_server_memory_mb=_to_int(row.get("min_server_memory_mb")),
            max_server_memory_mb=_to_int(row.get("max_server_memory_mb")),
            backup_compression_enabled=_to_bool(row.get("backup_compression")),
            instant_file_initialization_enabled=_to_bool(row.get("instant_file_initialization_enabled")),
            tempdb_file_count=_to_int(row.get("tempdb_file_count")),
            tempdb_distinct_size_count=_to_int(row.get("tempdb_distinct_sizes")),
            tempdb_percent_growth_file_count=_to_int(row.get("tempdb_percent_growth_files")),
        )

    @property
    def max_memory_unbounded(self):
        return self.max_server_memory_mb == UNBOUNDED_MEMORY_MB


@dataclass(frozen=True)
class DatabaseFile:
    database_name: str
    logical_file_name: str
    file_type: str
    current_size_mb: Optional[float]
    is_percent_growth: bool
    growth_value: Optional[float]
    max_size_descriptor: str

    @classmethod
    def from_row(cls, row):
        file_type = str(row.get("type_desc") or "").upper()
        return cls(
            database_name=row.get("database_name"),
            logical_file_name=row.get("logical_name"),
            file_type=FILE_TYPE_LOG if file_type == "LOG" else FILE_TYPE_DATA,
            current_size_mb=_to_float(row.get("current_size_mb")),
            is_percent_growth=bool(_to_bool(row.get("is_percent_growth"))),
            growth_value=_to_float(row.get("growth_value")),
            max_size_descriptor=row.get("max_size_desc") or "unlimited",
        )

    @property
    def growth_description(self):
        if self.growth_value is None:
            return "unknown"
        if self.is_percent_growth:
            return f"{self.growth_value:g}%"
        return f"{self.growth_value:g} MB"

    @property
    def size_description(self):
        return "unknown" if self.current_size_mb is None else f"{self.current_size_mb:g} MB"


@dataclass(frozen=True)
class Recommendation:
    server_name: str
    setting: str
    current_value: object
    recommended_value: object
    rationale: str

    def as_row(self):
        #"""Columns in report order: server, setting, current, recommended, rationale."""
        return [
            self.server_name,
            self.setting,
            "" if self.current_value is None else str(self.current_value),
            "" if self.recommended_value is None else str(self.recommended_value),
            self.rationale,
        ]

    def as_dict(self):
        return {
            "server_name": self.server_name,
            "setting": self.setting,
            "current_value": self.current_value,
            "recommended_value": self.recommended_value,
            "rationale": self.rationale,
        }
