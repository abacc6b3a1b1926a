"""navkeep.core — Foundation types, config, and exceptions."""

from navkeep.core.config import (
    APIConfig,
    ExportConfig,
    FTConfig,
    FundsquareConfig,
    HealthConfig,
    NavkeepConfig,
    RetentionConfig,
    SourcesConfig,
    StorageConfig,
    load_config,
)
from navkeep.core.exceptions import (
    ConfigError,
    IngestionError,
    NavkeepError,
    NetworkError,
    ParsingError,
    StorageError,
    TotalOutageError,
    UnknownSourceError,
)
from navkeep.core.models import (
    ISIN,
    AlertFlag,
    FreshnessState,
    HealthStatus,
    Instrument,
    InstrumentResult,
    LastOk,
    Observation,
    PriceRecord,
    Source,
    SourceRunSnapshot,
    SourceTag,
    StalenessReport,
    StorageBackend,
    UpsertResult,
)

__all__ = [
    # Type aliases
    "ISIN",
    "SourceTag",
    # Enums
    "Source",
    "StorageBackend",
    "FreshnessState",
    # Price models
    "Instrument",
    "Observation",
    "PriceRecord",
    "UpsertResult",
    # Health models
    "InstrumentResult",
    "SourceRunSnapshot",
    "LastOk",
    "HealthStatus",
    "AlertFlag",
    "StalenessReport",
    # Config
    "NavkeepConfig",
    "StorageConfig",
    "SourcesConfig",
    "FundsquareConfig",
    "FTConfig",
    "RetentionConfig",
    "HealthConfig",
    "ExportConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "NavkeepError",
    "ConfigError",
    "IngestionError",
    "NetworkError",
    "ParsingError",
    "StorageError",
    "TotalOutageError",
    "UnknownSourceError",
]
