from .loader import load_config, load_config_with_overrides
from .schema import (
    PipelineConfig,
    DataSourceVersions,
    AnnotationPaths,
    RankingSettings,
    GroupingConfig,
    CohortConfig,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "PipelineConfig",
    "DataSourceVersions",
    "AnnotationPaths",
    "RankingSettings",
    "GroupingConfig",
    "CohortConfig",
]
