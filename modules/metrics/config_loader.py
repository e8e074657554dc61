"""
Dimension Config Loader.

Loads the breakdown dimension table from YAML into an immutable registry.
"""

import yaml
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from modules.metrics.exceptions import MetricsConfigError, UnknownDimensionError
from modules.metrics.filters import NESTED_FILTER_FIELDS
from modules.metrics.models import (
    COLLECTIONS,
    ELEMENT_KEY_FIELDS,
    BreakdownDimension,
    DimensionElement,
)
from shared.utils.config import settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

# Default config path
CONFIG_BASE_PATH = Path(__file__).parent.parent.parent / "config" / "metrics"
DIMENSIONS_FILE = "dimensions.yaml"


@dataclass(frozen=True)
class DimensionConfig:
    """One row of the dimension table."""
    dimension: str
    collection: str
    group_by: Tuple[str, ...]
    identity_fields: Tuple[str, ...]
    filter_fields: Tuple[str, ...] = ()
    name_separator: str = " | "

    def group_key(self, element: DimensionElement) -> Tuple[Optional[str], ...]:
        return tuple(element.key_value(name) for name in self.group_by)

    def display_name(self, key: Tuple[Optional[str], ...]) -> str:
        """Single field as-is, multiple fields joined as ``"A | B"``."""
        if len(key) == 1:
            return "" if key[0] is None else str(key[0])
        return self.name_separator.join("" if part is None else str(part) for part in key)

    def identity(self, key: Tuple[Optional[str], ...]) -> Dict[str, Optional[str]]:
        """Identity fields to echo on a result row for a group key."""
        values = dict(zip(self.group_by, key))
        return {name: values.get(name) for name in self.identity_fields}


class DimensionRegistry:
    """
    Immutable lookup table from dimension name to DimensionConfig.

    Example:
        >>> registry = DimensionRegistry.load()
        >>> registry.get("ide").collection
        'totals_by_ide'
    """

    def __init__(self, configs: Mapping[str, DimensionConfig]):
        self._configs = MappingProxyType(dict(configs))

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "DimensionRegistry":
        """Load the registry from the dimension YAML file."""
        return cls(DimensionConfigLoader(config_path).load_dimensions())

    def get(self, dimension: Union[str, BreakdownDimension]) -> DimensionConfig:
        """
        Config row for a dimension.

        Raises:
            UnknownDimensionError: No row exists for the dimension
        """
        name = dimension.value if isinstance(dimension, BreakdownDimension) else dimension
        try:
            return self._configs[name]
        except KeyError:
            raise UnknownDimensionError(str(name), self._configs.keys()) from None

    def names(self) -> Tuple[str, ...]:
        return tuple(self._configs)

    def __contains__(self, dimension: object) -> bool:
        name = dimension.value if isinstance(dimension, BreakdownDimension) else dimension
        return name in self._configs

    def __iter__(self) -> Iterator[DimensionConfig]:
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)


class DimensionConfigLoader:
    """
    Loads the dimension table.

    Config structure:
        config/metrics/
        └── dimensions.yaml    # Dimension/breakdown definitions
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional custom config directory
        """
        if config_path is None and settings.METRICS_CONFIG_PATH:
            config_path = Path(settings.METRICS_CONFIG_PATH)
        self.config_path = config_path or CONFIG_BASE_PATH

        if not self.config_path.exists():
            raise MetricsConfigError(
                f"Metrics config directory not found: {self.config_path}"
            )

    def load_dimensions(self) -> Dict[str, DimensionConfig]:
        """Load and validate every dimension row."""
        raw = self._load_yaml(DIMENSIONS_FILE)
        rows = raw.get("dimensions")
        if not isinstance(rows, dict) or not rows:
            raise MetricsConfigError(f"No dimensions defined in {DIMENSIONS_FILE}")

        configs = {
            name: self._parse_row(name, row)
            for name, row in rows.items()
        }
        logger.debug(f"Loaded {len(configs)} dimension configs: {', '.join(configs)}")
        return configs

    def _parse_row(self, name: str, row: Any) -> DimensionConfig:
        if not isinstance(row, dict):
            raise MetricsConfigError(f"Dimension {name!r} must be a mapping")

        collection = row.get("collection")
        if collection not in COLLECTIONS:
            raise MetricsConfigError(
                f"Dimension {name!r} has unknown collection {collection!r}"
            )

        group_by = tuple(row.get("group_by") or ())
        identity_fields = tuple(row.get("identity_fields") or group_by)
        filter_fields = tuple(row.get("filter_fields") or ())

        if not 1 <= len(group_by) <= 2:
            raise MetricsConfigError(f"Dimension {name!r} must group by one or two fields")
        for field_name in group_by + identity_fields:
            if field_name not in ELEMENT_KEY_FIELDS:
                raise MetricsConfigError(
                    f"Dimension {name!r} references unknown key field {field_name!r}"
                )
        for field_name in filter_fields:
            if field_name not in NESTED_FILTER_FIELDS:
                raise MetricsConfigError(
                    f"Dimension {name!r} cannot filter elements on {field_name!r}"
                )

        return DimensionConfig(
            dimension=name,
            collection=collection,
            group_by=group_by,
            identity_fields=identity_fields,
            filter_fields=filter_fields,
            name_separator=row.get("name_separator", " | "),
        )

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """
        Load a YAML config file.

        Args:
            filename: Config filename

        Returns:
            Parsed config dictionary
        """
        file_path = self.config_path / filename

        if not file_path.exists():
            raise MetricsConfigError(f"Config file not found: {file_path}")

        try:
            with open(file_path, "r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse {filename}: {e}")
            raise MetricsConfigError(f"Invalid YAML in {filename}: {e}")
