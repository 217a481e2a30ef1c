"""Configuration and logging setup."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from .labels import PLEX_CHANNELS

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


@dataclass
class QuantConfig:
    """Settings for evidence assembly and isobaric quantification."""

    decoy_tag: str = 'rev_'
    plex: str = '10'
    tolerance: float = 20.0  # ppm
    level: int = 2
    purity: float = 0.5
    min_probability: float = 0.7
    unique_only: bool = False
    normalize: bool = True
    label_names: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.plex = str(self.plex)
        self.level = int(self.level)
        self.validate()

    def validate(self) -> None:
        """Check values.

        Raises:
            ValueError: On an unknown plex, level or out-of-range threshold

        """
        if self.plex not in PLEX_CHANNELS:
            raise ValueError(f"Unknown plex: {self.plex}. Must be one of: {sorted(PLEX_CHANNELS)}")
        if self.level not in (2, 3):
            raise ValueError(f"Quantification level must be 2 or 3, got {self.level}")
        if self.tolerance <= 0:
            raise ValueError(f"Tolerance must be positive, got {self.tolerance}")
        if not 0 <= self.purity <= 1:
            raise ValueError(f"Purity threshold must be within [0, 1], got {self.purity}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: dict) -> QuantConfig:
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        unknown = set(values) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")
        return cls(**known)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None) -> QuantConfig:
    """Load configuration from a YAML file or return defaults.

    Settings may sit at the top level or under an ``isoquant`` section.
    A ``label_names`` entry may be a mapping or the path of an annotation
    file.
    """
    settings = QuantConfig().to_dict()

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            user_config = yaml.safe_load(f) or {}
        user_config = user_config.get('isoquant', user_config)

        annotation = user_config.get('label_names')
        if isinstance(annotation, str):
            user_config = {**user_config, 'label_names': load_label_names(Path(annotation))}

        settings = _deep_merge(settings, user_config)
    elif config_path:
        logger.warning(f"Configuration file not found: {config_path}, using defaults")

    return QuantConfig.from_dict(settings)


def load_label_names(annotation_path: Path) -> dict[str, str]:
    """Read channel to sample name mappings from an annotation file.

    Each line holds a channel name and a sample name separated by
    whitespace; blank lines and ``#`` comments are ignored.

    Raises:
        FileNotFoundError: If the file does not exist

    """
    annotation_path = Path(annotation_path)
    if not annotation_path.exists():
        raise FileNotFoundError(f"Annotation file not found: {annotation_path}")

    names = {}
    with open(annotation_path) as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if not line:
                continue
            parts = line.split(maxsplit=1)
            if len(parts) == 2:
                names[parts[0]] = parts[1].strip()

    return names
