"""ingestion/config_loader.py — Load merge settings and aliases from YAML.

Side effects: reads the given file. Nothing is written back.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from core.config import MergeConfig
from core.errors import FileUnreadable
from core.matching.types import Alias
from ingestion.schemas import MergeConfigFile

logger = logging.getLogger(__name__)


def parse_config(data: dict | None) -> tuple[MergeConfig, tuple[Alias, ...]]:
    """Validate an already-decoded document.

    Raises:
        pydantic.ValidationError: If the document does not match the schema.
    """
    document = MergeConfigFile.model_validate(data or {})
    settings = document.merge
    config = MergeConfig(
        gap_measures=settings.gap_measures,
        match_threshold=settings.match_threshold,
        align_lanes=settings.align_lanes,
        only_with_media=settings.only_with_media,
        copy_media=settings.copy_media,
        delete_unused=settings.delete_unused,
        import_timeline=settings.import_timeline,
        bus_keywords=tuple(settings.bus_keywords),
        locked_tracks=tuple(settings.locked_tracks),
    )
    aliases = tuple(
        Alias(sources=", ".join(a.sources), destination=a.destination) for a in document.aliases
    )
    return config, aliases


def load_config(path: str | Path) -> tuple[MergeConfig, tuple[Alias, ...]]:
    """Read a YAML configuration file.

    An empty file yields the defaults and no aliases.

    Raises:
        FileUnreadable: If the file cannot be read.
        pydantic.ValidationError: If its content is invalid.
    """
    p = Path(path)
    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise FileUnreadable(str(p), exc.strerror or type(exc).__name__) from exc
    config, aliases = parse_config(data)
    logger.info("Loaded merge config %s (%d alias rule(s))", p, len(aliases))
    return config, aliases
