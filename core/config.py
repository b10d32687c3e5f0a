"""
Configuration dataclasses for the session merge pipeline.

These immutable config objects decouple parameter passing from function signatures,
making it easier to define standard configurations and reuse them across merges.
"""

from dataclasses import dataclass

# Minimum score a (destination, source) pair needs before auto-matching assigns it.
TRACK_MATCH_THRESHOLD: float = 0.60


@dataclass(frozen=True)
class MergeConfig:
    """
    Configuration for loading, matching and consolidating sessions.

    Immutable configuration object that can be reused across multiple
    commits. Loaded from YAML by ``ingestion/config_loader.py`` or built
    directly in code and tests.

    Attributes:
        gap_measures: Empty measures inserted between consecutive sessions
            on the merged timeline. Defaults to 2.
        match_threshold: Minimum name-similarity score for auto-matching.
            Defaults to 0.60.
        align_lanes: When several sessions land on one destination, copy
            each import's active lane onto the highest active lane before
            merging. Defaults to True.
        only_with_media: Ignore source tracks without audio items.
        copy_media: Copy resolved media files next to the template.
        delete_unused: After committing, delete destination tracks that
            received nothing and are not locked.
        import_timeline: Write the merged tempo map and markers into the
            template on commit.
        bus_keywords: Destination tracks (and everything inside folders)
            whose name contains one of these words are never matched.
        locked_tracks: Destination names the user has locked.

    Example:
        >>> config = MergeConfig(gap_measures=4, align_lanes=False)
    """

    gap_measures: int = 2
    match_threshold: float = TRACK_MATCH_THRESHOLD
    align_lanes: bool = True
    only_with_media: bool = True
    copy_media: bool = False
    delete_unused: bool = False
    import_timeline: bool = True
    bus_keywords: tuple[str, ...] = ()
    locked_tracks: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.gap_measures < 0:
            raise ValueError(f"gap_measures must be non-negative, got {self.gap_measures}")
        if not 0.0 <= self.match_threshold <= 1.0:
            raise ValueError(
                f"match_threshold must be within [0, 1], got {self.match_threshold}"
            )


DEFAULT_CONFIG = MergeConfig()
"""Default configuration: 2-measure gap, 0.60 threshold, lane alignment on."""

NO_GAP_CONFIG = MergeConfig(gap_measures=0)
"""Sessions butt-joined on the merged timeline."""
