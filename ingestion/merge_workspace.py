"""ingestion/merge_workspace.py — One merge job from template to written result.

Ties the pieces together: the template host, the session queue (whose
assignment grid rows are indices into the destination snapshot), the
matcher and the consolidation engine.

Typical flow::

    workspace = MergeWorkspace.open("Mix.rpp", config_path="merge.yaml")
    workspace.add_sessions(["Song A.rpp", "Song B.rpp"])
    workspace.auto_match()
    workspace.assign("Bass", session=1, source="Bass DI", manual=True)
    report = workspace.commit("Merged.rpp")

Side effects: reads session, template and config files; :meth:`commit`
writes the merged project.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from core.config import DEFAULT_CONFIG, MergeConfig
from core.consolidation.engine import consolidate
from core.consolidation.host import MediaResolver
from core.consolidation.types import ConsolidationReport
from core.matching.matcher import compute_locks, match_all_sessions
from core.matching.snapshot import snapshot_destinations
from core.matching.types import Alias, Assignment, CellOptions, DestinationTrack
from core.queue import SessionQueue
from core.rpp.types import Session
from ingestion.config_loader import load_config
from ingestion.media_resolver import FileMediaResolver
from ingestion.session_loader import load_sessions
from ingestion.template_project import TemplateProject

logger = logging.getLogger(__name__)


class MergeWorkspace:
    """Template, session queue and assignment of a single merge.

    Args:
        template: The host project receiving the sessions.
        config: Merge options.
        aliases: Alias rules applied before fuzzy matching.
        resolver: Media resolver; defaults to a :class:`FileMediaResolver`
            rooted at the template's directory.
    """

    def __init__(
        self,
        template: TemplateProject,
        config: MergeConfig = DEFAULT_CONFIG,
        aliases: Sequence[Alias] = (),
        resolver: MediaResolver | None = None,
    ) -> None:
        self.template = template
        self.config = config
        self.aliases = tuple(aliases)
        self.queue = SessionQueue(gap_measures=config.gap_measures)
        self.resolver = resolver or FileMediaResolver(
            template.directory or ".", copy_media=config.copy_media
        )
        self.destinations: list[DestinationTrack] = []
        self.locked: frozenset[int] = frozenset()
        self.refresh_destinations()

    @classmethod
    def open(
        cls, template_path: str | Path, config_path: str | Path | None = None
    ) -> MergeWorkspace:
        """Load the template and, when given, a YAML config file."""
        config, aliases = DEFAULT_CONFIG, ()
        if config_path is not None:
            config, aliases = load_config(config_path)
        return cls(TemplateProject.from_file(template_path), config, aliases)

    # -- state ---------------------------------------------------------------

    @property
    def sessions(self) -> tuple[Session, ...]:
        return self.queue.sessions

    @property
    def assignment(self) -> Assignment:
        return self.queue.assignment

    def refresh_destinations(self) -> None:
        """Re-snapshot the template's tracks; the assignment is reset."""
        self.destinations = snapshot_destinations(
            self.template.track_chunks(),
            bus_keywords=self.config.bus_keywords,
            locked_names=self.config.locked_tracks,
        )
        self.queue.assignment = Assignment()
        self.locked = frozenset(d.index for d in self.destinations if d.locked)
        logger.info("Template offers %d destination track(s)", len(self.destinations))

    def destination_index(self, name: str) -> int:
        """Index of the first destination called ``name`` (case-insensitive)."""
        wanted = name.strip().lower()
        for destination in self.destinations:
            if destination.name.strip().lower() == wanted:
                return destination.index
        raise KeyError(f"No destination track named {name!r}")

    def source_index(self, session: int, name: str) -> int:
        wanted = name.strip().lower()
        for i, track in enumerate(self.sessions[session].tracks):
            if track.name.strip().lower() == wanted:
                return i
        raise KeyError(f"No track named {name!r} in session {self.sessions[session].name}")

    # -- queue ---------------------------------------------------------------

    def add_sessions(self, paths: Iterable[str | Path]) -> list[Session]:
        """Load and append sessions; an unreadable file adds none of them."""
        loaded = load_sessions(paths, only_with_media=self.config.only_with_media)
        for session in loaded:
            self.queue.append(session)
        return loaded

    def remove_session(self, index: int) -> Session:
        return self.queue.remove(index)

    def move_session(self, from_index: int, to_index: int) -> None:
        self.queue.move(from_index, to_index)

    def set_gap(self, gap_measures: int) -> None:
        self.queue.set_gap(gap_measures)

    # -- matching ------------------------------------------------------------

    def auto_match(self) -> Assignment:
        """Fill the automatic cells of every session; manual cells are kept."""
        folder_locks = match_all_sessions(
            self.destinations,
            self.sessions,
            self.assignment,
            aliases=self.aliases,
            threshold=self.config.match_threshold,
        )
        self.locked = folder_locks | {d.index for d in self.destinations if d.locked}
        logger.info(
            "Auto-matched %d cell(s) across %d session(s)", len(self.assignment), len(self.sessions)
        )
        return self.assignment

    def assign(
        self,
        destination: int | str,
        session: int,
        source: int | str,
        manual: bool = True,
        keep_name: bool = False,
        keep_fx: bool = False,
    ) -> None:
        """Set one cell; names are looked up with :meth:`destination_index`/:meth:`source_index`."""
        if isinstance(destination, str):
            destination = self.destination_index(destination)
        if isinstance(source, str):
            source = self.source_index(session, source)
        if not 0 <= session < len(self.sessions):
            raise IndexError(f"Session index {session} out of range")
        row = next((d for d in self.destinations if d.index == destination), None)
        if row is None:
            raise KeyError(f"No destination track with index {destination}")
        if row.locked:
            raise ValueError(f"Destination track {row.name!r} is locked")
        self.assignment.assign(
            destination, session, source, manual=manual, options=CellOptions(keep_name, keep_fx)
        )
        self._refresh_locks()

    def unassign(self, destination: int | str, session: int) -> None:
        if isinstance(destination, str):
            destination = self.destination_index(destination)
        self.assignment.clear(destination, session)
        self._refresh_locks()

    def _refresh_locks(self) -> None:
        self.locked = compute_locks(self.destinations, self.assignment.destinations())

    # -- commit --------------------------------------------------------------

    def commit(self, output_path: str | Path | None = None) -> ConsolidationReport:
        """Consolidate the assignment into the template and write it.

        The destination snapshot is refreshed afterwards, which also resets
        the assignment: its rows referred to tracks that no longer exist.
        """
        report = consolidate(
            self.template,
            self.destinations,
            self.sessions,
            self.assignment,
            resolver=self.resolver,
            config=self.config,
            locked=self.locked,
        )
        self.template.save(output_path)
        logger.info("Commit finished: %s", report.summary)
        self.refresh_destinations()
        return report
