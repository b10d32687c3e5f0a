"""
core/rpp — Pure model of the nested, line-oriented project text format.

Zero I/O: text in, frozen dataclasses out.  Reading project files from disk
lives in ingestion/session_loader.py; the editable template lives in
ingestion/template_project.py.

Public API:
    Types:   Session, SourceTrack, Segment, PooledEnvelope, Marker,
             TempoPoint, TempoShape, TimeSignature, BaseTempo, QueueOffset
    Blocks:  Block, TempoLine, MarkerLine, TrackBlock, TempoEnvelopeBlock,
             PooledEnvelopeBlock
    Parser:  parse_blocks, build_session
"""

from core.rpp.parser import DEFAULT_TEMPO, build_session, parse_blocks
from core.rpp.types import (
    BaseTempo,
    Block,
    Marker,
    MarkerLine,
    PooledEnvelope,
    PooledEnvelopeBlock,
    QueueOffset,
    Segment,
    Session,
    SourceTrack,
    TempoEnvelopeBlock,
    TempoLine,
    TempoPoint,
    TempoShape,
    TimeSignature,
    TrackBlock,
)

__all__ = [
    # Types
    "BaseTempo",
    "Marker",
    "PooledEnvelope",
    "QueueOffset",
    "Segment",
    "Session",
    "SourceTrack",
    "TempoPoint",
    "TempoShape",
    "TimeSignature",
    # Blocks
    "Block",
    "MarkerLine",
    "PooledEnvelopeBlock",
    "TempoEnvelopeBlock",
    "TempoLine",
    "TrackBlock",
    # Parser
    "DEFAULT_TEMPO",
    "build_session",
    "parse_blocks",
]
