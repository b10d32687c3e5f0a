"""
tools/base.py — Calling convention shared by every session-merge tool.

A tool takes keyword arguments and returns a ToolResult. Inputs are checked
against the tool's declared parameters first; domain failures (unreadable
files, unknown track names, bad config values) come back as a failed result
so a front end can show them, while programming errors still raise.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from core.errors import SessionMergeError

logger = logging.getLogger(__name__)

# Failures a tool reports as ToolResult(success=False) instead of raising.
# pydantic.ValidationError subclasses ValueError.
TOOL_ERRORS: tuple[type[Exception], ...] = (SessionMergeError, ValueError, KeyError, IndexError)


@dataclass(frozen=True)
class ToolParameter:
    """
    One keyword argument a tool accepts.

    Attributes:
        name: Keyword name
        type: Accepted Python type, or a tuple of accepted types
        description: Shown to whoever picks the arguments
        required: Whether the keyword must be given
        default: Value the tool falls back to when it is omitted
    """

    name: str
    type: type | tuple[type, ...]
    description: str
    required: bool = True
    default: Any = None

    @property
    def type_name(self) -> str:
        """``"str"``, or ``"str | int"`` for a tuple of types."""
        if isinstance(self.type, tuple):
            return " | ".join(t.__name__ for t in self.type)
        return self.type.__name__

    def validate(self, value: Any) -> tuple[bool, str | None]:
        """
        Check one argument value.

        ``None`` counts as omitted.

        Returns:
            ``(True, None)`` or ``(False, reason)``
        """
        if value is None:
            if not self.required:
                return True, None
            return False, f"Required parameter '{self.name}' is missing"

        if isinstance(value, self.type):
            return True, None
        return (
            False,
            f"Parameter '{self.name}' must be {self.type_name}, got {type(value).__name__}",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type_name,
            "description": self.description,
            "required": self.required,
            "default": self.default,
        }


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one tool call.

    Attributes:
        success: False when validation or execution failed
        data: Plain dicts and lists describing sessions, matches or the report
        error: Reason for the failure, None on success
        metadata: Counts and paths that are not part of the answer itself
    """

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class MergeTool(ABC):
    """
    Abstract base class for session-merge tools.

    A tool wraps the ingestion layer: it reads project files, runs the
    matcher or the consolidation engine, and reports plain dicts.

    Subclasses provide ``name``, ``description``, ``parameters`` and
    ``execute()``; callers invoke the instance itself.

    Example:
        class CountTracks(MergeTool):
            @property
            def name(self) -> str:
                return "count_tracks"

            def execute(self, **kwargs) -> ToolResult:
                session = load_session(kwargs["path"])
                return ToolResult(success=True, data={"tracks": len(session.tracks)})
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, snake_case."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool reads, what it changes on disk, and what it returns."""

    @property
    @abstractmethod
    def parameters(self) -> list[ToolParameter]:
        """Declared keyword arguments, required ones first."""

    def validate_inputs(self, **kwargs) -> tuple[bool, str | None]:
        """Check ``kwargs`` against :attr:`parameters`; the first failure wins."""
        for param in self.parameters:
            ok, reason = param.validate(kwargs.get(param.name))
            if not ok:
                return False, reason
        return True, None

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        """Do the work. Arguments have already passed :meth:`validate_inputs`."""

    def __call__(self, **kwargs) -> ToolResult:
        """
        Validate, then execute.

        Validation failures and the domain errors in ``TOOL_ERRORS`` come
        back as ``ToolResult(success=False)``; anything else propagates.
        """
        ok, reason = self.validate_inputs(**kwargs)
        if not ok:
            logger.info("Tool %s rejected its arguments: %s", self.name, reason)
            return ToolResult(success=False, error=reason)

        try:
            return self.execute(**kwargs)
        except TOOL_ERRORS as e:
            logger.warning("Tool %s failed: %s", self.name, e)
            return ToolResult(success=False, error=f"Tool execution failed: {e}")

    def to_dict(self) -> dict[str, Any]:
        """Name, description and parameter list, for listings."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
        }
