"""Pydantic return models for core resolver functions."""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator

from geotag_enrich.models import HighwaySegment, Milestone

T = TypeVar("T")


class ResolutionStatus(str, Enum):
    FOUND = "found"
    EMPTY = "empty"
    FAILED = "failed"


class Resolution(BaseModel, Generic[T]):
    """Outcome of one resolver call.

    ``empty`` means the providers answered and there was legitimately nothing
    to report; ``failed`` means no provider could be reached. Callers that do
    not care about the difference can just read ``value``.
    """
    model_config = ConfigDict(frozen=True)

    status: ResolutionStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def failed_needs_reason(self) -> "Resolution":
        if self.status is ResolutionStatus.FAILED and not self.reason:
            raise ValueError("A failed resolution must carry a reason")
        return self

    @property
    def found(self) -> bool:
        return self.status is ResolutionStatus.FOUND

    @property
    def failed(self) -> bool:
        return self.status is ResolutionStatus.FAILED

    @classmethod
    def of(cls, value: T) -> "Resolution[T]":
        return cls(status=ResolutionStatus.FOUND, value=value)

    @classmethod
    def empty(cls, value: Optional[T] = None) -> "Resolution[T]":
        return cls(status=ResolutionStatus.EMPTY, value=value)

    @classmethod
    def failure(cls, reason: str, value: Optional[T] = None) -> "Resolution[T]":
        return cls(status=ResolutionStatus.FAILED, value=value, reason=reason)


class HighwayQueryResult(BaseModel):
    """Parsed combined highway/milestone Overpass response."""
    segments: list[HighwaySegment] = []
    milestones: list[Milestone] = []
