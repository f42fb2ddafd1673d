# Domain Package
from .errors import CardloopError, InvalidArgument, NotFound, StorageFailure
from .models import (
    Card,
    DeckCardDetail,
    Grade,
    GradeResult,
    Reviewed,
    ReviewHistory,
    ReviewLogEntry,
    ReviewState,
    SessionMode,
    SessionStats,
    Unreviewed,
)

__all__ = [
    "Card",
    "CardloopError",
    "DeckCardDetail",
    "Grade",
    "GradeResult",
    "InvalidArgument",
    "NotFound",
    "ReviewHistory",
    "ReviewLogEntry",
    "ReviewState",
    "Reviewed",
    "SessionMode",
    "SessionStats",
    "StorageFailure",
    "Unreviewed",
]
