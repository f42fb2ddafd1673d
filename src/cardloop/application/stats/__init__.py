# Application Stats Package
from .calculator import DailyCount, DeckSummary, ReportCalculator, StreakStats, end_of_day_iso
from .service import DeckStatsService

__all__ = [
    "DailyCount",
    "DeckStatsService",
    "DeckSummary",
    "ReportCalculator",
    "StreakStats",
    "end_of_day_iso",
]
