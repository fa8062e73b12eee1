"""tuf_tracker: scrape TUF student profiles into class progress statistics."""

__version__ = "0.1.0"

from .errors import FetchError, FetchErrorKind, InvalidIdentifierError
from .models import Candidate, DifficultyStats, Profile, RawDocument, TopicStat
from .pipeline import BatchReport, ProfileScraper, ScrapeState
from .synthetic import SyntheticGenerator

__all__ = [
    "BatchReport",
    "Candidate",
    "DifficultyStats",
    "FetchError",
    "FetchErrorKind",
    "InvalidIdentifierError",
    "Profile",
    "ProfileScraper",
    "RawDocument",
    "ScrapeState",
    "SyntheticGenerator",
    "TopicStat",
]
