"""
Database models
"""

from cinego.models.movie import Movie
from cinego.models.show import Show
from cinego.models.booking import Booking
from cinego.models.favorite import Favorite
from cinego.models.job import ScheduledJob, JobStatus

__all__ = [
    "Movie",
    "Show",
    "Booking",
    "Favorite",
    "ScheduledJob",
    "JobStatus"
]
