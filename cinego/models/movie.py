"""
Movie model
"""

from sqlalchemy import Column, String, Text, Integer, Float, JSON
from sqlalchemy.orm import relationship

from cinego.models.base import BaseModel


class Movie(BaseModel):
    """
    Movie metadata as delivered by the catalog provider
    """
    __tablename__ = "movies"

    tmdb_id = Column(String(32), unique=True, nullable=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    overview = Column(Text, default="", nullable=False)
    poster_url = Column(String(500), default="", nullable=False)
    backdrop_url = Column(String(500))
    trailer_url = Column(String(500))
    release_date = Column(String(20))
    original_language = Column(String(10))
    genres = Column(JSON, default=list, nullable=False)
    runtime = Column(Integer)
    average_rating = Column(Float)

    # Relationships
    shows = relationship("Show", back_populates="movie", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Movie(id={self.id}, tmdb_id={self.tmdb_id}, title={self.title})>"
