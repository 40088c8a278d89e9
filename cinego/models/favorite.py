"""
Favorite movie model
"""

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from cinego.models.base import BaseModel


class Favorite(BaseModel):
    """A movie a user has starred, keyed by the identity provider's user id"""
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint('user_id', 'movie_id', name='uq_user_movie_favorite'),
    )

    user_id = Column(String(255), nullable=False, index=True)
    movie_id = Column(Uuid(as_uuid=True), ForeignKey("movies.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    movie = relationship("Movie")

    def __repr__(self):
        return f"<Favorite(user_id={self.user_id}, movie_id={self.movie_id})>"
