"""
Show model
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, JSON, Uuid
from sqlalchemy.orm import relationship

from cinego.models.base import BaseModel


class Show(BaseModel):
    """
    One screening of a movie.

    ``occupied_seats`` is the seat ledger: seat-id -> True for every held or
    sold seat. A seat that never appears is free. The ledger is always
    replaced with a new dict on change so SQLAlchemy sees the mutation, and
    ``version`` turns every ledger write into a compare-and-swap.
    """
    __tablename__ = "shows"

    movie_id = Column(Uuid(as_uuid=True), ForeignKey("movies.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    occupied_seats = Column(JSON, default=dict, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    movie = relationship("Movie", back_populates="shows")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Show(id={self.id}, movie_id={self.movie_id}, start_time={self.start_time}, price={self.price})>"
