"""Trackvault - SQLAlchemy ORM models.

Single table:
1. tracks
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from trackvault.utils.paths import file_url_for


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Track(Base):
    """Metadata for one uploaded audio file.

    Rows are immutable once created. A row exists only while the file named
    by file_path exists in the upload directory.
    """

    __tablename__ = "tracks"

    # Primary key (storage order)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Free-text, user-supplied, may be empty
    artist: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)

    # Filename inside the upload directory
    file_path: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)

    # Public sharing handle, minted once per upload
    demo_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)

    # Opaque owner tag, only used to partition listings
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    @property
    def file_url(self) -> str:
        """Public URL path that streams this track's file."""
        return file_url_for(self.file_path)

    def __repr__(self) -> str:
        return f"Track(demo_id={self.demo_id!r}, file_path={self.file_path!r})"
