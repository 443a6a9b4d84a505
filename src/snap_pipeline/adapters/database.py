"""SQLAlchemy image table: lookup index and metadata store."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Engine, Integer, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from ..core.error_handling import with_error_handling
from ..core.logging_config import get_logger
from ..core.models import ImageRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ImageRow(Base):
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    original_url: Mapped[str] = mapped_column(String(2048), nullable=False, index=True)
    processed_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def to_record(self) -> ImageRecord:
        return ImageRecord(
            id=self.id,
            user_id=self.user_id,
            filename=self.filename,
            original_url=self.original_url,
            processed_url=self.processed_url,
            status=self.status,
            created_at=self.created_at,
        )


class SqlImageStore:
    """Image index and metadata store over one SQLAlchemy engine.

    Every call opens its own session, so one store can be shared by
    concurrent workers.
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SqlImageStore":
        return cls(create_engine(database_url))

    @with_error_handling
    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    @with_error_handling
    def find_by_location(self, url: str) -> Optional[ImageRecord]:
        with Session(self._engine) as session:
            row = session.scalars(
                select(ImageRow).where(ImageRow.original_url == url).limit(1)
            ).first()
            return row.to_record() if row is not None else None

    @with_error_handling
    def insert(self, owner_id: int, filename: str, location: str, status: str) -> ImageRecord:
        with Session(self._engine) as session:
            row = ImageRow(
                user_id=owner_id,
                filename=filename,
                original_url=location,
                status=status,
            )
            session.add(row)
            session.commit()
            get_logger("database").debug(f"Inserted image row {row.id} for {filename}")
            return row.to_record()
