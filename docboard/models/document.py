"""Document ORM model."""

from datetime import datetime

from sqlalchemy import Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from docboard.db import Base


class DocumentRecord(Base):
    __tablename__ = "documents"

    # Caller-visible document id; globally unique across owners.
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    # JSON object {"texts": {...}, "notes": {...}, "canvases": {...}} written by
    # the pydantic schema; decoded lazily so one bad row cannot poison a scan.
    attachments: Mapped[str] = mapped_column(Text, nullable=False, server_default="{}")

    __table_args__ = (Index("idx_documents_owner", "owner"),)
