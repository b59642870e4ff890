from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.tenderguru.constants import APPROVAL_PENDING
from app.tenderguru.models import Base, User


class Committee(Base):
    __tablename__ = "committees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    formation_date: Mapped[date] = mapped_column(Date, nullable=False)
    specification_submission_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    review_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    schedule: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Snapshot dicts copied from users at resolution time; replaced wholesale, never edited in place.
    members: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    formation_letter_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    formation_letter_path: Mapped[str | None] = mapped_column(String(512), nullable=True)  # storage key
    formation_letter_original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    formation_letter_content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    formation_letter_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # pending -> approved | rejected
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default=APPROVAL_PENDING)
    should_notify: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    created_by: Mapped[User | None] = relationship("User", lazy="selectin")

    @property
    def has_formation_letter(self) -> bool:
        return bool(self.formation_letter_path)

    def formation_letter_dict(self) -> dict | None:
        if not self.has_formation_letter:
            return None
        return {
            "filename": self.formation_letter_filename,
            "path": self.formation_letter_path,
            "originalname": self.formation_letter_original_name,
            "mimetype": self.formation_letter_content_type,
            "size": self.formation_letter_size,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "purpose": self.purpose,
            "formationDate": self.formation_date.isoformat() if self.formation_date else None,
            "specificationSubmissionDate": (
                self.specification_submission_date.isoformat() if self.specification_submission_date else None
            ),
            "reviewDate": self.review_date.isoformat() if self.review_date else None,
            "schedule": self.schedule,
            "members": [dict(m) for m in (self.members or [])],
            "formationLetter": self.formation_letter_dict(),
            "approvalStatus": self.approval_status,
            "shouldNotify": self.should_notify,
            "createdBy": self.created_by.to_creator_dict() if self.created_by else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
