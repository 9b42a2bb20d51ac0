import uuid
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, Text, Boolean, JSON, UniqueConstraint

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# --- Directory ----------------------------------------------
class Guardian(Base):
    __tablename__ = "guardians"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    app_role: Mapped[str] = mapped_column(String(30), default="parent")
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    school_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)

    links = relationship("GuardianChild", back_populates="guardian", cascade="all, delete-orphan")


class Child(Base):
    __tablename__ = "children"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    first_name: Mapped[Optional[str]] = mapped_column(String(120))
    birthdate: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    links = relationship("GuardianChild", back_populates="child", cascade="all, delete-orphan")


class GuardianChild(Base):
    __tablename__ = "guardian_children"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guardian_id: Mapped[str] = mapped_column(ForeignKey("guardians.id"))
    child_id: Mapped[str] = mapped_column(ForeignKey("children.id"))

    guardian = relationship("Guardian", back_populates="links")
    child = relationship("Child", back_populates="links")
    __table_args__ = (UniqueConstraint("guardian_id", "child_id", name="uix_guardian_child"),)


class CalendarEvent(Base):
    __tablename__ = "calendar_events"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    school_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime, index=True)  # UTC


# --- Weekly briefs ------------------------------------------
class WeeklyBriefRun(Base):
    __tablename__ = "weekly_brief_runs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    school_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    week_start_date: Mapped[date] = mapped_column(Date)
    week_end_date: Mapped[date] = mapped_column(Date)
    trigger: Mapped[str] = mapped_column(String(30), default="manual")
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default="STARTED")  # STARTED/SUCCEEDED/FAILED
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    generated_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_by_role: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)


class WeeklyBrief(Base):
    """One rendered brief per (parent, child, week). Re-runs overwrite content, never identity."""
    __tablename__ = "weekly_briefs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    parent_user_id: Mapped[str] = mapped_column(String(36), index=True)
    child_id: Mapped[str] = mapped_column(String(36), index=True)
    week_start: Mapped[date] = mapped_column(Date)
    week_end: Mapped[date] = mapped_column(Date)
    week_range: Mapped[Optional[str]] = mapped_column(String(80))
    ux_state: Mapped[str] = mapped_column(String(1))
    load_score: Mapped[int] = mapped_column(Integer, default=0)
    shape_of_the_week: Mapped[str] = mapped_column(Text)
    school_things_to_know: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    moment_to_protect: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gentle_heads_up: Mapped[str] = mapped_column(Text)
    tiny_connection_idea: Mapped[Optional[dict]] = mapped_column(JSON)
    content_html: Mapped[str] = mapped_column(Text)
    content_text: Mapped[str] = mapped_column(Text)
    raw_inputs: Mapped[Optional[dict]] = mapped_column(JSON)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    opened_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("parent_user_id", "child_id", "week_start",
                         name="weekly_briefs_parent_user_id_child_id_week_start_key"),
    )


class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(60))
    title: Mapped[str] = mapped_column(String(200))
    body: Mapped[Optional[str]] = mapped_column(Text)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
