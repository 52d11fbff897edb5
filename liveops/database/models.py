"""
Database Models

Relational schema for the LiveOps service:

- AnalyticsEventRecord: client analytics events, one row per event
- ConfigVariant: remote config document per (experiment, cohort)
- ExperimentMetadata: experiment definitions and cohort weights
- UserExperimentAssignment: durable caller -> cohort assignments

The services talk to these tables with composed SQL through ``SqlStore``;
the models define the DDL (``Base.metadata.create_all``) and indexes.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON text elsewhere
JSONDocument = JSONB().with_variant(JSON(), "sqlite")

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIdentity = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class AnalyticsEventRecord(Base):
    """
    Analytics Events

    One row per client event. ``user_id`` is always the authenticated caller;
    ``client_timestamp`` and ``server_timestamp`` are milliseconds since epoch.
    """
    __tablename__ = "analytics_events"

    id: Mapped[int] = mapped_column(BigIdentity, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(255))
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_properties: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, default=dict)
    experiment_id: Mapped[Optional[str]] = mapped_column(String(255))
    cohort: Mapped[Optional[str]] = mapped_column(String(255))
    client_timestamp: Mapped[Optional[int]] = mapped_column(BigInteger)
    server_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_analytics_events_user_id", "user_id"),
        Index("idx_analytics_events_event_name", "event_name"),
        Index("idx_analytics_events_server_timestamp", "server_timestamp"),
        Index("idx_analytics_events_user_time", "user_id", "server_timestamp"),
        Index(
            "idx_analytics_events_experiment",
            "experiment_id",
            "cohort",
            postgresql_where=text("experiment_id IS NOT NULL"),
        ),
    )


class ConfigVariant(Base):
    """
    Remote Config Variants

    ``("default", "default")`` is the fallback served to callers without an
    assignment. ``version`` increases on every administrative update.
    """
    __tablename__ = "config_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    experiment_id: Mapped[str] = mapped_column(String(255), nullable=False)
    cohort: Mapped[str] = mapped_column(String(255), nullable=False)
    config_data: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("experiment_id", "cohort", name="uq_config_variants_experiment_cohort"),
        Index("idx_config_variants_active", "is_active", "experiment_id"),
    )


class ExperimentMetadata(Base):
    """
    Experiment Definitions

    ``cohorts`` maps cohort name to weight, e.g. ``{"control": 0.5, "variant_b": 0.5}``.
    Managed by administrative tooling; read-only for the service.
    """
    __tablename__ = "experiment_metadata"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    cohorts: Mapped[Dict[str, float]] = mapped_column(JSONDocument, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_experiment_metadata_active", "is_active", "id"),
    )


class UserExperimentAssignment(Base):
    """
    User Cohort Assignments

    Written once per (user, experiment) and never updated.
    """
    __tablename__ = "user_experiment_assignments"

    id: Mapped[int] = mapped_column(BigIdentity, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    experiment_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("experiment_metadata.id", ondelete="CASCADE"),
        nullable=False,
    )
    cohort: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "experiment_id", name="uq_user_experiment_assignments_user_experiment"),
        Index("idx_user_experiment_assignments_user", "user_id"),
        Index("idx_user_experiment_assignments_experiment", "experiment_id", "cohort"),
    )

