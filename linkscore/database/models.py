"""
SQLAlchemy Models for the LinkScore Engine

One central table, analysis_jobs. A row is:
1. Created by the intake endpoint (pending, campaign parameters only)
2. Filled in progressively by the orchestrator while processing
3. Frozen once terminal (completed, failed or cancelled), kept for audit and
   webhook replay

Portable across PostgreSQL (production) and SQLite (local/tests): ids are
String(36) and structured fields are plain JSON.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, Enum, Index, JSON,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class JobStatus(enum.Enum):
    """Lifecycle: pending -> processing -> completed | failed | cancelled"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.PROCESSING})


# =============================================================================
# CORE TABLES
# =============================================================================

class AnalysisJob(Base):
    """Each LinkScore analysis - the central entity"""
    __tablename__ = "analysis_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Status tracking
    status = Column(
        Enum(JobStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.PENDING,
    )
    progress = Column(JSON, nullable=True)  # Serialized ProgressSnapshot
    progress_percent = Column(Integer, default=0)  # Mirrors progress.percentage for guarded updates
    error_message = Column(Text)

    # Campaign parameters (immutable once created)
    domain = Column(String(253), nullable=False)
    email = Column(String(255))
    company_name = Column(String(200))
    location = Column(String(50), nullable=False)
    location_code = Column(Integer, nullable=False)
    monthly_spend = Column(Float, nullable=False)
    investment_months = Column(Integer, nullable=False)
    keywords = Column(JSON, nullable=False)  # 2-5 strings

    # Derived metrics
    current_authority_links = Column(Integer)
    authority_links_gained = Column(Integer)  # May be negative
    expected_links = Column(Integer)
    competitor_average_links = Column(Float)
    competitors = Column(JSON)  # List of competitor domains
    historical_data = Column(JSON)  # [{domain, linksAtStart, linksNow, linksGained}]
    link_gaps = Column(JSON)  # Top-N LinkGapRecord dicts, highest priority first
    link_gaps_total = Column(Integer)
    link_gaps_high_priority = Column(Integer)
    red_flags = Column(JSON)

    # LinkScore components
    link_score = Column(Integer)
    competitive_score = Column(Integer)
    performance_score = Column(Integer)
    velocity_score = Column(Integer)
    market_share_score = Column(Integer)
    cost_efficiency_score = Column(Integer)
    strategy = Column(String(20))

    # Lead scoring
    priority_score = Column(Integer)
    potential_score = Column(Integer)

    # Investment
    total_investment = Column(Float)
    cost_per_authority_link = Column(Float)

    # Cost & timing
    dataforseo_cost = Column(Float, default=0)
    processing_time = Column(Float)  # Seconds
    notification_sent_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index("idx_analysis_jobs_status_created", "status", "created_at"),
        Index("idx_analysis_jobs_domain", "domain"),
    )

    def __repr__(self):
        return f"<AnalysisJob {self.id} {self.domain} {self.status.value if self.status else None}>"
