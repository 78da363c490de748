"""
SQLAlchemy models for persisted verdicts.

vetting_records holds exactly one row per token (the latest verdict);
verdict_history holds the bounded trail of every saved verdict, newest last.
The verdict itself is stored as JSON in the wire shape of Verdict.to_dict().
"""

from __future__ import annotations

from sqlalchemy import Column, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class VettingRecordRow(Base):
    """Latest verdict per token."""

    __tablename__ = "vetting_records"

    token_id = Column(String(160), primary_key=True)
    score = Column(Float, nullable=False)
    status = Column(String(8), nullable=False)
    confidence = Column(Float, nullable=False)
    computed_at = Column(Float, nullable=False, index=True)  # Unix seconds
    verdict_json = Column(Text, nullable=False)
    updated_at = Column(Float, nullable=False)


class VerdictHistoryRow(Base):
    __tablename__ = "verdict_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(String(160), nullable=False)
    score = Column(Float, nullable=False)
    status = Column(String(8), nullable=False)
    computed_at = Column(Float, nullable=False)
    verdict_json = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False)

    __table_args__ = (Index("ix_verdict_history_token_id_id", "token_id", "id"),)
