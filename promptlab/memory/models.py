# FILE: promptlab/memory/models.py
"""
SQLAlchemy ORM models for conversation memory.

Conversation -> Prompt -> Response cascade on delete.
Prompt -> ContextFile is a weak reference: deleting a file nulls
prompts.context_file_id instead of removing the prompt.

Prompts and responses are never updated after insert.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Numeric, BigInteger
from sqlalchemy.orm import relationship

from promptlab.db import Base


def _new_id() -> str:
    return str(uuid4())


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)  # UUID
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    prompts = relationship(
        "Prompt",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Prompt.created_at",
    )


class ContextFile(Base):
    """An uploaded document whose text may be spliced into a prompt."""
    __tablename__ = "context_files"

    id = Column(String(36), primary_key=True, default=_new_id)
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, default=0, nullable=False)
    content_type = Column(String(100), nullable=False, default="text/plain")
    storage_path = Column(String(500), nullable=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # No delete cascade: the ORM nulls prompts.context_file_id on file delete
    prompts = relationship("Prompt", back_populates="context_file")


class Prompt(Base):
    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True, default=_new_id)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_prompt = Column(Text, nullable=False)
    system_prompt = Column(Text, nullable=True)
    context_file_id = Column(
        String(36), ForeignKey("context_files.id", ondelete="SET NULL"), nullable=True, index=True
    )
    estimated_tokens = Column(Integer, default=0, nullable=False)
    actual_tokens = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    conversation = relationship("Conversation", back_populates="prompts")
    context_file = relationship("ContextFile", back_populates="prompts")
    responses = relationship(
        "Response",
        back_populates="prompt",
        cascade="all, delete-orphan",
        order_by="Response.created_at",
    )


class Response(Base):
    __tablename__ = "responses"

    id = Column(String(36), primary_key=True, default=_new_id)
    prompt_id = Column(String(36), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False, index=True)

    # "google", "groq" - see promptlab.schemas.ProviderKind
    provider = Column(String(50), nullable=False)
    model = Column(String(100), nullable=False)
    content = Column(Text, nullable=False, default="")
    tokens = Column(Integer, default=0, nullable=False)
    cost = Column(Numeric(18, 8), default=0, nullable=False)
    latency_ms = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    prompt = relationship("Prompt", back_populates="responses")
