# FILE: promptlab/memory/service.py
"""
Narrow read/write helpers over the memory store.

Plain functions taking a Session, the same shape the HTTP layer and the
execution coordinator both use. Exchange writes do NOT go through here;
see promptlab.memory.persistence for the transactional path.
"""
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from promptlab.memory import models, schemas


# ============== CONVERSATION ==============

def get_conversation(db: Session, conversation_id: str) -> Optional[models.Conversation]:
    return db.query(models.Conversation).filter(models.Conversation.id == conversation_id).first()


def list_conversations(db: Session, user_id: str, limit: int = 50) -> List[models.Conversation]:
    return (
        db.query(models.Conversation)
        .filter(models.Conversation.user_id == user_id)
        .order_by(models.Conversation.updated_at.desc())
        .limit(limit)
        .all()
    )


# ============== PROMPT ==============

def get_prompt(db: Session, prompt_id: str) -> Optional[models.Prompt]:
    return (
        db.query(models.Prompt)
        .options(selectinload(models.Prompt.responses))
        .filter(models.Prompt.id == prompt_id)
        .first()
    )


def list_prompts_for_conversation(db: Session, conversation_id: str) -> List[models.Prompt]:
    return (
        db.query(models.Prompt)
        .options(selectinload(models.Prompt.responses))
        .filter(models.Prompt.conversation_id == conversation_id)
        .order_by(models.Prompt.created_at.asc())
        .all()
    )


# ============== CONTEXT FILE ==============

def create_context_file(db: Session, data: schemas.ContextFileCreate) -> models.ContextFile:
    context_file = models.ContextFile(
        file_name=data.file_name,
        file_size=data.file_size,
        content_type=data.content_type,
        storage_path=data.storage_path,
    )
    db.add(context_file)
    db.commit()
    db.refresh(context_file)
    return context_file


def get_context_file(db: Session, file_id: str) -> Optional[models.ContextFile]:
    return db.query(models.ContextFile).filter(models.ContextFile.id == file_id).first()


def delete_context_file(db: Session, file_id: str) -> bool:
    """Delete the file row. Prompts that referenced it keep existing with a null reference."""
    context_file = get_context_file(db, file_id)
    if not context_file:
        return False
    db.delete(context_file)
    db.commit()
    return True
