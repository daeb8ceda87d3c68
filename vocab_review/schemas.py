"""
Pydantic models for vocabulary items.

Items are owned by the vocabulary layer; the review core only reads them
to build queues and to check that an item exists before tracking it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DifficultyLevel(str, Enum):
    """Author-assigned difficulty of a vocabulary item."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class VocabularyItem(BaseModel):
    """A vocabulary item as served in review queues."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique item identifier")
    word: str = Field(..., description="Headword")
    meaning: str = Field(..., description="Meaning or translation")
    pronunciation: Optional[str] = None
    example_sentence: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None
    list_name: Optional[str] = Field(default=None, description="Owning vocabulary list")
    created_at: Optional[datetime] = None
