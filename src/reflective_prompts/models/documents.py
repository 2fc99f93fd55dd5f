"""
Document model for user-authored text (journal entries).

Documents are owned by an external store; this package only reads them.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..clock import to_naive_utc


class Document(BaseModel):
    """A single user-authored text unit."""

    document_id: str = Field(description="Stable document identifier")
    user_id: str = Field(description="Owner of the document")
    text: str = Field(description="Document body")
    title: str = Field(default="", description="Optional title")
    created_at: datetime = Field(description="Creation timestamp (stored as naive UTC)")
    is_follow_up: bool = Field(
        default=False,
        description="True when written in answer to a follow-up prompt; excluded from milestone counts",
    )

    model_config = {"frozen": True}

    @field_validator("created_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        """Store timestamps as naive UTC so they compare with database values."""
        return to_naive_utc(v)

    @property
    def full_text(self) -> str:
        """Title and body joined for analysis."""
        if self.title:
            return f"{self.title}\n{self.text}"
        return self.text


def qualifying_documents(documents):
    """Documents that count towards generation thresholds (follow-up answers excluded)."""
    return [doc for doc in documents if not doc.is_follow_up]
