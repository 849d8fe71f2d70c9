"""Database models for Image Host."""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class Image(SQLModel, table=True):
    """A catalog entry: a stored image or a reference to a hosted video."""
    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(description="jpeg, png, gif, youtube or imgur-gifv")
    title: str
    source_url: Optional[str] = None
    collection_name: str = Field(default="", index=True)
    submitter: str = ""
    redirect_to_id: Optional[int] = None
    is_hidden: bool = False
    is_clean: bool = False
    keywords: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
