"""
Typed metadata for each searchable content type.

Each content type carries its own metadata shape; ``IndexCandidate`` is the
common view the Index Builder and the store work with.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Union

from ..models.content_type import ContentType


class AnnouncementMetadata(BaseModel):
    target_roles: List[str] = Field(default_factory=list)
    target_units: List[str] = Field(default_factory=list)


class TrainingMetadata(BaseModel):
    pass


class ManualMetadata(BaseModel):
    tags: List[str] = Field(default_factory=list)


class ChecklistMetadata(BaseModel):
    applicable_units: List[str] = Field(default_factory=list)


class IdeaMetadata(BaseModel):
    category: Optional[str] = None


class CampaignMetadata(BaseModel):
    target_roles: List[str] = Field(default_factory=list)
    target_units: List[str] = Field(default_factory=list)


class FeedPostMetadata(BaseModel):
    post_type: Optional[str] = None
    audience_roles: List[str] = Field(default_factory=list)
    audience_units: List[str] = Field(default_factory=list)


ContentMetadata = Union[
    AnnouncementMetadata,
    TrainingMetadata,
    ManualMetadata,
    ChecklistMetadata,
    IdeaMetadata,
    CampaignMetadata,
    FeedPostMetadata,
]

METADATA_MODELS = {
    ContentType.ANNOUNCEMENT: AnnouncementMetadata,
    ContentType.TRAINING: TrainingMetadata,
    ContentType.MANUAL: ManualMetadata,
    ContentType.CHECKLIST: ChecklistMetadata,
    ContentType.IDEA: IdeaMetadata,
    ContentType.CAMPAIGN: CampaignMetadata,
    ContentType.FEED_POST: FeedPostMetadata,
}


def build_text(*parts: Optional[str]) -> str:
    """Join the textual fields of a record; empty fields contribute nothing."""
    return " ".join(part.strip() for part in parts if part and part.strip())


def derive_title(text: str, max_words: int = 10) -> str:
    return " ".join(text.split()[:max_words])


class IndexCandidate(BaseModel):
    """A content item ready to be embedded and stored in the search index."""
    content_type: ContentType
    content_id: str
    text: str
    metadata: ContentMetadata

    def title(self, max_words: int = 10) -> str:
        return derive_title(self.text, max_words)

    def metadata_dict(self) -> dict:
        return self.metadata.model_dump()
