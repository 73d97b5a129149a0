"""Pydantic schemas for the woodshop chat pipeline."""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatTurn(BaseModel):
    """Single message of the caller-owned conversation history."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Inbound request to the pipeline.

    History is ordered oldest first; the pipeline only ever reads a bounded
    window from its tail.
    """

    question: str = ""
    history: list[ChatTurn] = Field(default_factory=list)


class RelevanceLabel(StrEnum):
    """Intent categories produced by the relevance classifier."""

    GREETING = "GREETING"
    RELEVANT = "RELEVANT"
    INAPPROPRIATE = "INAPPROPRIATE"
    NOT_RELEVANT = "NOT_RELEVANT"


class RetrievedDocument(BaseModel):
    """Passage returned by the vector search store."""

    id: str
    text: str
    title: str = ""
    url: str = ""
    chunk_id: str | None = None
    similarity_score: float


class VideoReference(BaseModel):
    """Timestamped video moment extracted from the generated answer."""

    timestamp: str
    video_title: str
    source_url: str
    deep_link_url: str
    description: str = ""


class Product(BaseModel):
    """Catalog item; tags are the join key to video titles."""

    id: str
    title: str
    tags: list[str] = Field(default_factory=list)
    link: str = ""


class MediaResponse(BaseModel):
    """Second-phase payload computed from a completed answer."""

    model_config = ConfigDict(populate_by_name=True)

    video_references: dict[str, VideoReference] = Field(
        default_factory=dict, alias="videoReferences"
    )
    related_products: list[Product] = Field(
        default_factory=list, alias="relatedProducts"
    )


class ChatResponse(BaseModel):
    """Externally visible result of one question/answer exchange.

    When relevance is anything other than RELEVANT the media collections are
    empty and answer_text is the short-circuit reply.
    """

    relevance: RelevanceLabel
    answer_text: str
    video_references: dict[str, VideoReference] = Field(default_factory=dict)
    related_products: list[Product] = Field(default_factory=list)
