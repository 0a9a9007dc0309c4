from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Annotation(BaseModel):
    """
    One persisted highlight.

    Serialized with the camelCase keys of the stored layout. Records written by
    older plugin versions (`cfi`, `text`, `chapter`, `comment`, `tags`) load too.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    identifier: str = Field(
        validation_alias=AliasChoices("identifier", "cfi"),
        serialization_alias="identifier",
    )
    content: str = Field(
        validation_alias=AliasChoices("content", "text"),
        serialization_alias="content",
    )
    section_label: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sectionLabel", "section_label", "chapter"),
        serialization_alias="sectionLabel",
    )
    created_at: str = Field(
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updated_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )
    note: str | None = Field(
        default=None,
        validation_alias=AliasChoices("note", "comment"),
        serialization_alias="note",
    )
    classification_tags: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("classificationTags", "classification_tags", "tags"),
        serialization_alias="classificationTags",
    )
    color: str | None = None

    def to_record(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)
