"""Text, external link, embed (presentation) and file variants."""
from __future__ import annotations

from pydantic import Field, model_validator

from studyflow.content.base import BlockContent, ContentHandler


class TextContent(BlockContent):
    text: str = Field(min_length=1)


class ExternalContent(BlockContent):
    external_link: str = Field(min_length=1)
    open_in_new_window: bool = True


class EmbedContent(BlockContent):
    """A presentation either hosted elsewhere (embed_link) or uploaded (file_id)."""
    embed_link: str = ""
    file_id: int = 0
    height: int = 0
    width: int = 0

    @model_validator(mode="after")
    def _needs_a_source(self):
        if not self.embed_link and self.file_id == 0:
            raise ValueError("embed_link or file_id is required")
        return self


class FileContent(BlockContent):
    # Opaque reference into the blob store.
    file_id: int = Field(gt=0)
    description: str = ""


class TextHandler(ContentHandler):
    block_type = "text"
    model = TextContent


class ExternalHandler(ContentHandler):
    block_type = "external"
    model = ExternalContent


class EmbedHandler(ContentHandler):
    block_type = "embed"
    model = EmbedContent


class FileHandler(ContentHandler):
    block_type = "file"
    model = FileContent
