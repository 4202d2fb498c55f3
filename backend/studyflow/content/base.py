"""
Shared machinery for block content handlers.

Each block type is a variant with its own pydantic model. A handler exposes the
same four capabilities for every variant:

  validate(raw)       -> model instance, or MalformedInputError
  save(block, raw)    -> normalises and stores content on the block row
  fetch(block)        -> model instance for the stored content
  delete(block)       -> clears the stored content

Handlers never commit; BlockRepo owns the session.
"""
from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from studyflow.models.block import Block
from studyflow.services.errors import MalformedInputError, NotFoundError


class BlockContent(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ContentHandler:
    block_type: ClassVar[str]
    model: ClassVar[type[BlockContent]]

    def validate(self, raw: Any) -> BlockContent:
        if isinstance(raw, self.model):
            return raw
        try:
            return self.model.model_validate(raw or {})
        except ValidationError as exc:
            raise MalformedInputError(
                f"invalid {self.block_type} content: {exc.errors()[0]['msg']}"
            ) from exc

    def prepare(self, content: BlockContent) -> BlockContent:
        """Hook for variants that need to normalise before storage."""
        return content

    def save(self, block: Block, raw: Any) -> BlockContent:
        content = self.prepare(self.validate(raw))
        block.block_type = self.block_type
        block.content = content.model_dump()
        return content

    def fetch(self, block: Block) -> BlockContent:
        if block.content is None:
            raise NotFoundError(f"block {block.id} has no {self.block_type} content")
        return self.model.model_validate(block.content)

    def delete(self, block: Block) -> None:
        block.content = None
