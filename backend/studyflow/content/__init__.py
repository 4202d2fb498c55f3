"""
Block content registry.

``get_handler(block_type)`` is the single dispatch point from a block's type
tag to the handler implementing validate/save/fetch/delete for that variant.
"""
from studyflow.content.base import BlockContent, ContentHandler
from studyflow.content.form import FormContent, FormHandler
from studyflow.content.simple import (
    EmbedHandler,
    ExternalHandler,
    FileHandler,
    TextHandler,
)
from studyflow.services.errors import MalformedInputError

_HANDLERS: dict[str, ContentHandler] = {
    h.block_type: h
    for h in (TextHandler(), ExternalHandler(), EmbedHandler(), FormHandler(), FileHandler())
}

BLOCK_TYPES = frozenset(_HANDLERS)


def get_handler(block_type: str) -> ContentHandler:
    try:
        return _HANDLERS[block_type]
    except KeyError:
        raise MalformedInputError(f"unsupported block type: {block_type!r}") from None


__all__ = ["get_handler", "BLOCK_TYPES", "BlockContent", "ContentHandler", "FormContent"]
