"""FOXML reading: streams one object's datastreams into an object handler."""

from .foxml_processor import (
    FOXML_NS,
    LOCAL_FEDORA_SERVER,
    FoxmlError,
    FoxmlObjectProcessor,
    FoxmlParseError,
    ResolutionContext,
    SourceNotFoundError
)

__all__ = [
    'FOXML_NS',
    'LOCAL_FEDORA_SERVER',
    'FoxmlError',
    'FoxmlObjectProcessor',
    'FoxmlParseError',
    'ResolutionContext',
    'SourceNotFoundError'
]
