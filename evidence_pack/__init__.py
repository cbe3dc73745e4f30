"""Evidence compaction and ranking engine for citation-bound generators."""

from .config import PackConfig
from .pipeline import (
    EvidencePackPipeline,
    build_context_pack,
    compress_context_bundle,
    get_allowed_action_types,
    get_allowed_evidence_ids,
)
from .references import parse_reference, references_match
from .schemas import ContextPack, RawCandidate

__all__ = [
    "ContextPack",
    "EvidencePackPipeline",
    "PackConfig",
    "RawCandidate",
    "build_context_pack",
    "compress_context_bundle",
    "get_allowed_action_types",
    "get_allowed_evidence_ids",
    "parse_reference",
    "references_match",
]
