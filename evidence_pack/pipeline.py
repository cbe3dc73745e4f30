"""Orchestration layer: candidates in, bounded context pack out."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .clustering import SessionClusterer
from .compactors import compact_artifacts, compact_conversations, compact_life, compact_memory
from .config import PackConfig
from .ingest import as_string, coerce_candidates, count_by_source, dedupe_candidates
from .ranking import AnchorSelector, SupportAssigner
from .schemas import ContextPack, PlanHints

logger = logging.getLogger(__name__)

EVIDENCE_FIELDS = ("life", "memory", "anchors", "artifacts", "conversations", "candidates")


def plan_hints(plan: object) -> Optional[PlanHints]:
    """Pull response mode/length out of a plan mapping.

    Accepts ``{"response": {"responseMode", "lengthTarget"}}`` as produced by
    the planner, or flat ``{"mode", "length"}``.
    """
    if isinstance(plan, PlanHints):
        return plan if (plan.mode or plan.length) else None
    if not isinstance(plan, Mapping):
        return None
    response = plan.get("response")
    if isinstance(response, Mapping):
        mode = as_string(response.get("responseMode"))
        length = as_string(response.get("lengthTarget"))
    else:
        mode = as_string(plan.get("mode"))
        length = as_string(plan.get("length"))
    if not mode and not length:
        return None
    return PlanHints(mode=mode, length=length)


def normalize_actions(actions: object, limit: int = 32) -> List[str]:
    """Non-blank strings, stripped and deduplicated in order, capped to ``limit``."""
    if isinstance(actions, (str, bytes, Mapping)) or not isinstance(actions, Iterable):
        return []
    out: List[str] = []
    for action in actions:
        if not isinstance(action, str) or not action.strip():
            continue
        action = action.strip()
        if action not in out:
            out.append(action)
    return out[:limit]


class EvidencePackPipeline:
    """Composes the per-stage reducers under one ``PackConfig``."""

    def __init__(self, config: Optional[PackConfig] = None):
        self.config = config or PackConfig()
        self.clusterer = SessionClusterer(self.config.sessions)
        self.selector = AnchorSelector(self.config.ranking)
        self.assigner = SupportAssigner(self.config.ranking)

    def build(
        self,
        candidates: Iterable[Any],
        enabled_actions: Optional[Iterable[str]] = None,
        plan: object = None,
        now: Optional[datetime] = None,
    ) -> ContextPack:
        """Run coerce -> dedupe -> compact -> cluster -> rank -> assign -> assemble."""
        now = now or datetime.now(timezone.utc)
        cfg = self.config
        pool = dedupe_candidates(coerce_candidates(candidates))

        life = compact_life(pool, cfg.truncation, cfg.caps)
        memory = compact_memory(pool, cfg.truncation, cfg.caps)
        conversations = compact_conversations(pool, cfg.truncation, cfg.caps)
        artifacts = compact_artifacts(pool, cfg.truncation, cfg.caps)

        anchor_candidates = self.clusterer.cluster_anchors(pool)
        anchors = self.selector.select(anchor_candidates, now)
        supporting = self.assigner.assign(anchors, artifacts, now)

        pack = ContextPack(
            plan=plan_hints(plan),
            life=tuple(life),
            memory=tuple(memory),
            anchors=tuple(anchors),
            artifacts=tuple(supporting),
            conversations=tuple(conversations),
            allowed_actions=tuple(normalize_actions(enabled_actions or [], cfg.caps.allowed_actions)),
        )
        logger.debug(
            "Built pack from %d candidates: %d anchors, %d artifacts, %d conversations",
            len(pool),
            len(pack.anchors),
            len(pack.artifacts),
            len(pack.conversations),
        )
        return pack

    def build_from_bundle(
        self,
        bundle: object,
        enabled_actions: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> ContextPack:
        """Build from a producer bundle ``{"plan": ..., "candidates": [...]}``."""
        if not isinstance(bundle, Mapping):
            return ContextPack()
        return self.build(
            bundle.get("candidates") or [],
            enabled_actions=enabled_actions,
            plan=bundle.get("plan"),
            now=now,
        )

    def stats(self, candidates: Iterable[Any], pack: ContextPack) -> Dict[str, Any]:
        """Per-source input counts next to per-section output counts."""
        return {
            "input_by_source": count_by_source(coerce_candidates(candidates)),
            "life": len(pack.life),
            "memory": len(pack.memory),
            "anchors": len(pack.anchors),
            "artifacts": len(pack.artifacts),
            "conversations": len(pack.conversations),
            "allowed_actions": len(pack.allowed_actions),
            "evidence_ids": len(get_allowed_evidence_ids(pack)),
        }


def build_context_pack(
    candidates: Iterable[Any],
    enabled_actions: Optional[Iterable[str]] = None,
    plan: object = None,
    now: Optional[datetime] = None,
    config: Optional[PackConfig] = None,
) -> ContextPack:
    return EvidencePackPipeline(config).build(candidates, enabled_actions=enabled_actions, plan=plan, now=now)


def compress_context_bundle(
    bundle: object,
    enabled_actions: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
    config: Optional[PackConfig] = None,
) -> ContextPack:
    return EvidencePackPipeline(config).build_from_bundle(bundle, enabled_actions=enabled_actions, now=now)


def _as_pack_mapping(pack: object) -> Optional[Mapping]:
    if isinstance(pack, ContextPack):
        return pack.to_dict()
    if isinstance(pack, Mapping):
        return pack
    return None


def get_allowed_evidence_ids(pack: object) -> List[str]:
    """Every id cited anywhere in the pack, first-seen order.

    Also reads a legacy top-level ``candidates`` list. Returns ``[]`` for
    anything that is not a pack.
    """
    data = _as_pack_mapping(pack)
    if data is None:
        return []
    ids: List[str] = []
    seen = set()
    for key in EVIDENCE_FIELDS:
        items = data.get(key)
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, Mapping):
                continue
            item_id = as_string(item.get("id"))
            if item_id and item_id not in seen:
                seen.add(item_id)
                ids.append(item_id)
    return ids


def get_allowed_action_types(pack: object) -> Optional[List[str]]:
    """The pack's action allow-list, or ``None`` when it carries none."""
    data = _as_pack_mapping(pack)
    if data is None:
        return None
    raw = data.get("allowedActions")
    if not isinstance(raw, list):
        return None
    allowed = [action.strip() for action in raw if isinstance(action, str) and action.strip()]
    return allowed or None
