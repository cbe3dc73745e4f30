"""CLI entrypoint for compacting a candidate file into a context pack."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from evidence_pack.config import PackConfig  # noqa: E402
from evidence_pack.ingest import parse_timestamp  # noqa: E402
from evidence_pack.pipeline import EvidencePackPipeline, get_allowed_evidence_ids  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a bounded evidence pack from raw candidates.")
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "config.yaml"),
        help="Path to YAML config.",
    )
    parser.add_argument(
        "--input",
        required=True,
        help="JSON file holding a candidate list or a {plan, candidates} bundle.",
    )
    parser.add_argument(
        "--action",
        action="append",
        default=[],
        help="Enabled action type (repeatable).",
    )
    parser.add_argument("--now", type=str, default=None, help="Reference time (ISO-8601) for recency.")
    parser.add_argument("--stats", action="store_true", help="Print input/output counts to stderr.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("build_pack")

    config_path = Path(args.config)
    config = PackConfig.from_yaml(str(config_path)) if config_path.exists() else PackConfig()

    try:
        data = json.loads(Path(args.input).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.error("Cannot read candidates from %s: %s", args.input, exc)
        return 1

    now = None
    if args.now:
        now = parse_timestamp(args.now)
        if now is None:
            log.error("Invalid --now timestamp: %s", args.now)
            return 1

    pipeline = EvidencePackPipeline(config)
    if isinstance(data, dict):
        candidates = data.get("candidates") or []
        pack = pipeline.build(candidates, enabled_actions=args.action, plan=data.get("plan"), now=now)
    else:
        candidates = data
        pack = pipeline.build(candidates, enabled_actions=args.action, now=now)

    print(json.dumps(pack.to_dict(), ensure_ascii=False, indent=2))
    log.info("Pack cites %d evidence ids", len(get_allowed_evidence_ids(pack)))
    if args.stats:
        for key, value in pipeline.stats(candidates, pack).items():
            print(f"{key}: {value}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
