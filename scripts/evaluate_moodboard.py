#!/usr/bin/env python3
"""Runs sample prompts through the moodboard pipeline and reports size, diversity and latency."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import statistics
import sys
import time

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from moodboard_curator.config import CuratorConfig
from moodboard_curator.service import MoodboardService


DEFAULT_PROMPTS = [
    "oversized japanese streetwear",
    "minimal dinner unisex",
    "women elegant wedding guest",
    "men rugged workwear boots",
    "cozy fall weekend layers",
    "game day stadium casual",
    "quiet luxury office women",
    "techwear rain ready",
]


def diversity(images: list[dict]) -> float:
    if not images:
        return 0.0
    return len({image["provider"] for image in images}) / len(images)


def evaluate(service: MoodboardService, prompts: list[str], count: int, gender: str) -> dict:
    results = []
    latencies = []
    sizes = []
    diversities = []

    for prompt in prompts:
        start = time.perf_counter()
        payload = service.curate_moodboard(prompt=prompt, gender=gender, count=count)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        images = payload["images"]
        debug = payload.get("debug", {})
        latencies.append(elapsed_ms)
        sizes.append(len(images))
        diversities.append(diversity(images))

        results.append(
            {
                "prompt": prompt,
                "latency_ms": round(elapsed_ms, 2),
                "images": len(images),
                "domain_diversity": round(diversity(images), 4),
                "query_source": debug.get("query_source"),
                "total_candidates": debug.get("total_candidates"),
                "per_category": debug.get("per_category"),
                "top": [image["title"] for image in images[:3]],
            }
        )

    summary = {
        "prompts": len(prompts),
        "count": count,
        "latency_ms_avg": round(statistics.mean(latencies), 2) if latencies else 0.0,
        "images_avg": round(statistics.mean(sizes), 2) if sizes else 0.0,
        "domain_diversity_avg": round(statistics.mean(diversities), 4) if diversities else 0.0,
        "empty_boards": sum(1 for size in sizes if size == 0),
    }

    return {
        "summary": summary,
        "results": results,
    }


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=logging.WARNING)

    parser = argparse.ArgumentParser(description="Evaluate moodboard size and diversity over sample prompts.")
    parser.add_argument("--count", type=int, default=18, help="Requested images per board.")
    parser.add_argument("--gender", default="unisex", help="Gender hint passed with every prompt.")
    parser.add_argument(
        "--output",
        type=Path,
        default=ROOT_DIR / "docs" / "moodboard_eval_last_run.json",
        help="Where to write JSON evaluation results.",
    )
    parser.add_argument(
        "--prompt",
        action="append",
        default=[],
        help="Custom prompt (can be passed multiple times).",
    )
    args = parser.parse_args()

    prompts = args.prompt if args.prompt else DEFAULT_PROMPTS
    service = MoodboardService(CuratorConfig.from_env())

    payload = evaluate(service, prompts, args.count, args.gender)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    summary = payload["summary"]
    print("Moodboard Evaluation")
    print(f"prompts: {summary['prompts']}")
    print(f"latency avg: {summary['latency_ms_avg']} ms")
    print(f"images avg: {summary['images_avg']} (requested {summary['count']})")
    print(f"domain diversity avg: {summary['domain_diversity_avg']}")
    print(f"empty boards: {summary['empty_boards']}")
    print(f"saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
