from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from adapter.csvfile import DataProcessingError
from . import DashboardSession

PROMPT = """\
Commands:
  load     → load posts from a CSV file
  sample   → load generated sample posts
  summary  → totals, sentiment breakdown and average score
  brands   → top brands
  topics   → top topics
  series   → sentiment time series
  posts    → newest posts
  status   → session status
  reset    → drop the loaded data
  help     → show this message
  quit     → exit
"""


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, default=str))


def _ask_int(label: str) -> Optional[int]:
    raw = input(label).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        print(f"Not a number: {raw}")
        return None


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s - %(message)s")
    session = DashboardSession()
    print("Sentiment dashboard CLI. Type 'help' for options.")

    while True:
        try:
            command = input("dashboard> ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print("\nbye")
            break

        if not command:
            continue

        if command in {"quit", "exit"}:
            break

        if command == "help":
            print(PROMPT)
            continue

        if command == "load":
            path = input("CSV path: ").strip()
            if not path:
                continue
            try:
                text = Path(path).expanduser().read_text(encoding="utf-8-sig")
                result = session.load_csv(text, filename=Path(path).name)
            except OSError as e:
                print(f"Could not read {path}: {e}")
                continue
            except (DataProcessingError, ValueError) as e:
                print(f"Error: {e}")
                continue
            print(f"Loaded {result.valid_rows} posts ({len(result.skipped)} rows skipped)")
            for skipped in result.skipped[:10]:
                print(f"  row {skipped.row}: {skipped.reason}")
            continue

        if command == "sample":
            count = _ask_int(f"Number of posts [{session.sample_size}]: ")
            seed = _ask_int("Seed (optional): ")
            try:
                posts = session.load_sample(count=count, seed=seed)
            except ValueError as e:
                print(f"Error: {e}")
                continue
            print(f"Generated {len(posts)} sample posts")
            continue

        if command == "status":
            _print(session.state().model_dump(mode="json"))
            continue

        if command == "reset":
            session.reset()
            print("Data cleared")
            continue

        if command in {"summary", "brands", "topics", "series", "posts"} and not session.has_data:
            print("No data loaded. Use 'load' or 'sample' first.")
            continue

        if command == "summary":
            analytics = session.get_analytics()
            _print({
                "total_posts": analytics.total_posts,
                "sentiment_breakdown": analytics.sentiment_breakdown.model_dump(),
                "sentiment_percentages": analytics.sentiment_percentages,
                "average_score": round(analytics.average_score, 3),
                "brands_mentioned": len(analytics.top_brands),
                "engagement": analytics.engagement.model_dump(),
            })
            continue

        if command in {"brands", "topics"}:
            analytics = session.get_analytics()
            items = analytics.top_brands if command == "brands" else analytics.top_topics
            for rank, item in enumerate(items, 1):
                print(f"  {rank}. {item.name}: {item.count} posts ({item.percentage}%), avg {item.average_score:+.3f}")
            continue

        if command == "series":
            resolution = input("Resolution (hour/day/week/auto) [default]: ").strip().lower() or None
            try:
                analytics = session.get_analytics(resolution=resolution)
            except ValueError as e:
                print(f"Error: {e}")
                continue
            for point in analytics.time_series_data:
                print(f"  {point.label}: +{point.positive} -{point.negative} ={point.neutral} (avg {point.average_score:+.3f})")
            continue

        if command == "posts":
            limit = _ask_int("How many [10]: ") or 10
            total, posts = session.list_posts(limit=limit)
            print(f"Showing {len(posts)} of {total}")
            _print([p.model_dump(mode="json") for p in posts])
            continue

        print("Unknown command. Type 'help' to see options.")


if __name__ == "__main__":
    main()
