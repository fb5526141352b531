"""Benchmark catalog parsing and diffing on a synthetic full board."""

from __future__ import annotations

import random
import statistics
import sys
import time
from pathlib import Path
from typing import Any, Callable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC = PROJECT_ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def _sample_payload(seed: int, pages: int = 10, per_page: int = 15) -> list[dict[str, Any]]:
    rng = random.Random(seed)
    ids = list(range(1_000_000, 1_000_000 + pages * per_page))
    rng.shuffle(ids)
    payload: list[dict[str, Any]] = []
    for page in range(1, pages + 1):
        threads = []
        for index in range(per_page):
            thread_id = ids[(page - 1) * per_page + index]
            title = "Example &amp; General" if thread_id % 7 == 0 else f"Thread {thread_id}"
            threads.append(
                {"no": thread_id, "sub": title, "replies": rng.randint(0, 400)}
            )
        payload.append({"page": page, "threads": threads})
    return payload


def _time(callable_obj: Callable[[], None], iterations: int) -> float:
    start = time.perf_counter()
    for _ in range(iterations):
        callable_obj()
    return time.perf_counter() - start


def main() -> None:
    from pagenine.catalog import parse_catalog
    from pagenine.diff import CatalogDiffEngine
    from pagenine.models import WatchConfig

    iterations = 2_000
    engine = CatalogDiffEngine(WatchConfig(board="vg", title="example & general"))
    payloads = [_sample_payload(seed) for seed in range(4)]
    snapshots = [parse_catalog(payload, "vg") for payload in payloads]
    state = engine.compute(snapshots[0], {}).state

    def run_parse() -> None:
        for payload in payloads:
            parse_catalog(payload, "vg")

    def run_diff() -> None:
        current = state
        for snapshot in snapshots:
            current = engine.compute(snapshot, current).state

    parse_times = [_time(run_parse, iterations) for _ in range(5)]
    diff_times = [_time(run_diff, iterations) for _ in range(5)]

    print("Benchmark results (smaller is better)")
    print("Iterations per batch:", iterations, "x", len(payloads), "catalogs")
    print()
    print(f"Parse average: {statistics.mean(parse_times):.4f}s")
    print(f"Parse stdev:   {statistics.pstdev(parse_times):.4f}s")
    print(f"Diff average:  {statistics.mean(diff_times):.4f}s")
    print(f"Diff stdev:    {statistics.pstdev(diff_times):.4f}s")


if __name__ == "__main__":
    main()
