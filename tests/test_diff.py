from __future__ import annotations

from typing import Mapping

from pagenine.catalog import parse_catalog
from pagenine.diff import CatalogDiffEngine
from pagenine.models import (
    BUMP_LIMIT_REACHED,
    DISAPPEARED,
    NEW_MATCH,
    PAGE_ADVANCE,
    CatalogSnapshot,
    DiffResult,
    ThreadSnapshot,
    TrackedThread,
    WatchConfig,
)


def make_config(**kwargs: object) -> WatchConfig:
    params: dict[str, object] = {"board": "vg", "title": "example", "bump_limit": 310}
    params.update(kwargs)
    return WatchConfig(**params)  # type: ignore[arg-type]


def make_thread(
    thread_id: int = 123,
    *,
    title: str = "Example Thread",
    bump_count: int = 0,
    page: int = 1,
    bump_limit_flag: bool = False,
) -> ThreadSnapshot:
    return ThreadSnapshot(
        id=thread_id,
        title=title,
        bump_count=bump_count,
        page=page,
        bump_limit_flag=bump_limit_flag,
    )


def snapshot(*threads: ThreadSnapshot) -> CatalogSnapshot:
    return CatalogSnapshot(board="vg", threads=threads)


def run_cycles(
    engine: CatalogDiffEngine, *snapshots: CatalogSnapshot
) -> tuple[Mapping[int, TrackedThread], list[DiffResult]]:
    state: Mapping[int, TrackedThread] = {}
    results = []
    for snap in snapshots:
        result = engine.compute(snap, state)
        results.append(result)
        state = result.state
    return state, results


def kinds(result: DiffResult) -> list[tuple[str, int]]:
    return [(event.kind, event.thread_id) for event in result.events]


def test_bump_limit_scenario() -> None:
    engine = CatalogDiffEngine(make_config())

    _, (first, second) = run_cycles(
        engine,
        snapshot(make_thread(bump_count=300, page=3)),
        snapshot(make_thread(bump_count=310, page=1)),
    )

    assert kinds(first) == [(NEW_MATCH, 123)]
    assert kinds(second) == [(BUMP_LIMIT_REACHED, 123)]
    assert second.state[123].bump_limit_notified is True
    assert second.state[123].near_prune_notified is False
    assert second.state[123].last_page == 1
    assert second.state[123].last_bump_count == 310


def test_disappearance_emits_once_and_untracks() -> None:
    engine = CatalogDiffEngine(make_config())

    state, (_, gone, after) = run_cycles(
        engine,
        snapshot(make_thread(page=4)),
        snapshot(),
        snapshot(),
    )

    assert kinds(gone) == [(DISAPPEARED, 123)]
    assert gone.events[0].page == 4
    assert 123 not in gone.state
    assert after.events == []
    assert dict(state) == {}


def test_each_condition_notified_at_most_once() -> None:
    engine = CatalogDiffEngine(make_config(near_prune_page=9))

    _, results = run_cycles(
        engine,
        snapshot(make_thread(bump_count=100, page=2)),
        snapshot(make_thread(bump_count=310, page=9)),
        snapshot(make_thread(bump_count=320, page=10)),
        snapshot(make_thread(bump_count=330, page=1)),
        snapshot(make_thread(bump_count=340, page=9)),
    )

    all_events = [event for result in results for event in result.events]
    counts = {kind: sum(1 for e in all_events if e.kind == kind) for kind in (
        NEW_MATCH, BUMP_LIMIT_REACHED, PAGE_ADVANCE, DISAPPEARED
    )}
    assert counts == {NEW_MATCH: 1, BUMP_LIMIT_REACHED: 1, PAGE_ADVANCE: 1, DISAPPEARED: 0}
    assert kinds(results[1]) == [(BUMP_LIMIT_REACHED, 123), (PAGE_ADVANCE, 123)]


def test_page_advance_on_threshold() -> None:
    engine = CatalogDiffEngine(make_config(near_prune_page=8))

    _, (first, second) = run_cycles(
        engine,
        snapshot(make_thread(page=7)),
        snapshot(make_thread(page=8)),
    )

    assert kinds(first) == [(NEW_MATCH, 123)]
    assert kinds(second) == [(PAGE_ADVANCE, 123)]
    assert second.events[0].page == 8


def test_no_bump_limit_suppresses_all_bump_events() -> None:
    engine = CatalogDiffEngine(make_config(no_bump_limit=True))

    _, results = run_cycles(
        engine,
        snapshot(make_thread(bump_count=500)),
        snapshot(make_thread(bump_count=900, bump_limit_flag=True)),
        snapshot(make_thread(bump_count=5000, bump_limit_flag=True)),
    )

    assert all(
        event.kind != BUMP_LIMIT_REACHED for result in results for event in result.events
    )


def test_api_bump_limit_flag_counts_as_reached() -> None:
    engine = CatalogDiffEngine(make_config(bump_limit=1000))

    result = engine.compute(snapshot(make_thread(bump_count=10, bump_limit_flag=True)), {})

    assert kinds(result) == [(NEW_MATCH, 123), (BUMP_LIMIT_REACHED, 123)]


def test_first_sight_notifies_by_default() -> None:
    engine = CatalogDiffEngine(make_config(near_prune_page=9))

    result = engine.compute(snapshot(make_thread(bump_count=400, page=10)), {})

    assert kinds(result) == [
        (NEW_MATCH, 123),
        (BUMP_LIMIT_REACHED, 123),
        (PAGE_ADVANCE, 123),
    ]


def test_first_sight_can_be_baselined() -> None:
    engine = CatalogDiffEngine(make_config(near_prune_page=9, notify_on_first_sight=False))

    _, (first, second) = run_cycles(
        engine,
        snapshot(make_thread(bump_count=400, page=10)),
        snapshot(make_thread(bump_count=401, page=10)),
    )

    assert kinds(first) == [(NEW_MATCH, 123)]
    assert first.state[123].bump_limit_notified is True
    assert first.state[123].near_prune_notified is True
    assert second.events == []


def test_only_matching_titles_are_tracked() -> None:
    engine = CatalogDiffEngine(make_config(title="foo & bar"))

    result = engine.compute(
        snapshot(
            make_thread(1, title="Foo &amp; Bar general"),
            make_thread(2, title="Unrelated"),
            make_thread(3, title="FOO & BAR"),
        ),
        {},
    )

    assert set(result.state) == {1, 3}
    assert kinds(result) == [(NEW_MATCH, 1), (NEW_MATCH, 3)]


def test_thread_leaving_filter_is_dropped() -> None:
    engine = CatalogDiffEngine(make_config())

    _, (_, renamed) = run_cycles(
        engine,
        snapshot(make_thread(title="Example Thread")),
        snapshot(make_thread(title="Renamed")),
    )

    assert kinds(renamed) == [(DISAPPEARED, 123)]
    assert renamed.state == {}


def test_prior_state_is_not_mutated() -> None:
    engine = CatalogDiffEngine(make_config())
    prior = {
        123: TrackedThread(
            id=123, title="Example Thread", last_page=1, last_bump_count=5
        ),
        456: TrackedThread(id=456, title="Example old", last_page=9, last_bump_count=1),
    }
    frozen = dict(prior)

    result = engine.compute(snapshot(make_thread(bump_count=310, page=3)), prior)

    assert prior == frozen
    assert result.state is not prior
    assert result.state[123] is not prior[123]
    assert kinds(result) == [(BUMP_LIMIT_REACHED, 123), (DISAPPEARED, 456)]


def test_disappeared_events_follow_thread_events_in_id_order() -> None:
    engine = CatalogDiffEngine(make_config())
    prior = {
        thread_id: TrackedThread(
            id=thread_id, title="Example", last_page=2, last_bump_count=0
        )
        for thread_id in (30, 10, 20)
    }

    result = engine.compute(snapshot(make_thread(5)), prior)

    assert kinds(result) == [
        (NEW_MATCH, 5),
        (DISAPPEARED, 10),
        (DISAPPEARED, 20),
        (DISAPPEARED, 30),
    ]


def test_duplicate_catalog_entries_are_ignored() -> None:
    engine = CatalogDiffEngine(make_config())

    result = engine.compute(snapshot(make_thread(page=1), make_thread(page=2)), {})

    assert kinds(result) == [(NEW_MATCH, 123)]
    assert result.state[123].last_page == 1


def _catalog(replies: object, page: int = 9) -> list[dict[str, object]]:
    return [
        {
            "page": page,
            "threads": [
                {"no": 123, "sub": "Example Thread", "replies": replies},
                {"no": 456, "sub": "Other", "replies": 1},
            ],
        }
    ]


def test_malformed_entry_keeps_tracked_thread() -> None:
    engine = CatalogDiffEngine(make_config())

    state, results = run_cycles(
        engine,
        parse_catalog(_catalog(320), "vg"),
        parse_catalog(_catalog("320x"), "vg"),
        parse_catalog(_catalog(321), "vg"),
    )

    assert [kinds(result) for result in results] == [
        [(NEW_MATCH, 123), (BUMP_LIMIT_REACHED, 123), (PAGE_ADVANCE, 123)],
        [],
        [],
    ]
    assert results[1].state[123] == results[0].state[123]
    assert state[123].last_bump_count == 321
    assert state[123].bump_limit_notified is True
    assert state[123].near_prune_notified is True


def test_unreadable_page_keeps_tracked_threads() -> None:
    engine = CatalogDiffEngine(make_config())
    good = parse_catalog(_catalog(5), "vg")
    broken_page = parse_catalog([{"page": "nine", "threads": []}, "garbage"], "vg")
    anonymous_entry = parse_catalog([{"page": 9, "threads": [{"sub": "no id"}]}], "vg")

    _, results = run_cycles(engine, good, broken_page, anonymous_entry, good)

    assert [kinds(result) for result in results[1:]] == [[], [], []]
    assert results[3].state[123].near_prune_notified is True


def test_unreadable_entry_does_not_hide_real_disappearance() -> None:
    engine = CatalogDiffEngine(make_config())
    tracked = {
        123: TrackedThread(id=123, title="Example Thread", last_page=2, last_bump_count=0),
        124: TrackedThread(id=124, title="Example Two", last_page=2, last_bump_count=0),
    }
    payload = [{"page": 2, "threads": [{"no": 123, "replies": "?"}]}]

    result = engine.compute(parse_catalog(payload, "vg"), tracked)

    assert kinds(result) == [(DISAPPEARED, 124)]
    assert result.state == {123: tracked[123]}
