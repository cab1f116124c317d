"""
Item Scheduler

Ranks a learner's item history into due and weak lists and composes the
item draw for a new session.

Selection composition (over the candidate pool):
    ~60% due items    (next review date reached)
    ~25% weak items   (lowest historical accuracy, excluding chosen due items)
    remainder         random fill from the rest of the pool

Due and weak picks are front-loaded; each group is shuffled internally.

Usage:
    from app.services.learning.item_scheduler import compose_selection, select_hints

    hints = select_hints(progress_rows, today)
    items = compose_selection(pool, hints, count=10, rng=random.Random(7))
"""

import random
from datetime import date
from typing import Iterable

from app.models.learning import CourseItem, ItemProgressState, SelectionHints
from app.rounding import round_half_up

DUE_SHARE = 0.6
WEAK_SHARE = 0.25
DEFAULT_HINT_LIMIT = 20


def select_hints(
    progress: Iterable[ItemProgressState],
    today: date,
    limit: int = DEFAULT_HINT_LIMIT,
) -> SelectionHints:
    """
    Rank item progress into due and weak item ids.

    Due items have no next review date or one on/before today, ordered by
    due date ascending (unscheduled first) then error count descending.
    Weak items are every tracked item ordered by accuracy ascending then
    error count descending, regardless of due date.

    Args:
        progress: Item progress rows for one learner/language/category
        today: Current UTC date
        limit: Cap for each list

    Returns:
        SelectionHints with both ranked lists
    """
    rows = list(progress)

    due = [
        row
        for row in rows
        if row.next_due_date is None or row.next_due_date <= today
    ]
    due.sort(
        key=lambda row: (
            row.next_due_date is not None,
            row.next_due_date or date.min,
            -row.error_count,
        )
    )

    weak = sorted(rows, key=lambda row: (row.accuracy, -row.error_count))

    return SelectionHints(
        due_item_ids=[row.item_id for row in due[:limit]],
        weak_item_ids=[row.item_id for row in weak[:limit]],
    )


def _shuffled(items: list, rng: random.Random) -> list:
    copy = list(items)
    rng.shuffle(copy)
    return copy


def compose_selection(
    pool: list[CourseItem],
    hints: SelectionHints,
    count: int,
    rng: random.Random,
) -> list[CourseItem]:
    """
    Choose ``min(count, len(pool))`` distinct items from the pool.

    Args:
        pool: Candidate items (already level filtered)
        hints: Due/weak rankings for the learner
        count: Requested number of items
        rng: Random source for the shuffles

    Returns:
        Selected items in presentation order
    """
    target = min(count, len(pool))
    due_target = max(0, min(target, round_half_up(target * DUE_SHARE)))
    weak_target = max(0, min(target - due_target, round_half_up(target * WEAK_SHARE)))

    due_ids = set(hints.due_item_ids)
    weak_ids = set(hints.weak_item_ids)

    due_items = _shuffled([item for item in pool if item.id in due_ids], rng)[:due_target]
    selected_ids = {item.id for item in due_items}

    weak_items = _shuffled(
        [item for item in pool if item.id in weak_ids and item.id not in selected_ids],
        rng,
    )[:weak_target]
    selected_ids.update(item.id for item in weak_items)

    remaining = _shuffled([item for item in pool if item.id not in selected_ids], rng)

    return (due_items + weak_items + remaining)[:target]
