"""Leaderboard ordering, ranks, duplicate detection and aggregate statistics.

Everything here is a pure function over a list of results: no I/O, no shared
state, and the same input list always produces the same output.

Ordering, strictly in this order:
    1. score, highest first
    2. time_taken, fastest first; a missing time counts as MISSING_TIME
    3. created_at, earliest submission first
Entries equal on all three keys keep their input order, so ranks are
positions in the ordered list and always run 1..n without gaps.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
import math
from typing import Iterable

from chapter_quiz.constants.quiz_constants import PODIUM_SIZE
from chapter_quiz.core.models import Result

MISSING_TIME: float = math.inf


@dataclass(slots=True, frozen=True)
class RankedResult:
    """A result with its 1-based position in the standings."""

    rank: int
    result: Result
    is_duplicate: bool = False


@dataclass(slots=True, frozen=True)
class ChapterAverage:
    chapter_id: str
    participants: int
    average_score: float


@dataclass(slots=True, frozen=True)
class ResultStats:
    """Descriptive aggregates shown next to the standings."""

    participant_count: int
    unique_participants: int
    average_score: float | None
    highest_score: int | None
    fastest_time: int | None
    submitted_today: int
    chapter_averages: list[ChapterAverage]
    top_chapter: str | None


def time_key(result: Result) -> float:
    return MISSING_TIME if result.time_taken is None else result.time_taken


def ordering_key(result: Result) -> tuple[int, float, datetime]:
    return (-result.score, time_key(result), result.created_at)


def order_results(results: Iterable[Result]) -> list[Result]:
    return sorted(results, key=ordering_key)


def rank_results(results: Iterable[Result]) -> list[RankedResult]:
    """Order results and attach ranks and duplicate flags."""
    ordered = order_results(results)
    duplicates = duplicate_phones(ordered)
    return [
        RankedResult(rank=index + 1, result=result, is_duplicate=_phone(result) in duplicates)
        for index, result in enumerate(ordered)
    ]


def top_n(results: Iterable[Result], limit: int) -> list[RankedResult]:
    if limit <= 0:
        return []
    return rank_results(results)[:limit]


def podium(results: Iterable[Result], size: int = PODIUM_SIZE) -> list[RankedResult]:
    """First places shown above the full standings."""
    return top_n(results, size)


def paginate(ranked: list[RankedResult], page: int, page_size: int) -> list[RankedResult]:
    """Return one 1-based page of an already ranked list."""
    if page < 1 or page_size <= 0:
        return []
    start = (page - 1) * page_size
    return ranked[start : start + page_size]


def page_count(item_count: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(item_count / page_size)


def find_standing(results: Iterable[Result], phone: str) -> RankedResult | None:
    """Return the best-placed entry belonging to a phone number."""
    phone = phone.strip()
    return next((entry for entry in rank_results(results) if _phone(entry.result) == phone), None)


def duplicate_phones(results: Iterable[Result]) -> set[str]:
    """Phones that appear on more than one result."""
    counts = Counter(_phone(result) for result in results if _phone(result))
    return {phone for phone, count in counts.items() if count > 1}


def flag_duplicates(results: Iterable[Result]) -> list[tuple[Result, bool]]:
    results = list(results)
    duplicates = duplicate_phones(results)
    return [(result, _phone(result) in duplicates) for result in results]


def best_attempts(results: Iterable[Result]) -> list[Result]:
    """Keep each participant's best result (max score, then min time), in standings order."""
    best: dict[str, Result] = {}
    for result in order_results(results):
        best.setdefault(_phone(result), result)
    return order_results(best.values())


def chapter_averages(results: Iterable[Result]) -> list[ChapterAverage]:
    totals: dict[str, int] = {}
    counts: dict[str, int] = {}
    for result in results:
        if not result.chapter_id:
            continue
        totals[result.chapter_id] = totals.get(result.chapter_id, 0) + result.score
        counts[result.chapter_id] = counts.get(result.chapter_id, 0) + 1
    return [
        ChapterAverage(
            chapter_id=chapter_id,
            participants=counts[chapter_id],
            average_score=round(totals[chapter_id] / counts[chapter_id], 2),
        )
        for chapter_id in sorted(totals)
    ]


def summarize(results: Iterable[Result], today: date | None = None) -> ResultStats:
    results = list(results)
    averages = chapter_averages(results)
    fastest = min((time_key(result) for result in results), default=MISSING_TIME)
    top_chapter = None
    if averages:
        top_chapter = min(averages, key=lambda entry: (-entry.average_score, entry.chapter_id)).chapter_id
    submitted_today = 0
    if today is not None:
        submitted_today = sum(1 for result in results if result.created_at.date() == today)
    return ResultStats(
        participant_count=len(results),
        unique_participants=len({_phone(result) for result in results if _phone(result)}),
        average_score=round(sum(result.score for result in results) / len(results), 2) if results else None,
        highest_score=max((result.score for result in results), default=None),
        fastest_time=None if fastest == MISSING_TIME else int(fastest),
        submitted_today=submitted_today,
        chapter_averages=averages,
        top_chapter=top_chapter,
    )


def format_time_taken(seconds: int | None) -> str:
    if seconds is None:
        return "—"
    minutes, remainder = divmod(seconds, 60)
    return f"{minutes}m {remainder}s" if minutes > 0 else f"{remainder}s"


def _phone(result: Result) -> str:
    return str(result.phone or "").strip()

