from __future__ import annotations

from datetime import datetime

import pytest

from postcache.domain.filters import (
    PostFilters,
    apply_filters,
    format_fetch_date,
    parse_fetch_date,
    parse_filter_date,
)
from postcache.domain.models import Post


def _posts() -> list[Post]:
    return [
        Post(user_id=1, id=1, title="Alpha news", body="first body", fetch_date="2024-05-01 09:00:00"),
        Post(user_id=1, id=2, title="beta", body="Second BODY", fetch_date="2024-05-02 09:00:00"),
        Post(user_id=2, id=3, title="gamma ALPHA", body="third", fetch_date=None),
        Post(user_id=2, id=4, title="delta", body="fourth", fetch_date="garbage"),
    ]


def test_no_filters_returns_everything_in_order() -> None:
    posts = _posts()
    assert [p.id for p in apply_filters(posts, None)] == [1, 2, 3, 4]
    assert [p.id for p in apply_filters(posts, PostFilters())] == [1, 2, 3, 4]


def test_id_bounds_are_inclusive() -> None:
    out = apply_filters(_posts(), PostFilters(min_id=2, max_id=3))
    assert [p.id for p in out] == [2, 3]


def test_text_filters_are_case_insensitive_and_blank_is_ignored() -> None:
    assert [p.id for p in apply_filters(_posts(), PostFilters(title_contains="alpha"))] == [1, 3]
    assert [p.id for p in apply_filters(_posts(), PostFilters(body_contains="body"))] == [1, 2]
    assert len(apply_filters(_posts(), PostFilters(title_contains="   "))) == 4


def test_fetch_date_after_is_strict_and_excludes_undated() -> None:
    out = apply_filters(_posts(), PostFilters(fetch_date_after="2024-05-01T09:00:00"))
    assert [p.id for p in out] == [2]


def test_unparseable_filter_date_disables_only_that_filter() -> None:
    out = apply_filters(_posts(), PostFilters(min_id=2, fetch_date_after="yesterday"))
    assert [p.id for p in out] == [2, 3, 4]


def test_filters_compose_with_and() -> None:
    filters = PostFilters(min_id=1, max_id=3, title_contains="alpha", body_contains="first")
    assert [p.id for p in apply_filters(_posts(), filters)] == [1]


def test_date_helpers() -> None:
    assert parse_filter_date("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10, 0, 0)
    assert parse_filter_date("  ") is None
    with pytest.raises(ValueError):
        parse_filter_date("05/01/2024")
    assert parse_fetch_date("2024-05-01 10:00:00") == datetime(2024, 5, 1, 10, 0, 0)
    assert parse_fetch_date("2024-05-01T10:00:00") is None
    assert format_fetch_date(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"
