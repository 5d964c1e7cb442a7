"""Tests for repository/date filters and per-category caps."""
from datetime import datetime, timezone

import pytest

from analyzer.contribution_filter import (
    ContributionCaps,
    apply_filters,
    filter_by_date,
    filter_by_repositories,
    parse_timestamp,
    resolve_date_window,
    truncate,
)
from analyzer.models import Commit, ContributionSnapshot
from core.errors import ValidationError


def _commit(sha, repository, date="2024-01-01T00:00:00Z"):
    return Commit(sha=sha, message=f"commit {sha}", date=date, repository=repository)


class TestRepositoryFilter:
    def test_keeps_only_matching_repository(self):
        snapshot = ContributionSnapshot.build(
            commits=[_commit("1", "repoA"), _commit("2", "repoA"), _commit("3", "repoB")]
        )

        filtered = filter_by_repositories(snapshot, ["repoA"])

        assert [c.sha for c in filtered.commits] == ["1", "2"]
        assert filtered.total_contributions == 2

    def test_match_is_case_insensitive_substring(self, sample_snapshot):
        filtered = filter_by_repositories(sample_snapshot, ["API"])

        assert {c.repository for c in filtered.commits} == {"octo/api"}
        assert [r.name for r in filtered.repositories] == ["octo/api"]
        assert len(filtered.pull_requests) == 1
        assert filtered.issues == ()
        assert len(filtered.releases) == 1
        assert filtered.total_contributions == 3

    @pytest.mark.parametrize("names", [None, [], ["", "  "]])
    def test_empty_names_leave_snapshot_untouched(self, sample_snapshot, names):
        assert filter_by_repositories(sample_snapshot, names) is sample_snapshot

    def test_does_not_mutate_input(self, sample_snapshot):
        before = sample_snapshot.to_dict()
        filter_by_repositories(sample_snapshot, ["web"])
        assert sample_snapshot.to_dict() == before


class TestDateFilter:
    def test_explicit_window_is_inclusive(self, sample_snapshot):
        filtered = filter_by_date(
            sample_snapshot,
            start_date="2024-03-10T12:00:00Z",
            end_date="2024-04-02T10:00:00Z",
        )

        assert [c.sha for c in filtered.commits] == ["a1"]
        assert [p.number for p in filtered.pull_requests] == [7]
        assert filtered.issues == ()
        assert filtered.releases == ()
        assert filtered.total_contributions == 2

    def test_date_only_values_are_midnight_utc(self, sample_snapshot):
        filtered = filter_by_date(sample_snapshot, start_date="2024-05-01")

        assert [c.sha for c in filtered.commits] == ["b2"]
        assert len(filtered.releases) == 1

    def test_last_n_days_takes_precedence(self, sample_snapshot):
        now = datetime(2024, 6, 2, tzinfo=timezone.utc)

        filtered = filter_by_date(
            sample_snapshot,
            start_date="2020-01-01",
            last_n_days=40,
            now=now,
        )

        assert [c.sha for c in filtered.commits] == ["b2"]
        assert filtered.pull_requests == ()
        assert len(filtered.releases) == 1

    def test_repositories_are_not_date_filtered(self, sample_snapshot):
        filtered = filter_by_date(sample_snapshot, end_date="2000-01-01")

        assert filtered.total_contributions == 0
        assert len(filtered.repositories) == 2

    def test_no_window_returns_same_snapshot(self, sample_snapshot):
        assert filter_by_date(sample_snapshot) is sample_snapshot

    def test_unparseable_item_dates_are_dropped(self):
        snapshot = ContributionSnapshot.build(commits=[_commit("x", "r", date="not a date")])
        assert filter_by_date(snapshot, start_date="2020-01-01").commits == ()

    def test_invalid_filter_date_raises(self, sample_snapshot):
        with pytest.raises(ValidationError):
            filter_by_date(sample_snapshot, start_date="yesterday")


class TestResolveWindow:
    def test_last_n_days(self):
        now = datetime(2024, 6, 30, tzinfo=timezone.utc)
        start, end = resolve_date_window(last_n_days=30, now=now)

        assert end == now
        assert start == datetime(2024, 5, 31, tzinfo=timezone.utc)

    def test_naive_timestamps_become_utc(self):
        assert parse_timestamp("2024-01-02T03:04:05").tzinfo == timezone.utc
        assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value,microsecond",
        [
            ("2024-01-02T03:04:05.1Z", 100000),
            ("2024-01-02T03:04:05.12345Z", 123450),
            ("2024-01-02T03:04:05.1234567Z", 123456),
        ],
    )
    def test_any_fraction_length(self, value, microsecond):
        assert parse_timestamp(value) == datetime(2024, 1, 2, 3, 4, 5, microsecond, tzinfo=timezone.utc)

    def test_github_style_fraction_is_kept_in_window(self):
        snapshot = ContributionSnapshot.build(commits=[_commit("f", "r", date="2024-03-01T10:00:00.1234567Z")])

        filtered = filter_by_date(snapshot, start_date="2024-03-01", end_date="2024-03-02")

        assert [c.sha for c in filtered.commits] == ["f"]


class TestApplyAndTruncate:
    def test_filters_compose(self, sample_snapshot):
        filtered = apply_filters(
            sample_snapshot,
            repository_names=["octo/api"],
            start_date="2024-04-01",
        )

        assert filtered.commits == ()
        assert [p.number for p in filtered.pull_requests] == [7]
        assert len(filtered.releases) == 1
        assert filtered.total_contributions == 2

    def test_truncate_caps_each_category(self):
        snapshot = ContributionSnapshot.build(commits=[_commit(str(i), "r") for i in range(30)])

        capped = truncate(snapshot, ContributionCaps(max_commits=5))

        assert [c.sha for c in capped.commits] == ["0", "1", "2", "3", "4"]
        assert capped.total_contributions == 5

    def test_default_caps(self):
        caps = ContributionCaps()
        assert (caps.max_commits, caps.max_prs, caps.max_issues, caps.max_releases) == (20, 10, 10, 5)


class TestFilterOrder:
    @pytest.mark.parametrize(
        "names,window",
        [
            (["octo/api"], {"start_date": "2024-04-01"}),
            (["web"], {"end_date": "2024-03-01"}),
            (["octo"], {"start_date": "2024-03-01", "end_date": "2024-05-31"}),
            (["missing"], {"start_date": "2024-01-01"}),
        ],
    )
    def test_repository_and_date_filters_commute(self, sample_snapshot, names, window):
        repo_first = filter_by_date(filter_by_repositories(sample_snapshot, names), **window)
        date_first = filter_by_repositories(filter_by_date(sample_snapshot, **window), names)

        assert repo_first == date_first
        assert repo_first.total_contributions == date_first.total_contributions
