"""Tests for profile idempotency matching."""

from __future__ import annotations

from src.reconcile.base import ProfileDocument
from src.reconcile.sync.dedup import assign_existing_id, find_matching_profile


def _doc(mills: str, id: str | None = None) -> ProfileDocument:
    return ProfileDocument(default_profile="Standard", start_date=None, units="mg/dL", mills=mills, id=id)


class TestAssignExistingId:
    def test_matching_key_reuses_remote_id(self) -> None:
        rebuilt = _doc("1772438400000")
        existing = [_doc("1", id="aaa"), _doc("1772438400000", id="bbb")]
        assert assign_existing_id(rebuilt, existing).id == "bbb"

    def test_non_matching_key_leaves_id_unset(self) -> None:
        rebuilt = _doc("1772438400000")
        assert assign_existing_id(rebuilt, [_doc("999", id="aaa")]).id is None

    def test_stale_local_id_cleared_without_match(self) -> None:
        rebuilt = _doc("5", id="local")
        assert assign_existing_id(rebuilt, []).id is None

    def test_stored_profile_without_id_is_ignored(self) -> None:
        assert find_matching_profile(_doc("5"), [_doc("5")]) is None

    def test_first_match_wins(self) -> None:
        match = find_matching_profile(_doc("5"), [_doc("5", id="x"), _doc("5", id="y")])
        assert match.id == "x"
