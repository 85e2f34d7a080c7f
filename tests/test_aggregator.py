"""Tests for name normalization, candidate aggregation, and source badges."""

import pytest

from medcheck.aggregator import aggregate
from medcheck.attribution import badges, primary_source
from medcheck.models import Provenance
from medcheck.normalizer import normalize, normalize_all

# --- normalize ---


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Warfarin", "warfarin"),
        ("  ASPIRIN \t", "aspirin"),
        ("Amoxicillin Clavulanate", "amoxicillin clavulanate"),
        ("", ""),
        ("   ", ""),
        (None, ""),
    ],
)
def test_normalize(raw: str | None, expected: str) -> None:
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", ["Warfarin", "  Mixed Case  ", "İstanbul", "ß", "\n"])
def test_normalize_is_idempotent(raw: str) -> None:
    once = normalize(raw)
    assert normalize(once) == once


def test_normalize_all_drops_empty_names() -> None:
    assert normalize_all(["Aspirin", " ", "", "WARFARIN"]) == ["aspirin", "warfarin"]


# --- aggregate ---


def test_aggregate_dedupes_across_sources() -> None:
    """Same drug spelled differently in two sources is one active key."""
    result = aggregate(manual=["Warfarin"], ai_suggested=["  warfarin "])
    assert result.active == ("warfarin",)


def test_aggregate_keeps_first_seen_order() -> None:
    result = aggregate(
        manual=["Lisinopril"],
        ai_suggested=["Aspirin"],
        logic_suggested=["lisinopril", "Metformin"],
        ad_hoc=["omeprazole"],
    )
    assert result.active == ("lisinopril", "aspirin", "metformin", "omeprazole")


def test_aggregate_accumulates_provenance() -> None:
    result = aggregate(
        manual=["Aspirin"],
        ai_suggested=["ASPIRIN"],
        logic_suggested=["aspirin"],
        ad_hoc=["Ibuprofen"],
    )
    assert result.sources["aspirin"] == {
        Provenance.MANUAL,
        Provenance.AI_SUGGESTED,
        Provenance.LOGIC_SUGGESTED,
    }
    assert result.sources["ibuprofen"] == {Provenance.AD_HOC}


def test_aggregate_drops_empty_names() -> None:
    result = aggregate(manual=["", "  "], ai_suggested=["Aspirin"])
    assert result.active == ("aspirin",)
    assert "" not in result.sources


def test_removed_drug_is_excluded_from_every_source() -> None:
    result = aggregate(
        manual=["Warfarin"],
        ai_suggested=["warfarin"],
        logic_suggested=["WARFARIN"],
        ad_hoc=["warfarin", "Aspirin"],
        removed={"warfarin"},
    )
    assert "warfarin" not in result.active
    assert "warfarin" not in result.sources
    assert result.active == ("aspirin",)


def test_removed_names_are_normalized() -> None:
    result = aggregate(manual=["Warfarin"], removed={" Warfarin "})
    assert result.is_empty


def test_provenance_is_recomputed_from_current_inputs() -> None:
    """A drug listed by AI in one call and only by Manual in the next is Manual only."""
    first = aggregate(manual=["aspirin"], ai_suggested=["aspirin"])
    second = aggregate(manual=["aspirin"])
    assert first.sources["aspirin"] == {Provenance.MANUAL, Provenance.AI_SUGGESTED}
    assert second.sources["aspirin"] == {Provenance.MANUAL}


def test_empty_inputs_give_empty_aggregation() -> None:
    result = aggregate()
    assert result.is_empty
    assert result.sources == {}


# --- attribution ---


def test_badges_follow_priority_order() -> None:
    provs = {Provenance.AD_HOC, Provenance.MANUAL, Provenance.AI_SUGGESTED}
    assert badges(provs) == ["AI", "Manual", "AdHoc"]


def test_primary_source_prefers_ai_then_logic_then_manual() -> None:
    assert primary_source({Provenance.MANUAL, Provenance.LOGIC_SUGGESTED}) == (
        Provenance.LOGIC_SUGGESTED
    )
    assert primary_source({Provenance.MANUAL, Provenance.AD_HOC}) == Provenance.MANUAL
    assert primary_source(set()) is None


def test_primary_source_can_be_restricted() -> None:
    assert primary_source({Provenance.AD_HOC}, among={Provenance.MANUAL}) is None
