"""Tests for match metadata documents and the embedded map grammar.

Validates record splitting and bracket stripping, home/away team and
player resolution, team colors, date formatting, and the shape of the
``matches`` document.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from streamimporter.documents.metadata import (
    build_match_document,
    format_match_date,
    parse_embedded_map,
    parse_roster,
)
from streamimporter.exceptions import MetadataFormatError, MissingFieldError

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamimporter.elements.schemas import MatchMetadataElement

# ------------------------------------------------------------------
# Grammar
# ------------------------------------------------------------------


class TestParseEmbeddedMap:
    """Records split on '%', lose their brackets, then split on ':'."""

    def test_records_and_fields(self) -> None:
        assert parse_embedded_map("[home:A:FC Home]%[away:B:FC Away]") == [
            ["home", "A", "FC Home"],
            ["away", "B", "FC Away"],
        ]

    def test_enclosing_characters_are_not_checked(self) -> None:
        assert parse_embedded_map("(a:b)%{c:d}") == [["a", "b"], ["c", "d"]]

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty(self, text: str | None) -> None:
        assert parse_embedded_map(text) == []

    def test_trailing_empty_fields_dropped(self) -> None:
        assert parse_embedded_map("[a:b::]") == [["a", "b"]]

    def test_inner_empty_fields_kept(self) -> None:
        assert parse_embedded_map("[a::c]") == [["a", "", "c"]]

    def test_trailing_separator_ignored(self) -> None:
        assert parse_embedded_map("[home:A:FC Home]%[away:B:FC Away]%") == [
            ["home", "A", "FC Home"],
            ["away", "B", "FC Away"],
        ]

    def test_only_separators(self) -> None:
        assert parse_embedded_map("%%") == []

    def test_inner_empty_record_rejected(self) -> None:
        with pytest.raises(MetadataFormatError):
            parse_embedded_map("[a:b]%%[c:d]")

    def test_record_without_brackets(self) -> None:
        with pytest.raises(MetadataFormatError):
            parse_embedded_map("[a:b]%x")


# ------------------------------------------------------------------
# Roster
# ------------------------------------------------------------------


class TestParseRoster:
    """Teams come from the rename map, players are split by id prefix."""

    def test_full_roster(self) -> None:
        roster = parse_roster(
            "[home:A:FC Home]%[away:B:FC Away]",
            "[1:A1:Alice]%[2:B7:Bob]%[3:A2:Anna]%[0:BALL:Ball]",
            "[B:#0000ff]%[A:#ff0000]",
        )
        assert roster.home_team_id == "A"
        assert roster.home_team_name == "FC Home"
        assert roster.away_team_id == "B"
        assert roster.away_team_name == "FC Away"
        assert roster.home_player_ids == ["A1", "A2"]
        assert roster.home_player_names == ["Alice", "Anna"]
        assert roster.away_player_ids == ["B7"]
        assert roster.away_player_names == ["Bob"]
        assert roster.home_team_color == "#ff0000"
        assert roster.away_team_color == "#0000ff"

    def test_maps_with_trailing_separator(self) -> None:
        roster = parse_roster("[home:A:H]%[away:B:W]%", "[1:A1:Alice]%", "[A:red]%")
        assert roster.home_team_id == "A"
        assert roster.away_team_id == "B"
        assert roster.home_player_ids == ["A1"]
        assert roster.home_team_color == "red"

    def test_ball_excluded(self) -> None:
        roster = parse_roster("[home:B:Ballers]%[away:C:Cats]", "[0:BALL:Ball]%[1:B1:Bo]", None)
        assert roster.home_player_ids == ["B1"]

    def test_unassigned_player_skipped(self) -> None:
        roster = parse_roster("[home:A:H]%[away:B:W]", "[9:X9:Xavier]", None)
        assert roster.home_player_ids == []
        assert roster.away_player_ids == []

    def test_unknown_side_ignored(self) -> None:
        roster = parse_roster("[referee:R:Ref]%[home:A:H]", None, None)
        assert roster.home_team_id == "A"
        assert roster.away_team_id is None

    def test_missing_maps(self) -> None:
        roster = parse_roster(None, None, None)
        assert roster.home_team_id is None
        assert roster.home_player_ids == []
        assert roster.home_team_color is None

    def test_team_record_without_name(self) -> None:
        with pytest.raises(MetadataFormatError, match="team rename map"):
            parse_roster("[home:A]", None, None)

    def test_player_record_without_id(self) -> None:
        with pytest.raises(MetadataFormatError, match="object rename map"):
            parse_roster("[home:A:H]", "[1]", None)


# ------------------------------------------------------------------
# Match document
# ------------------------------------------------------------------


class TestFormatMatchDate:
    def test_utc_iso(self) -> None:
        assert format_match_date(1510916400000) == "2017-11-17T11:00:00Z"

    def test_sub_second_truncated(self) -> None:
        assert format_match_date(999) == "1970-01-01T00:00:00Z"

    def test_none(self) -> None:
        assert format_match_date(None) is None


class TestBuildMatchDocument:
    """The matches document carries every metadata attribute."""

    def test_document_shape(self, make_metadata: Callable[..., MatchMetadataElement]) -> None:
        document = build_match_document(make_metadata()).to_document()
        assert document == {
            "matchId": "M1",
            "sport": "football",
            "fieldSize": [105.0, 68.0],
            "date": "2017-11-17T11:00:00Z",
            "competition": "Friendly",
            "venue": "Stadium",
            "homeTeamId": "A",
            "awayTeamId": "B",
            "homePlayerIds": ["A1"],
            "awayPlayerIds": ["B7"],
            "homeTeamName": "FC Home",
            "awayTeamName": "FC Away",
            "homePlayerNames": ["Alice"],
            "awayPlayerNames": ["Bob"],
            "videoPath": "/videos/m1.mp4",
            "homeTeamColor": "#ff0000",
            "awayTeamColor": "#0000ff",
        }

    def test_no_reference_values_in_document(
        self, make_metadata: Callable[..., MatchMetadataElement]
    ) -> None:
        document = build_match_document(make_metadata()).to_document()
        assert "ts" not in document
        assert "videoTs" not in document

    def test_malformed_map(self, make_metadata: Callable[..., MatchMetadataElement]) -> None:
        with pytest.raises(MetadataFormatError):
            build_match_document(make_metadata(team_color_map="[A:#ff0000]%x"))

    def test_missing_entity_id(self, make_metadata: Callable[..., MatchMetadataElement]) -> None:
        element = make_metadata()
        with pytest.raises(MissingFieldError):
            build_match_document(replace(element, entity_id=None))
