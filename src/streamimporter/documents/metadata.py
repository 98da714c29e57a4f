"""Conversion of match metadata elements into match documents.

Team, player, and color associations arrive as embedded map strings
written by the metadata producer. The grammar is private to that
producer and must be read exactly as it is written:

* records are separated by ``%``;
* each record is enclosed in one bracket character on either side
  (``[`` and ``]``), which is stripped without being checked;
* the remaining text is split into positional fields on ``:``.

Examples::

    team rename map    [home:A:FC Home]%[away:B:FC Away]
    object rename map  [1:A1:Alice]%[2:B7:Bob]%[0:BALL:Ball]
    team color map     [A:#ff0000]%[B:#0000ff]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from streamimporter.exceptions import MetadataFormatError, MissingFieldError

if TYPE_CHECKING:
    from streamimporter.elements.schemas import MatchMetadataElement

logger = logging.getLogger(__name__)

RECORD_SEPARATOR: str = "%"
FIELD_SEPARATOR: str = ":"
NON_PLAYER_ID: str = "BALL"

_DATE_FORMAT: str = "%Y-%m-%dT%H:%M:%SZ"


def parse_embedded_map(text: str | None) -> list[list[str]]:
    """Split an embedded map string into records of positional fields.

    Trailing empty records and trailing empty fields of a record are
    dropped, matching the producer's own reader.

    Args:
        text: The embedded map, or ``None``.

    Returns:
        One list of fields per record. Empty for ``None`` or ``""``.

    Raises:
        MetadataFormatError: If a record is too short to carry its
            enclosing brackets.
    """
    if not text:
        return []

    parts = text.split(RECORD_SEPARATOR)
    while parts and parts[-1] == "":
        parts.pop()

    records: list[list[str]] = []
    for part in parts:
        if len(part) < 2:
            msg = f"Embedded map record {part!r} is not enclosed in brackets"
            raise MetadataFormatError(msg)
        fields = part[1:-1].split(FIELD_SEPARATOR)
        while len(fields) > 1 and fields[-1] == "":
            fields.pop()
        records.append(fields)
    return records


def _field(record: list[str], index: int, map_name: str) -> str:
    """Return field *index* of *record* or raise MetadataFormatError."""
    try:
        return record[index]
    except IndexError:
        msg = f"{map_name} record {FIELD_SEPARATOR.join(record)!r} has no field {index}"
        raise MetadataFormatError(msg) from None


@dataclass(slots=True)
class TeamRoster:
    """Home and away teams and players of one match."""

    home_team_id: str | None = None
    away_team_id: str | None = None
    home_team_name: str | None = None
    away_team_name: str | None = None
    home_player_ids: list[str] = field(default_factory=list)
    away_player_ids: list[str] = field(default_factory=list)
    home_player_names: list[str] = field(default_factory=list)
    away_player_names: list[str] = field(default_factory=list)
    home_team_color: str | None = None
    away_team_color: str | None = None


def parse_roster(
    team_rename_map: str | None,
    object_rename_map: str | None,
    team_color_map: str | None,
) -> TeamRoster:
    """Resolve teams, players, and colors from the three embedded maps.

    Players are assigned to the team whose id prefixes their player
    id; the ball and players matching neither team are skipped.

    Args:
        team_rename_map: ``[home|away:teamId:teamName]`` records.
        object_rename_map: ``[objectId:playerId:playerName]`` records.
        team_color_map: ``[teamId:color]`` records.

    Returns:
        The resolved :class:`TeamRoster`.

    Raises:
        MetadataFormatError: If a record lacks a required field.
    """
    roster = TeamRoster()

    for record in parse_embedded_map(team_rename_map):
        side = record[0]
        if side == "home":
            roster.home_team_id = _field(record, 1, "team rename map")
            roster.home_team_name = _field(record, 2, "team rename map")
        elif side == "away":
            roster.away_team_id = _field(record, 1, "team rename map")
            roster.away_team_name = _field(record, 2, "team rename map")

    for record in parse_embedded_map(object_rename_map):
        player_id = _field(record, 1, "object rename map")
        if player_id == NON_PLAYER_ID:
            continue
        if roster.home_team_id is not None and player_id.startswith(roster.home_team_id):
            roster.home_player_ids.append(player_id)
            roster.home_player_names.append(_field(record, 2, "object rename map"))
        elif roster.away_team_id is not None and player_id.startswith(roster.away_team_id):
            roster.away_player_ids.append(player_id)
            roster.away_player_names.append(_field(record, 2, "object rename map"))
        else:
            logger.debug("Player %s belongs to neither team -- skipping", player_id)

    for record in parse_embedded_map(team_color_map):
        team_id = record[0]
        if team_id == roster.home_team_id:
            roster.home_team_color = _field(record, 1, "team color map")
        elif team_id == roster.away_team_id:
            roster.away_team_color = _field(record, 1, "team color map")

    return roster


def format_match_date(match_start_unix_ts: int | None) -> str | None:
    """Render a ms-since-epoch start time as ``YYYY-MM-DDTHH:MM:SSZ`` (UTC)."""
    if match_start_unix_ts is None:
        return None
    start = datetime.fromtimestamp(match_start_unix_ts / 1000.0, tz=timezone.utc)
    return start.strftime(_DATE_FORMAT)


@dataclass(frozen=True, slots=True)
class MatchDocument:
    """Destination document of the ``matches`` collection."""

    match_id: str
    sport: str | None
    field_size: list[float | None]
    date: str | None
    competition: str | None
    venue: str | None
    roster: TeamRoster
    video_path: str | None

    def to_document(self) -> dict[str, Any]:
        """Return the document as inserted into MongoDB."""
        roster = self.roster
        return {
            "matchId": self.match_id,
            "sport": self.sport,
            "fieldSize": list(self.field_size),
            "date": self.date,
            "competition": self.competition,
            "venue": self.venue,
            "homeTeamId": roster.home_team_id,
            "awayTeamId": roster.away_team_id,
            "homePlayerIds": list(roster.home_player_ids),
            "awayPlayerIds": list(roster.away_player_ids),
            "homeTeamName": roster.home_team_name,
            "awayTeamName": roster.away_team_name,
            "homePlayerNames": list(roster.home_player_names),
            "awayPlayerNames": list(roster.away_player_names),
            "videoPath": self.video_path,
            "homeTeamColor": roster.home_team_color,
            "awayTeamColor": roster.away_team_color,
        }


def build_match_document(element: MatchMetadataElement) -> MatchDocument:
    """Convert a match metadata element into its ``matches`` document.

    Args:
        element: Decoded metadata element.

    Returns:
        The match document.

    Raises:
        MissingFieldError: If the element has no entity id.
        MetadataFormatError: If an embedded map is malformed.
    """
    if element.entity_id is None:
        msg = "matchMetadata element has no entity id"
        raise MissingFieldError(msg)

    return MatchDocument(
        match_id=element.entity_id,
        sport=element.sport,
        field_size=[element.field_length, element.field_width],
        date=format_match_date(element.match_start_unix_ts),
        competition=element.competition,
        venue=element.venue,
        roster=parse_roster(
            element.team_rename_map,
            element.object_rename_map,
            element.team_color_map,
        ),
        video_path=element.video_path,
    )
