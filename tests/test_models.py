"""Unit tests for match parsing, role normalization and parsing helpers.

Test Strategy:
1. Well-formed EA records parse into Match with two participants
2. Records with a bad id, participant count or goals raise MalformedRecord
3. Player stats tolerate missing/non-numeric values
4. Role normalization by numeric code range and by label substring
"""
import pytest

from conftest import make_match, player
from proclubs.models.enums import MatchOutcome, Role
from proclubs.models.match import MalformedRecord, parse_match
from proclubs.utils.misc_utils import chunked, normalize_match_id, parse_int
from proclubs.utils.roles import normalize_role


class TestParseMatch:
    """Test suite for parse_match."""

    def test_parses_well_formed_match(self):
        """Should keep participant order and convert string goals."""
        raw = make_match(123, home="X", away="Y", home_goals=3, away_goals=1)
        match = parse_match(raw)

        assert match.match_id == "123"
        assert match.participants == ["X", "Y"]
        assert match.home.goals == 3
        assert match.away.goals == 1
        assert match.outcomes() == (MatchOutcome.WIN, MatchOutcome.LOSS)

    def test_equal_goals_is_draw_for_both(self):
        match = parse_match(make_match("m", home_goals=2, away_goals=2))
        assert match.outcomes() == (MatchOutcome.DRAW, MatchOutcome.DRAW)

    def test_missing_timestamp_is_none(self):
        match = parse_match(make_match("m", timestamp=None))
        assert match.timestamp is None

    def test_rejects_missing_id(self):
        raw = make_match(None)
        with pytest.raises(MalformedRecord):
            parse_match(raw)

    def test_rejects_wrong_participant_count(self):
        raw = make_match("m")
        raw["clubs"]["Z"] = {"goals": "0"}
        with pytest.raises(MalformedRecord):
            parse_match(raw)

        raw["clubs"] = {"X": {"goals": "1"}}
        with pytest.raises(MalformedRecord):
            parse_match(raw)

    def test_rejects_missing_or_unparseable_goals(self):
        raw = make_match("m")
        del raw["clubs"]["Y"]["goals"]
        with pytest.raises(MalformedRecord):
            parse_match(raw)

        raw["clubs"]["Y"]["goals"] = "three"
        with pytest.raises(MalformedRecord):
            parse_match(raw)

    def test_rejects_non_object(self):
        with pytest.raises(MalformedRecord):
            parse_match(["not", "a", "match"])

    def test_player_stats_default_to_zero(self):
        """Non-numeric or missing stats count as zero rather than failing the match."""
        raw = make_match(
            "m",
            players={"X": {"p1": {"playername": "Ace", "goals": "x", "pos": "goalkeeper"}}},
        )
        match = parse_match(raw)
        stats = match.players["X"]["p1"]

        assert stats.name == "Ace"
        assert stats.goals == 0
        assert stats.assists == 0
        assert stats.position == "goalkeeper"

    def test_display_name_from_details(self):
        raw = make_match("m")
        raw["clubs"]["X"]["details"] = {"name": "Club X"}
        assert parse_match(raw).clubs["X"].name == "Club X"

    def test_opponent_of(self):
        match = parse_match(make_match("m", players={"X": {"p": player("A", goals=1)}}))
        assert match.opponent_of("X").club_id == "Y"
        assert match.opponent_of("Y").club_id == "X"


class TestHelpers:
    def test_normalize_match_id(self):
        assert normalize_match_id(" 42 ") == "42"
        assert normalize_match_id(42) == "42"
        assert normalize_match_id(42.0) == "42"
        assert normalize_match_id("") is None
        assert normalize_match_id(None) is None

    def test_parse_int(self):
        assert parse_int("7") == 7
        assert parse_int(7) == 7
        assert parse_int("7.5") is None
        assert parse_int(None, default=0) == 0
        assert parse_int(True) is None

    def test_chunked(self):
        assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]
        assert list(chunked([], 3)) == []


class TestNormalizeRole:
    """Test suite for position normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, Role.GOALKEEPER),
            ("0", Role.GOALKEEPER),
            (5, Role.DEFENDER),
            (14, Role.MIDFIELDER),
            (25, Role.FORWARD),
            (99, Role.UNKNOWN),
        ],
    )
    def test_numeric_codes(self, value, expected):
        assert normalize_role(value) is expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("goalkeeper", Role.GOALKEEPER),
            ("GK", Role.GOALKEEPER),
            ("defender", Role.DEFENDER),
            ("Defensive Midfielder", Role.MIDFIELDER),
            ("midfielder", Role.MIDFIELDER),
            ("forward", Role.FORWARD),
            ("Attacker", Role.FORWARD),
            ("striker", Role.FORWARD),
        ],
    )
    def test_labels(self, value, expected):
        assert normalize_role(value) is expected

    @pytest.mark.parametrize("value", [None, "", "coach", True])
    def test_unknown(self, value):
        assert normalize_role(value) is Role.UNKNOWN
