import pytest

from party.logic.enums import Variant
from party.session.links import join_url, parse_seat, seat_from_url


class TestJoinUrl:
    def test_without_seat(self):
        assert join_url("https://party.example", Variant.IMPOSTOR, "ABC234") == "https://party.example/impostor/ABC234"

    def test_with_seat(self):
        url = join_url("https://party.example/", "whoami", "ABC234", seat=3)

        assert url == "https://party.example/whoami/ABC234?p=3"

    def test_seat_survives_round_trip(self):
        assert seat_from_url(join_url("http://localhost:8712", Variant.MAFIA, "ABC234", seat=0)) == 0


class TestParseSeat:
    @pytest.mark.parametrize(("value", "expected"), [("0", 0), ("12", 12), (" 4 ", 4)])
    def test_valid(self, value, expected):
        assert parse_seat(value) == expected

    @pytest.mark.parametrize("value", [None, "", "-1", "two", "1.5", "٣"])
    def test_garbled_values_are_dropped(self, value):
        assert parse_seat(value) is None

    def test_url_without_seat(self):
        assert seat_from_url("http://localhost:8712/impostor/ABC234") is None
        assert seat_from_url("http://localhost:8712/impostor/ABC234?p=x") is None
