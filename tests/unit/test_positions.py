"""Tests for running-position decoding."""

from furlong.charts.positions import (
    FinishPositions,
    disambiguate,
    expected_call_count,
    is_fully_resolved,
    parse_spaced_positions,
)


class TestExpectedCallCount:
    def test_sprint(self):
        assert expected_call_count(6.0) == 4
        assert expected_call_count(7.5) == 4

    def test_route(self):
        assert expected_call_count(8.0) == 5
        assert expected_call_count(9.0) == 5

    def test_unknown_distance_is_sprint(self):
        assert expected_call_count(None) == 4


class TestDisambiguate:
    def test_exact_length_reads_single_digits(self):
        assert disambiguate("1111", 4) == [1, 1, 1, 1]

    def test_ten_is_always_double(self):
        assert disambiguate("109765", 5) == [10, 9, 7, 6, 5]

    def test_eleven_when_run_is_long(self):
        assert disambiguate("119765", 5) == [11, 9, 7, 6, 5]

    def test_twelve_not_read_when_length_matches(self):
        assert disambiguate("12865", 5) == [1, 2, 8, 6, 5]

    def test_short_run_reads_singly(self):
        assert disambiguate("11", 4) == [1, 1]

    def test_ignores_non_digits(self):
        assert disambiguate(" 2-2-1-1 ", 4) == [2, 2, 1, 1]

    def test_empty(self):
        assert disambiguate("", 4) == []


class TestSpacedPositions:
    def test_leading_digits(self):
        assert parse_spaced_positions(["1hd", "2nk", "3", "1"]) == [1, 2, 3, 1]

    def test_skips_post_and_start_with_six_tokens(self):
        tokens = ["4", "3", "2hd", "1/2", "1nk", "13/4", "1"]
        assert parse_spaced_positions(tokens) == [2, 1, 1, 1]

    def test_fraction_tokens_count_towards_six(self):
        tokens = ["4", "3", "1hd", "1/2", "2nk", "3"]
        assert parse_spaced_positions(tokens) == [1, 2, 3]

    def test_fewer_than_six_printed_tokens_keep_all(self):
        assert parse_spaced_positions(["2hd", "1/2", "1nk", "1"]) == [2, 1, 1]

    def test_ten_stays_whole(self):
        assert parse_spaced_positions(["10", "9hd", "8", "7"]) == [10, 9, 8, 7]


class TestResolution:
    def test_fully_resolved(self):
        assert is_fully_resolved([1, 2, 3, 4], 4)

    def test_under_resolved(self):
        assert not is_fully_resolved([1, 2, 3], 4)
        assert not is_fully_resolved([11, 9, 7, 6, 5, 4], 5)


class TestFinishPositions:
    def test_sprint_mapping(self):
        pos = FinishPositions.from_calls([1, 2, 3, 4], 4)
        assert (pos.quarter, pos.half, pos.three_quarter, pos.stretch, pos.finish) == (1, 2, None, 3, 4)

    def test_route_mapping(self):
        pos = FinishPositions.from_calls([11, 9, 7, 6, 5], 5)
        assert pos.three_quarter == 7
        assert pos.finish == 5

    def test_short_list_fills_from_finish(self):
        pos = FinishPositions.from_calls([2, 1], 4)
        assert pos.quarter is None
        assert pos.stretch == 2
        assert pos.finish == 1

    def test_round_trip_dict(self):
        pos = FinishPositions(quarter=3, finish=1)
        assert FinishPositions.from_dict(pos.to_dict()) == pos

    def test_from_dict_accepts_strings(self):
        pos = FinishPositions.from_dict({"finish": "2", "quarter": ""})
        assert pos.finish == 2
        assert pos.quarter is None

    def test_from_dict_drops_margin_text(self):
        pos = FinishPositions.from_dict({"finish": "2nk", "stretch": " 11 ", "half": "hd", "quarter": 0})
        assert pos.finish == 2
        assert pos.stretch == 11
        assert pos.half is None
        assert pos.quarter is None
