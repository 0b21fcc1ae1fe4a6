"""Tests for the CSV series decoder."""

from datetime import date

import pytest

from price_history.core.exceptions import DecodeError
from price_history.feed.decoder import DecodeStats, decode_series, iter_closes, parse_row


class TestParseRow:
    def test_reads_date_and_close_only(self):
        fields = ["2024-01-02", "1", "2", "0.5", "44187.1449", "44187.1449", "123"]
        assert parse_row(fields, line=2) == (date(2024, 1, 2), 44187.14)

    def test_short_row(self):
        with pytest.raises(DecodeError) as exc_info:
            parse_row(["2024-01-02", "1", "2"], line=7)
        assert exc_info.value.context == {"line": 7, "reason": "short_row"}

    def test_bad_date(self):
        with pytest.raises(DecodeError, match="unparseable date"):
            parse_row(["yesterday", "1", "1", "1", "1", "1", "1"], line=2)

    @pytest.mark.parametrize("close", ["null", "abc", ""])
    def test_non_numeric_close(self, close):
        with pytest.raises(DecodeError, match="unparseable close"):
            parse_row(["2024-01-02", "1", "1", "1", close, "1", "1"], line=2)

    @pytest.mark.parametrize("close", ["0", "-1.5", "nan", "inf"])
    def test_non_positive_close(self, close):
        with pytest.raises(DecodeError, match="close must be positive"):
            parse_row(["2024-01-02", "1", "1", "1", close, "1", "1"], line=2)

    @pytest.mark.parametrize("close", ["0.004", "0.0049"])
    def test_close_rounding_to_zero_rejected(self, close):
        with pytest.raises(DecodeError) as exc_info:
            parse_row(["2024-01-02", "1", "1", "1", close, "1", "1"], line=4)
        assert exc_info.value.context == {"line": 4, "reason": "bad_close"}

    def test_sub_cent_close_rounds_up(self):
        assert parse_row(["2024-01-02", "1", "1", "1", "0.006", "1", "1"], line=2) == (
            date(2024, 1, 2),
            0.01,
        )

    @pytest.mark.parametrize("raw", ["2024-01-01junk", "2024-01-011", "2024-01-01Z"])
    def test_trailing_characters_after_date(self, raw):
        with pytest.raises(DecodeError, match="unparseable date"):
            parse_row([raw, "1", "1", "1", "5", "1", "1"], line=2)

    @pytest.mark.parametrize("raw", ["2024-01-01T00:00:00Z", "2024-01-01 00:00:00"])
    def test_datetime_keeps_date_part(self, raw):
        assert parse_row([raw, "1", "1", "1", "5", "1", "1"], line=2) == (date(2024, 1, 1), 5.0)


class TestIterCloses:
    def test_skips_header(self, csv_payload):
        payload = csv_payload([("2024-01-01", 1.0), ("2024-01-02", 2.0)])
        assert list(iter_closes(payload)) == [
            (date(2024, 1, 1), 1.0),
            (date(2024, 1, 2), 2.0),
        ]

    def test_malformed_row_dropped_not_fatal(self, csv_payload):
        payload = csv_payload(
            [("2024-01-01", 1.0), ("2024-01-02", "oops"), ("2024-01-03", 3.0), ("2024-01-04", 4.0)]
        )
        stats = DecodeStats()
        closes = list(iter_closes(payload, stats))
        assert len(closes) == 3
        assert date(2024, 1, 2) not in {d for d, _ in closes}
        assert stats.rows_seen == 4
        assert stats.rows_skipped == 1

    def test_trailing_blank_and_partial_lines(self, csv_payload):
        payload = csv_payload([("2024-01-01", 1.0)]) + "\n\n2024-01-02,1,2\n"
        stats = DecodeStats()
        assert list(iter_closes(payload, stats)) == [(date(2024, 1, 1), 1.0)]
        assert stats.rows_skipped == 1

    def test_header_only(self):
        assert list(iter_closes("Date,Open,High,Low,Close,Adj Close,Volume\n")) == []

    def test_is_lazy_generator(self, csv_payload):
        gen = iter_closes(csv_payload([("2024-01-01", 1.0)]))
        assert next(gen) == (date(2024, 1, 1), 1.0)
        with pytest.raises(StopIteration):
            next(gen)


class TestDecodeSeries:
    def test_pairs_aligned_series(self, feed_payloads):
        points = list(decode_series(feed_payloads["BTC-USD"], feed_payloads["BTC-INR"], "btc"))
        assert [p.date for p in points] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert points[0].usd == 42280.23
        assert points[0].inr == 3518513.1
        assert all(p.asset == "btc" for p in points)

    def test_pairs_by_date_not_position(self, csv_payload):
        usd = csv_payload([("2024-01-01", 10.0), ("2024-01-02", 20.0)])
        inr = csv_payload([("2024-01-02", 1660.0), ("2024-01-01", 830.0)])
        points = list(decode_series(usd, inr, "btc"))
        assert [(p.date, p.usd, p.inr) for p in points] == [
            (date(2024, 1, 1), 10.0, 830.0),
            (date(2024, 1, 2), 20.0, 1660.0),
        ]

    def test_unmatched_dates_dropped(self, csv_payload):
        usd = csv_payload([("2024-01-01", 10.0), ("2024-01-02", 20.0), ("2024-01-03", 30.0)])
        inr = csv_payload([("2024-01-02", 1660.0), ("2024-01-04", 3320.0)])
        stats = DecodeStats()
        points = list(decode_series(usd, inr, "btc", stats))
        assert [p.date for p in points] == [date(2024, 1, 2)]
        assert stats.unmatched_dates == 3

    def test_bad_row_in_one_currency_drops_that_day(self, csv_payload):
        rows = [("2024-01-01", 1.0), ("2024-01-02", 2.0), ("2024-01-03", 3.0)]
        usd = csv_payload([rows[0], ("2024-01-02", "null"), rows[2]])
        inr = csv_payload(rows)
        points = list(decode_series(usd, inr, "btc"))
        assert len(points) == len(rows) - 1
        assert date(2024, 1, 2) not in {p.date for p in points}

    def test_duplicate_date_keeps_last(self, csv_payload):
        usd = csv_payload([("2024-01-01", 10.0), ("2024-01-01", 11.0)])
        inr = csv_payload([("2024-01-01", 830.0)])
        points = list(decode_series(usd, inr, "btc"))
        assert len(points) == 1
        assert points[0].usd == 11.0

    def test_sorted_ascending(self, csv_payload):
        usd = csv_payload([("2024-01-03", 3.0), ("2024-01-01", 1.0)])
        inr = csv_payload([("2024-01-01", 1.0), ("2024-01-03", 3.0)])
        assert [p.date for p in decode_series(usd, inr, "btc")] == [
            date(2024, 1, 1),
            date(2024, 1, 3),
        ]

    def test_close_rounding_to_zero_drops_that_day(self, csv_payload):
        usd = csv_payload([("2024-01-01", 10.0), ("2024-01-02", 0.004), ("2024-01-03", 30.0)])
        inr = csv_payload([("2024-01-01", 830.0), ("2024-01-02", 1660.0), ("2024-01-03", 2490.0)])
        stats = DecodeStats()
        points = list(decode_series(usd, inr, "btc", stats))
        assert [(p.date, p.usd) for p in points] == [
            (date(2024, 1, 1), 10.0),
            (date(2024, 1, 3), 30.0),
        ]
        assert stats.rows_skipped == 1
        assert stats.unmatched_dates == 1
