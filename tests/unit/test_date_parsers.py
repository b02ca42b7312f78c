"""Unit tests for completion-date parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from nakka.scrape.parsers.dates import (
    epoch_to_utc_date,
    find_markup_date,
    find_match_title_date,
    find_title_date,
    is_within_window,
    parse_history_payload,
    parse_text_date,
)


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class TestHistoryPayload:
    def test_first_positive_start_time_minus_four_hours(self):
        # 2024-03-10 02:30 UTC: a final finishing after midnight
        late_final = utc(2024, 3, 10, 2, 30).timestamp()
        earlier = utc(2024, 3, 9, 18, 0).timestamp()
        payload = {"list": [{"startTime": 0}, {"startTime": late_final}, {"startTime": earlier}]}

        assert parse_history_payload(payload) == utc(2024, 3, 9)

    def test_afternoon_match_keeps_its_day(self):
        payload = {"list": [{"startTime": utc(2024, 3, 9, 15).timestamp()}]}
        assert parse_history_payload(payload) == utc(2024, 3, 9)

    @pytest.mark.parametrize(
        "payload",
        [None, [], {}, {"list": []}, {"list": [{"startTime": 0}]}, {"list": [{"startTime": "x"}]}],
    )
    def test_unusable_payloads(self, payload):
        assert parse_history_payload(payload) is None


def test_epoch_to_utc_date():
    assert epoch_to_utc_date(utc(2024, 5, 1, 23, 59).timestamp()) == utc(2024, 5, 1)
    assert epoch_to_utc_date(0) is None
    assert epoch_to_utc_date(None) is None
    assert epoch_to_utc_date("soon") is None


class TestMarkupDate:
    def test_slash_format(self):
        html = "<td>05/04/2024 19:00:01 - Agawa Cup</td>"
        assert find_markup_date(html) == utc(2024, 4, 5)

    def test_slash_format_wins_over_earlier_dot_format(self):
        html = "<p>01.01.2024 10:00:00</p><p>02/02/2024 10:00:00</p>"
        assert find_markup_date(html) == utc(2024, 2, 2)

    def test_dot_format_only_when_no_slash_format(self):
        html = "<p>07.08.2024 21:15:00</p>"
        assert find_markup_date(html) == utc(2024, 8, 7)

    def test_impossible_date_is_no_match(self):
        assert find_markup_date("<p>31/02/2024 10:00:00</p>") is None

    def test_no_timestamp(self):
        assert find_markup_date("<html><body>Nothing here</body></html>") is None


class TestMatchTitleDate:
    def test_known_title_cell(self):
        html = """
        <table><tr>
          <td class="match_list_title_td">12.10.2024 20:00:00 - Final</td>
          <td class="match_list_title_td">11.10.2024 20:00:00 - Semi</td>
        </tr></table>
        """
        assert find_match_title_date(html) == utc(2024, 10, 12)

    def test_alternate_title_class(self):
        html = '<div class="m_match_title">3.9.2024 18:00:00 Round 1</div>'
        assert find_match_title_date(html) == utc(2024, 9, 3)

    def test_broad_scan_fallback(self):
        html = "<div><span>Played 14/06/2024 18:30:00</span></div>"
        assert find_match_title_date(html) == utc(2024, 6, 14)

    def test_nothing_rendered(self):
        assert find_match_title_date("<div>loading</div>") is None


def test_parse_text_date_prefers_dots():
    assert parse_text_date("1.2.2024 or 3/4/2024") == utc(2024, 2, 1)
    assert parse_text_date("3/4/2024") == utc(2024, 4, 3)


def test_title_date_only_reads_dot_format():
    assert find_title_date("Agawa Cup 24.12.2024") == utc(2024, 12, 24)
    assert find_title_date("Agawa Cup 24/12/2024") is None
    assert find_title_date("") is None


class TestWindow:
    now = utc(2025, 6, 15, 12)

    def test_now_is_excluded(self):
        assert not is_within_window(self.now, self.now)

    def test_exactly_one_year_ago_is_included(self):
        assert is_within_window(self.now - timedelta(days=365), self.now)

    def test_just_over_one_year_is_excluded(self):
        assert not is_within_window(self.now - timedelta(days=365, seconds=1), self.now)

    def test_future_is_excluded(self):
        assert not is_within_window(self.now + timedelta(days=1), self.now)

    def test_recent_is_included(self):
        assert is_within_window(utc(2025, 6, 1), self.now)
