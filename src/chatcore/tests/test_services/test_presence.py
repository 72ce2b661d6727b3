from datetime import datetime, timedelta, timezone

import pytest

from chatcore.services.presence import Presence, PresenceStatus, parse_timestamp, presence

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def ago(**delta) -> datetime:
    return NOW - timedelta(**delta)


class TestPresenceClassification:
    """
    The estimate buckets elapsed time since last activity:
    under 5 minutes Online, under an hour Away, otherwise Offline.
    """

    def test_two_minutes_is_online(self):
        assert presence(ago(minutes=2), now=NOW) == Presence(PresenceStatus.ONLINE, "Online")

    def test_thirty_minutes_is_away_with_minutes_label(self):
        result = presence(ago(minutes=30), now=NOW)
        assert result.status is PresenceStatus.AWAY
        assert result.label == "30 min ago"

    def test_three_hours_is_offline_with_relative_label(self):
        result = presence(ago(hours=3), now=NOW)
        assert result.status is PresenceStatus.OFFLINE
        assert result.label == "3 hours ago"

    def test_none_is_unknown(self):
        assert presence(None, now=NOW) == Presence(PresenceStatus.UNKNOWN, "Unknown")

    def test_five_minutes_exactly_is_away(self):
        result = presence(ago(minutes=5), now=NOW)
        assert result.status is PresenceStatus.AWAY
        assert result.label == "5 min ago"

    def test_minutes_are_floored(self):
        assert presence(ago(minutes=12, seconds=59), now=NOW).label == "12 min ago"

    def test_sixty_minutes_is_offline(self):
        result = presence(ago(minutes=60), now=NOW)
        assert result.status is PresenceStatus.OFFLINE
        assert result.label == "1 hour ago"

    def test_future_timestamp_counts_as_online(self):
        assert presence(NOW + timedelta(minutes=3), now=NOW).status is PresenceStatus.ONLINE

    @pytest.mark.parametrize(
        "delta, label",
        [
            (timedelta(days=1), "1 day ago"),
            (timedelta(days=3, hours=5), "3 days ago"),
            (timedelta(days=65), "2 months ago"),
            (timedelta(days=400), "1 year ago"),
        ],
    )
    def test_long_absences_use_coarse_units(self, delta, label):
        result = presence(NOW - delta, now=NOW)
        assert result.status is PresenceStatus.OFFLINE
        assert result.label == label


class TestPresenceInputs:

    def test_iso_string_with_z_suffix(self):
        assert presence("2024-05-01T11:58:00Z", now=NOW).status is PresenceStatus.ONLINE

    def test_iso_string_with_offset(self):
        # 13:30 at +02:00 is 11:30 UTC
        assert presence("2024-05-01T13:30:00+02:00", now=NOW).label == "30 min ago"

    def test_naive_datetime_is_treated_as_utc(self):
        assert presence(datetime(2024, 5, 1, 11, 20), now=NOW).label == "40 min ago"

    @pytest.mark.parametrize("value", ["", "   ", "yesterday", "2024-13-45T00:00:00", 12345, object()])
    def test_unparsable_values_are_unknown(self, value):
        assert presence(value, now=NOW).status is PresenceStatus.UNKNOWN

    @pytest.mark.parametrize(
        "value",
        [
            datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=5))),
            "0001-01-01T00:00:00+05:00",
            datetime(9999, 12, 31, 23, 59, tzinfo=timezone(timedelta(hours=-5))),
        ],
    )
    def test_out_of_range_instants_are_unknown(self, value):
        assert parse_timestamp(value) is None
        assert presence(value, now=NOW) == Presence(PresenceStatus.UNKNOWN, "Unknown")

    def test_defaults_to_current_time(self):
        assert presence(datetime.now(timezone.utc)).status is PresenceStatus.ONLINE

    def test_parse_timestamp_normalizes_to_utc(self):
        parsed = parse_timestamp("2024-05-01T14:00:00+02:00")
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc
