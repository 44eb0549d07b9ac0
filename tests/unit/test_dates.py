from datetime import datetime, timedelta, timezone

from storefront.utils.dates import as_utc, utc_now


class TestAsUtc:

    def test_naive_is_read_as_utc(self):
        assert as_utc(datetime(2024, 6, 1, 9, 0)) == datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)

    def test_aware_passes_through(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        value = datetime(2024, 6, 1, 9, 0, tzinfo=ist)
        assert as_utc(value) is value

    def test_none(self):
        assert as_utc(None) is None

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is timezone.utc
