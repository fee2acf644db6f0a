"""Tests for the fixed-window expiry rules."""

from geogate.quota.window import expiry_cutoff, is_expired, now_ms, reset_at

WINDOW = 1000


class TestIsExpired:
    """Tests for is_expired."""

    def test_inside_window(self) -> None:
        assert is_expired(0, 500, WINDOW) is False

    def test_exactly_at_expiry_is_still_live(self) -> None:
        """The window is stale only once now is strictly past the expiry instant."""
        assert is_expired(0, WINDOW, WINDOW) is False

    def test_past_expiry(self) -> None:
        assert is_expired(0, WINDOW + 1, WINDOW) is True

    def test_repeated_calls_agree(self) -> None:
        """Same inputs, same answer."""
        results = {is_expired(10, 2000, WINDOW) for _ in range(5)}
        assert results == {True}


class TestHelpers:
    """Tests for reset_at and expiry_cutoff."""

    def test_reset_at(self) -> None:
        assert reset_at(5000, WINDOW) == 6000

    def test_cutoff_matches_is_expired(self) -> None:
        """window_start < cutoff exactly when is_expired holds."""
        now = 10_000
        cutoff = expiry_cutoff(now, WINDOW)
        for window_start in range(now - WINDOW - 3, now - WINDOW + 4):
            assert (window_start < cutoff) == is_expired(window_start, now, WINDOW)

    def test_now_ms_is_milliseconds(self) -> None:
        # Anything after 2020 in ms has 13 digits
        assert len(str(now_ms())) == 13
