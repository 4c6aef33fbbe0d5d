"""Title resolver tests."""

from curio.rewards.titles import TITLES, next_title, next_title_progress, resolve_title


class TestResolveTitle:
    def test_zero_is_first_tier(self):
        assert resolve_title(0).name == "Curious Newcomer"

    def test_just_below_threshold(self):
        assert resolve_title(24_999).tier == 1

    def test_exact_threshold(self):
        assert resolve_title(25_000).name == "Question Asker"

    def test_top_tier(self):
        assert resolve_title(10_000_000).name == "Knowledge Architect"

    def test_negative_balance(self):
        assert resolve_title(-5).tier == 1

    def test_thresholds_strictly_ascending(self):
        thresholds = [t.threshold_mcurio for t in TITLES]
        assert thresholds == sorted(set(thresholds))
        assert thresholds[0] == 0

    def test_tiers_are_sequential(self):
        assert [t.tier for t in TITLES] == list(range(1, len(TITLES) + 1))


class TestNextTitleProgress:
    def test_progress_within_tier(self):
        progress = next_title_progress(50_000)
        assert progress == {"current": 25_000, "required": 50_000, "percentage": 50}

    def test_progress_at_threshold(self):
        assert next_title_progress(75_000)["current"] == 0

    def test_none_at_top(self):
        assert next_title_progress(TITLES[-1].threshold_mcurio) is None
        assert next_title(TITLES[-1].threshold_mcurio) is None

    def test_next_title(self):
        assert next_title(0).name == "Question Asker"
