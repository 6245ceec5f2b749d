import re

from django.test import TestCase, override_settings

from purchases.services.tracking import generate_tracking_number

TRACKING_RE = re.compile(r"^BL\d{6}-\d{6}$")


class TrackingNumberTests(TestCase):
    """
    GUARANTEES:
    - Format is <PREFIX><6 digits of epoch millis>-<6 random digits>
    - The random part varies even when the clock is frozen
    """

    def test_default_format(self):
        self.assertRegex(generate_tracking_number(), TRACKING_RE)

    def test_uses_last_six_digits_of_clock(self):
        number = generate_tracking_number(clock=lambda: 1_700_000_123_456)
        self.assertTrue(number.startswith("BL123456-"))

    def test_short_clock_is_zero_padded(self):
        number = generate_tracking_number(clock=lambda: 42)
        self.assertTrue(number.startswith("BL000042-"))

    @override_settings(PURCHASE_TRACKING_PREFIX="XX")
    def test_prefix_comes_from_settings(self):
        self.assertTrue(generate_tracking_number().startswith("XX"))

    def test_explicit_prefix_wins(self):
        self.assertTrue(generate_tracking_number("HX").startswith("HX"))

    def test_random_suffix_varies_with_frozen_clock(self):
        numbers = {generate_tracking_number(clock=lambda: 1) for _ in range(200)}
        # 200 draws from 10**6: a handful of repeats at most, never all the same
        self.assertGreater(len(numbers), 190)
