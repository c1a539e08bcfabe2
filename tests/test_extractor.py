"""
Tests for verification code extraction.

Tests cover:
- Anchored matches (anchor phrase followed by a 4-8 digit run)
- Fallback to the last standalone 4-8 digit run
- Runs that are too short or too long
- Each matcher on its own
"""

import pytest

from sms_relay.extractor import (
    AnchoredCodeMatcher,
    CodeExtractor,
    DigitRunMatcher,
    extract_code,
)


class TestAnchoredExtraction:
    """Anchor phrase takes precedence over every other digit run."""

    def test_chinese_anchor(self):
        assert extract_code("您的验证码是：123456，5分钟内有效") == "123456"

    def test_anchor_wins_over_order_number_and_date(self):
        text = "Your order #4821 ships 2024-05-01, code: 7788"
        assert extract_code(text) == "7788"

    def test_anchor_wins_over_later_digit_run(self):
        text = "Verification code 4455. Call 88889999 for help"
        assert extract_code(text) == "4455"

    def test_anchor_is_case_insensitive(self):
        assert extract_code("YOUR VERIFICATION CODE IS 909090") == "909090"

    @pytest.mark.parametrize("digits", ["1234", "12345", "123456", "1234567", "12345678"])
    def test_anchor_with_every_valid_length(self, digits):
        assert extract_code(f"9999 then 验证码 {digits} and 5555") == digits

    def test_anchor_without_digits_falls_back(self):
        assert extract_code("1357 and 2468 is your code") == "2468"

    def test_anchor_followed_by_short_run_falls_back(self):
        # "code 12" has no valid run after the anchor, so tier 2 picks the last run
        assert extract_code("code 12, ticket 5566, seat 7788") == "7788"

    def test_anchor_followed_by_long_run_falls_back(self):
        assert extract_code("code 123456789 expired, new one 4321") == "4321"

    def test_custom_anchor(self):
        extractor = CodeExtractor(anchors=["PIN"])
        assert extractor.extract("PIN: 8080 valid until 2359") == "8080"
        # "code" is no longer an anchor, so the last run wins
        assert extractor.extract("code 1111 sent at 2222") == "2222"

    @pytest.mark.parametrize(
        "text",
        [
            "Postcode 1234, pin 5678",
            "Barcode 1234 on box 5678",
            "Could not decode 1234, retry with 5678",
        ],
    )
    def test_anchor_inside_longer_word_is_ignored(self, text):
        assert extract_code(text) == "5678"

    def test_anchor_directly_followed_by_digits(self):
        assert extract_code("code4321 sent 9999") == "4321"

    def test_chinese_anchor_between_cjk_characters(self):
        assert extract_code("【某某】您的验证码123456，订单号9876") == "123456"


class TestFallbackExtraction:
    """Without an anchor, the last 4-8 digit run in reading order wins."""

    def test_single_run(self):
        assert extract_code("Use 482913 to sign in") == "482913"

    def test_multiple_runs_returns_last(self):
        assert extract_code("Order 1234 for 5678, ref 24680") == "24680"

    def test_run_at_start_and_end(self):
        assert extract_code("2024 is here: 8765") == "8765"

    def test_nine_digit_run_never_matches(self):
        assert extract_code("Account 123456789") is None

    def test_nine_digit_run_does_not_shadow_valid_run(self):
        assert extract_code("1234 then 123456789") == "1234"

    def test_three_digit_run_never_matches(self):
        assert extract_code("Your total is 123 dollars") is None

    def test_non_ascii_digits_are_ignored(self):
        # Full-width digits are not ASCII digits
        assert extract_code("１２３４５６") is None


class TestNotFound:
    """Text with no usable run yields None."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "hello there",
            "code: abc",
            "12 345 678",
            "9876543210",
            "验证码已发送",
        ],
    )
    def test_no_code(self, text):
        assert extract_code(text) is None


class TestMatchers:
    """Each tier is usable and testable on its own."""

    def test_anchored_matcher_ignores_unanchored_runs(self):
        matcher = AnchoredCodeMatcher(["code"])
        assert matcher.match("Ref 4444") is None
        assert matcher.match("code=5555") == "5555"

    def test_anchored_matcher_prefers_first_anchor_occurrence(self):
        matcher = AnchoredCodeMatcher(["code"])
        assert matcher.match("code 1111, backup code 2222") == "1111"

    def test_anchored_matcher_requires_an_anchor(self):
        with pytest.raises(ValueError):
            AnchoredCodeMatcher([])

    def test_digit_run_matcher_returns_last(self):
        assert DigitRunMatcher().match("1111 2222 3333") == "3333"

    def test_digit_run_matcher_skips_out_of_range_runs(self):
        assert DigitRunMatcher().match("4444 123 123456789") == "4444"

    def test_extractor_is_deterministic(self):
        extractor = CodeExtractor()
        text = "Order 1234 for 5678"
        assert extractor.extract(text) == extractor.extract(text) == "5678"
