import math

from utils.coerce import as_dict, as_int, as_list, as_number, as_str, first_str, to_fixed
from utils.sanitize import sanitize_text


class TestCoerce:

    def test_as_list(self):
        assert as_list([1, 2]) == [1, 2]
        assert as_list(None) == []
        assert as_list({"data": []}) == []
        assert as_list("abc") == []

    def test_as_dict(self):
        assert as_dict({"a": 1}) == {"a": 1}
        assert as_dict([("a", 1)]) == {}
        assert as_dict(None) == {}

    def test_as_number(self):
        assert as_number(3) == 3.0
        assert as_number("4.5") == 4.5
        assert as_number("four") == 0.0
        assert as_number(None) == 0.0
        assert as_number(float("nan")) == 0.0
        assert as_number(float("inf"), default=7) == 7
        assert as_number(True) == 0.0
        assert math.isnan(as_number("x", default=math.nan))

    def test_as_int(self):
        assert as_int("12") == 12
        assert as_int(12.9) == 12
        assert as_int([]) == 0

    def test_as_str(self):
        assert as_str("x") == "x"
        assert as_str("", "fallback") == "fallback"
        assert as_str(5, "fallback") == "fallback"

    def test_first_str(self):
        assert first_str(None, "", "b", "c") == "b"
        assert first_str(None, 3, default="d") == "d"

    def test_to_fixed_rounds_ties_away_from_zero(self):
        assert to_fixed(0.125, 2) == "0.13"
        assert to_fixed(2.5, 0) == "3"
        assert to_fixed(-1.25, 1) == "-1.3"
        assert to_fixed(3, 2) == "3.00"
        # binary value of 1.005 sits just below the tie
        assert to_fixed(1.005, 2) == "1.00"


class TestSanitizeText:

    def test_strips_tags_and_collapses_whitespace(self):
        assert sanitize_text("<p>Hello <b>world</b></p>\n\n   again ") == "Hello world again"

    def test_strips_attributes(self):
        assert sanitize_text('<a href="https://x.test" onclick="steal()">details</a>') == "details"

    def test_script_and_style_content_is_dropped(self):
        assert sanitize_text("<script>alert(1)</script>Suspicious login") == "Suspicious login"
        assert sanitize_text("<STYLE>p { color: red }</STYLE><p>Blocked</p> sign-in") == "Blocked sign-in"
        assert sanitize_text("<noscript>enable js</noscript>MFA fatigue") == "MFA fatigue"

    def test_empty_values(self):
        assert sanitize_text(None) == ""
        assert sanitize_text("") == ""
        assert sanitize_text("   ") == ""
