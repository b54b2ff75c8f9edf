"""
Property-based tests for the Name Normalizer module.

Uses Hypothesis for property-based testing to verify correctness properties
of normalization and security screening.
"""

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from universal_names.enums import RejectionCode, SecurityIssueCode
from universal_names.exceptions import NameRejectedError
from universal_names.normalizer import (
    CONFUSABLES,
    MAX_LABEL_LENGTH,
    ZERO_WIDTH_CHARS,
    NameNormalizer,
)


# Strategies for generating test data

@st.composite
def label_strategy(draw, min_size: int = 1, max_size: int = 20) -> str:
    """Generate valid ASCII labels (no leading/trailing hyphen)."""
    label = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
        min_size=min_size,
        max_size=max_size,
    ))
    if len(label) > 2 and draw(st.booleans()):
        middle = len(label) // 2
        label = label[:middle] + "-" + label[middle + 1:]
    return label


@st.composite
def name_strategy(draw) -> str:
    """Generate valid dotted names with a known TLD."""
    labels = draw(st.lists(label_strategy(), min_size=1, max_size=3))
    tld = draw(st.sampled_from(["eth", "crypto", "bnb", "nft", "cifi", "xdc"]))
    return ".".join(labels + [tld])


@st.composite
def mixed_case_name_strategy(draw) -> str:
    """Generate valid names with random upper-casing and surrounding whitespace."""
    name = draw(name_strategy())
    flags = draw(st.lists(st.booleans(), min_size=len(name), max_size=len(name)))
    cased = "".join(c.upper() if f else c for c, f in zip(name, flags))
    padding = draw(st.sampled_from(["", " ", "  ", "\t"]))
    return f"{padding}{cased}{padding}"


class TestNormalizationIdempotenceProperty:
    """
    Property-based tests for normalization idempotence.

    **Property 1: Normalization is idempotent**
    """

    @given(raw=mixed_case_name_strategy())
    @settings(max_examples=200)
    def test_normalize_is_idempotent(self, raw: str) -> None:
        """
        Property 1: Normalization is idempotent.

        *For any* valid name, normalizing the normalized value SHALL yield
        the same normalized value.
        """
        normalizer = NameNormalizer()

        first = normalizer.normalize(raw)
        second = normalizer.normalize(first.value)

        assert first == second
        assert first.value == second.value

    @given(raw=mixed_case_name_strategy())
    @settings(max_examples=100)
    def test_normalized_value_is_lowercase_and_trimmed(self, raw: str) -> None:
        """
        Property 1b: ASCII names normalize to their trimmed lowercase form.

        *For any* ASCII name, the normalized value SHALL equal the trimmed,
        lower-cased input.
        """
        normalizer = NameNormalizer()

        name = normalizer.normalize(raw)

        assert name.value == raw.strip().lower()
        assert name.raw == raw
        assert name.tld == name.labels[-1]
        assert not name.is_unicode

    @given(label=label_strategy())
    @settings(max_examples=100)
    def test_handle_is_idempotent(self, label: str) -> None:
        """
        Property 1c: Handles keep their '@' prefix through normalization.

        *For any* '@handle', the normalized value SHALL keep the prefix and
        normalizing it again SHALL be a no-op.
        """
        normalizer = NameNormalizer()

        name = normalizer.normalize(f"@{label.upper()}")

        assert name.is_handle
        assert name.value == f"@{label}"
        assert name.tld is None
        assert normalizer.normalize(name.value) == name

    def test_unicode_case_folding(self) -> None:
        """Compatibility mapping folds fullwidth and uppercase letters."""
        normalizer = NameNormalizer()

        assert normalizer.normalize("ＶＩＴＡＬＩＫ.ETH").value == "vitalik.eth"
        assert normalizer.normalize("Straße.eth").value == "straße.eth"


class TestZeroWidthRejectionProperty:
    """
    Property-based tests for zero-width rejection.

    **Property 2: Zero-width characters are rejected**
    """

    @given(
        name=name_strategy(),
        zero_width=st.sampled_from(sorted(ZERO_WIDTH_CHARS)),
        position=st.integers(min_value=0, max_value=100),
    )
    @settings(max_examples=200)
    def test_zero_width_anywhere_is_rejected(self, name: str, zero_width: str, position: int) -> None:
        """
        Property 2: Zero-width characters are rejected.

        *For any* valid name with a zero-width character inserted at any
        position, normalization SHALL raise with code 'zero_width'.
        """
        index = position % (len(name) + 1)
        poisoned = name[:index] + zero_width + name[index:]

        with pytest.raises(NameRejectedError) as exc_info:
            NameNormalizer().normalize(poisoned)

        assert exc_info.value.code == RejectionCode.ZERO_WIDTH.value
        assert exc_info.value.details["raw_input"] == poisoned

    @given(name=name_strategy(), zero_width=st.sampled_from(sorted(ZERO_WIDTH_CHARS)))
    @settings(max_examples=50)
    def test_zero_width_reported_as_security_issue(self, name: str, zero_width: str) -> None:
        """
        Property 2b: The security report flags zero-width characters.

        *For any* name containing a zero-width character, check_security_issues
        SHALL report a ZERO_WIDTH issue without raising.
        """
        issues = NameNormalizer().check_security_issues(zero_width + name)

        assert SecurityIssueCode.ZERO_WIDTH in {i.code for i in issues}


class TestConfusableRejectionProperty:
    """
    Property-based tests for confusable rejection.

    **Property 3: Confusable characters are rejected**
    """

    @given(
        label=label_strategy(min_size=2),
        confusable=st.sampled_from(sorted(CONFUSABLES)),
        tld=st.sampled_from(["eth", "crypto"]),
    )
    @settings(max_examples=200)
    def test_confusable_in_label_is_rejected(self, label: str, confusable: str, tld: str) -> None:
        """
        Property 3: Confusable characters are rejected.

        *For any* ASCII label with one listed confusable character substituted
        in, normalization SHALL raise with code 'confusable'.
        """
        spoofed = confusable + label[1:]

        with pytest.raises(NameRejectedError) as exc_info:
            NameNormalizer().normalize(f"{spoofed}.{tld}")

        assert exc_info.value.code == RejectionCode.CONFUSABLE.value

    def test_cyrillic_spoof_of_vitalik(self) -> None:
        """'vitаlik.eth' with a Cyrillic 'а' is rejected and reported."""
        spoof = "vitаlik.eth"
        normalizer = NameNormalizer()

        assert not normalizer.validate(spoof)
        assert normalizer.has_confusables(spoof)
        issues = normalizer.check_security_issues(spoof)
        assert SecurityIssueCode.CONFUSABLE in {i.code for i in issues}
        assert SecurityIssueCode.MIXED_SCRIPT in {i.code for i in issues}


class TestStructuralRejectionProperty:
    """
    Property-based tests for structural limits.

    **Property 4: Malformed names are rejected with a precise code**
    """

    @given(label=label_strategy(min_size=MAX_LABEL_LENGTH + 1, max_size=MAX_LABEL_LENGTH + 20))
    @settings(max_examples=50)
    def test_long_label_rejected(self, label: str) -> None:
        """
        Property 4: Labels over 63 characters are rejected.
        """
        assume(not label.startswith("-") and not label.endswith("-"))

        result = NameNormalizer().check(f"{label}.eth")

        assert not result.valid
        assert result.code == RejectionCode.LABEL_TOO_LONG

    @pytest.mark.parametrize("raw,code", [
        ("", RejectionCode.EMPTY_INPUT),
        ("   ", RejectionCode.EMPTY_INPUT),
        ("a..eth", RejectionCode.EMPTY_LABEL),
        (".eth", RejectionCode.EMPTY_LABEL),
        ("-abc.eth", RejectionCode.INVALID_HYPHEN),
        ("abc-.eth", RejectionCode.INVALID_HYPHEN),
        ("ab c.eth", RejectionCode.FORBIDDEN_CHARS),
        ("a@b.eth", RejectionCode.FORBIDDEN_CHARS),
        ("a/b.eth", RejectionCode.FORBIDDEN_CHARS),
        ("x" * 256, RejectionCode.NAME_TOO_LONG),
        ("abcвβ.eth", RejectionCode.MIXED_SCRIPT),
    ])
    def test_rejection_codes(self, raw: str, code: RejectionCode) -> None:
        """Every structural problem maps to its own rejection code."""
        result = NameNormalizer().check(raw)

        assert not result.valid
        assert result.code == code

    def test_allowed_cjk_latin_mix(self) -> None:
        """Latin may be combined with Han and Kana in one label."""
        normalizer = NameNormalizer()

        name = normalizer.normalize("abc漢字かな.eth")

        assert name.is_unicode
        assert name.tld == "eth"


class TestStructureHelpers:
    """Structure helpers operate on the normalized form."""

    def test_parent_and_subdomain(self) -> None:
        normalizer = NameNormalizer()

        assert normalizer.get_tld("Pay.Vitalik.ETH") == "eth"
        assert normalizer.is_subdomain("pay.vitalik.eth")
        assert not normalizer.is_subdomain("vitalik.eth")
        assert normalizer.get_parent_domain("pay.vitalik.eth") == "vitalik.eth"
        assert normalizer.get_subdomain_label("pay.vitalik.eth") == "pay"
        assert normalizer.get_subdomain_label("vitalik.eth") is None
        assert normalizer.split_labels("a.b.eth") == ["a", "b", "eth"]

    @given(name=name_strategy())
    @settings(max_examples=50)
    def test_valid_names_have_no_issues(self, name: str) -> None:
        """
        Property 5: Plain ASCII names produce an empty security report.
        """
        assert NameNormalizer().check_security_issues(name) == []
