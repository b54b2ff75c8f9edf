"""
Name normalization and security screening.

Applies UTS-46 mapping (case folding, compatibility mapping, NFC) to every
label and rejects names that are malformed or unsafe to use as a cache key
or as network input: zero-width characters, control characters, mixed
scripts within one label that are not allow-listed, and characters that
are visually confusable with ASCII letters.
"""

import re
import unicodedata
from typing import Iterable, Optional

import idna

from .enums import RejectionCode, SecurityIssueCode, Severity
from .exceptions import NameRejectedError
from .models import Name, NormalizationResult, SecurityIssue


MAX_NAME_LENGTH = 255
MAX_LABEL_LENGTH = 63
LONG_LABEL_WARNING = 40

ZERO_WIDTH_CHARS = frozenset({
    "\u200b",  # zero width space
    "\u200c",  # zero width non-joiner
    "\u200d",  # zero width joiner
    "\u2060",  # word joiner
    "\ufeff",  # zero width no-break space
    "\u00ad",  # soft hyphen
})

# '@' is only legal as the first character of a handle
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

# Look-alikes of ASCII letters and digits, keyed by the lowercase code point
CONFUSABLES: dict[str, str] = {
    # Cyrillic
    "а": "a", "е": "e", "о": "o", "р": "p",
    "с": "c", "у": "y", "х": "x", "і": "i",
    "ј": "j", "ѕ": "s", "ԁ": "d", "ԛ": "q",
    "ԝ": "w", "ӏ": "l", "һ": "h", "ѵ": "v",
    # Greek
    "ο": "o", "α": "a", "ν": "v", "ρ": "p",
    "ι": "i", "κ": "k", "υ": "u", "χ": "x",
    # Armenian
    "օ": "o", "ս": "u", "հ": "h", "ո": "n",
    "ց": "g",
    # Latin look-alikes
    "ı": "i", "ɑ": "a", "ɡ": "g",
}

# Script combinations that are legitimately written together
ALLOWED_SCRIPT_SETS: tuple[frozenset[str], ...] = (
    frozenset({"Latin", "Han", "Hiragana", "Katakana"}),
    frozenset({"Latin", "Han", "Hangul"}),
    frozenset({"Latin", "Han", "Bopomofo"}),
)

_SCRIPT_PREFIXES = (
    ("CJK UNIFIED IDEOGRAPH", "Han"),
    ("CJK COMPATIBILITY IDEOGRAPH", "Han"),
    ("LATIN", "Latin"),
    ("CYRILLIC", "Cyrillic"),
    ("GREEK", "Greek"),
    ("ARMENIAN", "Armenian"),
    ("HEBREW", "Hebrew"),
    ("ARABIC", "Arabic"),
    ("DEVANAGARI", "Devanagari"),
    ("THAI", "Thai"),
    ("HIRAGANA", "Hiragana"),
    ("KATAKANA", "Katakana"),
    ("HANGUL", "Hangul"),
    ("BOPOMOFO", "Bopomofo"),
    ("GEORGIAN", "Georgian"),
)


def script_of(char: str) -> Optional[str]:
    """
    Return the script of a letter, or None for script-neutral characters.

    Digits, punctuation, symbols and combining marks are script-neutral.
    """
    if char.isascii():
        return "Latin" if char.isalpha() else None
    if not unicodedata.category(char).startswith("L"):
        return None
    char_name = unicodedata.name(char, "")
    for prefix, script in _SCRIPT_PREFIXES:
        if char_name.startswith(prefix):
            return script
    return char_name.split(" ", 1)[0].title() or None


def label_scripts(label: str) -> set[str]:
    """Set of scripts used by the letters of a label."""
    return {s for s in (script_of(c) for c in label) if s is not None}


def find_confusables(text: str) -> list[str]:
    """Listed confusable characters in text, in order of appearance."""
    return [c for c in text if c.lower() in CONFUSABLES]


def find_zero_width(text: str) -> list[str]:
    return [c for c in text if c in ZERO_WIDTH_CHARS]


class NameNormalizer:
    """
    Validates and normalizes names.

    Handles:
    - UTS-46 mapping per label (case folding, compatibility mapping, NFC)
    - '@handle' prefix detection
    - Structural limits (255 per name, 63 per label, no edge hyphens)
    - Rejection of zero-width, control and forbidden characters
    - Rejection of mixed scripts that are not allow-listed
    - Rejection of listed confusable characters

    All methods are deterministic and free of side effects.
    """

    def __init__(
        self,
        allowed_script_sets: Optional[Iterable[frozenset[str]]] = None,
    ) -> None:
        """
        Initialize the normalizer.

        Args:
            allowed_script_sets: Script combinations that may appear together in
                one label. Defaults to ALLOWED_SCRIPT_SETS.
        """
        self._allowed_script_sets = tuple(
            allowed_script_sets if allowed_script_sets is not None else ALLOWED_SCRIPT_SETS
        )

    def normalize(self, raw: str) -> Name:
        """
        Normalize a raw name.

        Args:
            raw: The raw name string, e.g. 'Vitalik.ETH' or '@Alice'

        Returns:
            The normalized Name

        Raises:
            NameRejectedError: If the name is malformed or unsafe
        """
        if raw is None or not raw.strip():
            raise self._reject(RejectionCode.EMPTY_INPUT, "Name input is empty", raw)

        text = raw.strip()

        zero_width = find_zero_width(text)
        if zero_width:
            raise self._reject(
                RejectionCode.ZERO_WIDTH,
                "Name contains zero-width characters",
                raw,
                {"code_points": [f"U+{ord(c):04X}" for c in zero_width]},
            )

        control = [c for c in text if unicodedata.category(c) in ("Cc", "Cf")]
        if control:
            raise self._reject(
                RejectionCode.FORBIDDEN_CHARS,
                "Name contains control characters",
                raw,
                {"code_points": [f"U+{ord(c):04X}" for c in control]},
            )

        is_handle = text.startswith("@")
        body = text[1:] if is_handle else text
        self._check_forbidden(body, raw)

        try:
            mapped = idna.uts46_remap(body, std3_rules=False, transitional=False)
        except idna.IDNAError as e:
            raise self._reject(
                RejectionCode.DISALLOWED_CODEPOINT,
                f"Name contains disallowed code points: {e}",
                raw,
            ) from e

        # Compatibility mapping can produce forbidden ASCII (e.g. fullwidth '@')
        self._check_forbidden(mapped, raw)

        if len(mapped) > MAX_NAME_LENGTH:
            raise self._reject(
                RejectionCode.NAME_TOO_LONG,
                f"Name exceeds maximum length of {MAX_NAME_LENGTH} characters",
                raw,
                {"length": len(mapped)},
            )

        labels = mapped.split(".")
        for label in labels:
            self._check_label(label, raw)

        value = f"@{mapped}" if is_handle else mapped
        return Name(
            raw=raw,
            value=value,
            labels=tuple(labels),
            tld=labels[-1] if len(labels) > 1 else None,
            is_handle=is_handle,
            is_unicode=not mapped.isascii(),
        )

    def check(self, raw: str) -> NormalizationResult:
        """
        Normalize without raising.

        Returns:
            NormalizationResult with the Name or the rejection code and message
        """
        try:
            return NormalizationResult(valid=True, name=self.normalize(raw))
        except NameRejectedError as e:
            return NormalizationResult(
                valid=False,
                name=None,
                code=RejectionCode(e.code),
                message=e.message,
                details=e.details,
            )

    def validate(self, raw: str) -> bool:
        """Pure predicate: True if the name normalizes."""
        return self.check(raw).valid

    def has_confusables(self, raw: str) -> bool:
        """True if the name contains zero-width or listed confusable characters."""
        if not raw:
            return False
        return bool(find_zero_width(raw) or find_confusables(raw))

    def check_security_issues(self, raw: str) -> list[SecurityIssue]:
        """
        Diagnostic report of security-relevant properties of a name.

        Never raises; callers decide policy.
        """
        issues: list[SecurityIssue] = []
        if not raw:
            return issues

        zero_width = find_zero_width(raw)
        if zero_width:
            issues.append(SecurityIssue(
                code=SecurityIssueCode.ZERO_WIDTH,
                severity=Severity.HIGH,
                message="Contains invisible zero-width characters",
                characters=tuple(f"U+{ord(c):04X}" for c in zero_width),
            ))

        text = raw.strip().lower()
        if text.startswith("@"):
            text = text[1:]

        for label in text.split("."):
            confusables = find_confusables(label)
            if confusables:
                lookalike = "".join(CONFUSABLES.get(c.lower(), c) for c in label)
                issues.append(SecurityIssue(
                    code=SecurityIssueCode.CONFUSABLE,
                    severity=Severity.HIGH,
                    message=f"Label '{label}' contains characters that look like '{lookalike}'",
                    label=label,
                    characters=tuple(confusables),
                ))

            scripts = label_scripts(label)
            if len(scripts) > 1 and not self._scripts_allowed(scripts):
                issues.append(SecurityIssue(
                    code=SecurityIssueCode.MIXED_SCRIPT,
                    severity=Severity.HIGH,
                    message=f"Label '{label}' mixes scripts: {', '.join(sorted(scripts))}",
                    label=label,
                ))

            if len(label) > LONG_LABEL_WARNING:
                issues.append(SecurityIssue(
                    code=SecurityIssueCode.LONG_LABEL,
                    severity=Severity.LOW,
                    message=f"Contains unusually long label ({len(label)} characters)",
                    label=label,
                ))

        if not text.isascii():
            issues.append(SecurityIssue(
                code=SecurityIssueCode.NON_ASCII,
                severity=Severity.MEDIUM,
                message="Contains non-ASCII characters (may be legitimate)",
            ))

        return issues

    # Structure helpers

    def split_labels(self, raw: str) -> list[str]:
        return list(self.normalize(raw).labels)

    def get_tld(self, raw: str) -> Optional[str]:
        return self.normalize(raw).tld

    def is_subdomain(self, raw: str) -> bool:
        return len(self.normalize(raw).labels) > 2

    def get_parent_domain(self, raw: str) -> Optional[str]:
        """Name without its leftmost label, None for a single label."""
        labels = self.normalize(raw).labels
        if len(labels) <= 1:
            return None
        return ".".join(labels[1:])

    def get_subdomain_label(self, raw: str) -> Optional[str]:
        """Leftmost label of a subdomain, None if the name is not a subdomain."""
        labels = self.normalize(raw).labels
        return labels[0] if len(labels) > 2 else None

    def beautify(self, raw: str) -> str:
        """
        Display form of a name.

        Keeps the caller's casing when the name only differs from its
        normalized form by case, otherwise returns the normalized value.
        """
        normalized = self.normalize(raw)
        stripped = raw.strip()
        if self.normalize(stripped.lower()).value == normalized.value:
            return stripped
        return normalized.value

    # Internals

    def _check_forbidden(self, text: str, raw: str) -> None:
        forbidden = FORBIDDEN_CHARS_PATTERN.findall(text)
        if forbidden:
            raise self._reject(
                RejectionCode.FORBIDDEN_CHARS,
                "Name contains forbidden characters",
                raw,
                {"forbidden_chars": forbidden},
            )

    def _check_label(self, label: str, raw: str) -> None:
        if not label:
            raise self._reject(RejectionCode.EMPTY_LABEL, "Label cannot be empty", raw)

        if len(label) > MAX_LABEL_LENGTH:
            raise self._reject(
                RejectionCode.LABEL_TOO_LONG,
                f"Label exceeds maximum length of {MAX_LABEL_LENGTH} characters",
                raw,
                {"label": label},
            )

        if label.startswith("-") or label.endswith("-"):
            raise self._reject(
                RejectionCode.INVALID_HYPHEN,
                f"Label cannot start or end with hyphen: {label}",
                raw,
                {"label": label},
            )

        confusables = find_confusables(label)
        if confusables:
            raise self._reject(
                RejectionCode.CONFUSABLE,
                f"Label contains confusable characters: {label}",
                raw,
                {"label": label, "characters": confusables},
            )

        scripts = label_scripts(label)
        if len(scripts) > 1 and not self._scripts_allowed(scripts):
            raise self._reject(
                RejectionCode.MIXED_SCRIPT,
                f"Label mixes scripts: {', '.join(sorted(scripts))}",
                raw,
                {"label": label, "scripts": sorted(scripts)},
            )

    def _scripts_allowed(self, scripts: set[str]) -> bool:
        return any(scripts <= allowed for allowed in self._allowed_script_sets)

    @staticmethod
    def _reject(
        code: RejectionCode,
        message: str,
        raw: Optional[str],
        details: Optional[dict] = None,
    ) -> NameRejectedError:
        data = {"raw_input": raw}
        data.update(details or {})
        return NameRejectedError(code=code.value, message=message, details=data)
