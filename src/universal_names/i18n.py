"""
Internationalization (i18n) module for the universal name service.

Provides translations for all user-facing messages in German (de) and English (en).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "de"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Name rejection messages, keyed by RejectionCode value
    "rejection.empty_input": {
        "de": "Name ist leer",
        "en": "Name is empty",
    },
    "rejection.name_too_long": {
        "de": "Name ist länger als 255 Zeichen",
        "en": "Name is longer than 255 characters",
    },
    "rejection.empty_label": {
        "de": "Name enthält ein leeres Label",
        "en": "Name contains an empty label",
    },
    "rejection.label_too_long": {
        "de": "Ein Label ist länger als 63 Zeichen",
        "en": "A label is longer than 63 characters",
    },
    "rejection.invalid_hyphen": {
        "de": "Ein Label beginnt oder endet mit einem Bindestrich",
        "en": "A label starts or ends with a hyphen",
    },
    "rejection.forbidden_chars": {
        "de": "Name enthält ungültige Zeichen",
        "en": "Name contains forbidden characters",
    },
    "rejection.zero_width": {
        "de": "Name enthält unsichtbare Zeichen",
        "en": "Name contains zero-width characters",
    },
    "rejection.mixed_script": {
        "de": "Ein Label mischt unzulässige Schriftsysteme",
        "en": "A label mixes scripts that are not allowed together",
    },
    "rejection.confusable": {
        "de": "Name enthält Zeichen, die mit ASCII verwechselbar sind",
        "en": "Name contains characters confusable with ASCII",
    },
    "rejection.disallowed_codepoint": {
        "de": "Name enthält nicht erlaubte Unicode-Zeichen",
        "en": "Name contains disallowed Unicode code points",
    },

    # Resolution output
    "resolve.resolved": {
        "de": "{name} → {address} (über {resolver})",
        "en": "{name} → {address} (via {resolver})",
    },
    "resolve.not_found": {
        "de": "Kein Eintrag für {name} gefunden",
        "en": "No record found for {name}",
    },
    "resolve.failed": {
        "de": "{name} konnte nicht geprüft werden: {error}",
        "en": "Could not check {name}: {error}",
    },
    "reverse.resolved": {
        "de": "{address} → {name}",
        "en": "{address} → {name}",
    },
    "reverse.not_found": {
        "de": "Kein primärer Name für {address}",
        "en": "No primary name for {address}",
    },
    "records.header": {
        "de": "Einträge für {name}:",
        "en": "Records for {name}:",
    },
    "records.none": {
        "de": "Keine Einträge für {name}",
        "en": "No records for {name}",
    },

    # Normalization output
    "normalize.valid": {
        "de": "Gültig: {name}",
        "en": "Valid: {name}",
    },
    "normalize.invalid": {
        "de": "Ungültig: {reason}",
        "en": "Invalid: {reason}",
    },
    "normalize.issues_header": {
        "de": "Sicherheitshinweise:",
        "en": "Security issues:",
    },
    "normalize.no_issues": {
        "de": "Keine Sicherheitsauffälligkeiten",
        "en": "No security issues",
    },

    # Expiration output
    "expiry.expires": {
        "de": "{name} läuft am {date} ab (noch {days} Tage, Dringlichkeit: {urgency})",
        "en": "{name} expires on {date} ({days} days left, urgency: {urgency})",
    },
    "expiry.expired": {
        "de": "{name} ist seit {date} abgelaufen",
        "en": "{name} expired on {date}",
    },
    "expiry.unknown": {
        "de": "Ablaufdatum von {name} unbekannt",
        "en": "Expiry of {name} is unknown",
    },

    # Notification messages
    "notification.expiring": {
        "de": "Name läuft bald ab",
        "en": "Name expiring soon",
    },
    "notification.expired": {
        "de": "Name abgelaufen",
        "en": "Name expired",
    },
    "notification.renewed": {
        "de": "Name verlängert",
        "en": "Name renewed",
    },
    "notification.days_left": {
        "de": "Verbleibende Tage",
        "en": "Days left",
    },
    "notification.expiry": {
        "de": "Ablaufdatum",
        "en": "Expiry",
    },

    # CLI messages
    "cli.config_created": {
        "de": "Konfigurationsdatei erstellt: {path}",
        "en": "Configuration file created: {path}",
    },
    "cli.config_exists": {
        "de": "Konfigurationsdatei existiert bereits: {path}",
        "en": "Configuration file already exists: {path}",
    },
    "cli.config_not_found": {
        "de": "Konfigurationsdatei nicht gefunden: {path}",
        "en": "Configuration file not found: {path}",
    },
    "cli.config_invalid": {
        "de": "Ungültige Konfiguration: {error}",
        "en": "Invalid configuration: {error}",
    },
    "cli.interrupted": {
        "de": "Abgebrochen",
        "en": "Interrupted",
    },
    "cli.error": {
        "de": "Fehler: {error}",
        "en": "Error: {error}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'resolve.not_found')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('resolve.not_found', 'en', name='nobody.eth')
        'No record found for nobody.eth'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def get_missing_translations(language: str) -> set[str]:
    """Message keys that have no translation for a language."""
    return {key for key, translations in TRANSLATIONS.items() if language not in translations}


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {language: get_missing_translations(language) for language in SUPPORTED_LANGUAGES}
