"""Optional phone number canonicalization to E.164 before matching."""

import phonenumbers


def canonical_phone(raw: str, default_region: str | None = None) -> str:
    """Return the E.164 form of raw if it parses as a valid number, else raw stripped.

    Use default_region for numbers without a leading + (e.g. "202 555 1234" with "US").
    Unparseable input is kept verbatim so that it still matches by exact equality.
    """
    raw = str(raw).strip()
    if not raw:
        return raw
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        return raw
    if not phonenumbers.is_valid_number(parsed):
        return raw
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
