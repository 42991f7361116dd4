"""Phone number normalizer.

By default a phone number is only stripped of surrounding whitespace, so
callers that submit short or local numbers keep matching exactly.  With
*e164* enabled, numbers that parse as valid are converted to E.164
(e.g. ``+12125551234``); anything ``phonenumbers`` rejects is kept as the
stripped raw string.

Safety rule: raw values are never logged.
"""
from __future__ import annotations

import logging

import phonenumbers

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "US"


def normalize_phone(
    raw: str | None,
    *,
    e164: bool = False,
    default_region: str = _DEFAULT_REGION,
) -> str | None:
    """Return *raw* in canonical form, or ``None`` if it is absent or blank.

    Parameters
    ----------
    raw:
        Phone string as supplied by the caller.
    e164:
        Attempt E.164 formatting through ``phonenumbers``.
    default_region:
        ISO-3166-1 alpha-2 country code assumed when *raw* carries no
        international dialling prefix.  Only used when *e164* is set.

    Never raises.
    """
    if raw is None:
        return None

    stripped = raw.strip()
    if not stripped:
        return None

    if not e164:
        return stripped

    try:
        parsed = phonenumbers.parse(stripped, default_region)
    except phonenumbers.NumberParseException:
        # SAFETY: do not log raw value
        logger.debug("phone_normalizer: could not parse input (length=%d)", len(stripped))
        return stripped

    if not phonenumbers.is_valid_number(parsed):
        logger.debug("phone_normalizer: parsed but invalid number")
        return stripped

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
