"""Email normalizer.

Strips surrounding whitespace and, when *lowercase* is set, folds the
address to lowercase.  No mailbox-specific rewriting is applied: two
addresses only resolve to the same contact when their canonical strings
are equal.

Safety rule: raw values are never logged.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def normalize_email(raw: str | None, *, lowercase: bool = True) -> str | None:
    """Return *raw* in canonical form, or ``None`` if it is absent or blank.

    Parameters
    ----------
    raw:
        Email string as supplied by the caller.
    lowercase:
        Fold the whole address to lowercase.  Defaults to ``True``.
    """
    if raw is None:
        return None

    stripped = raw.strip()
    if not stripped:
        return None

    if "@" not in stripped:
        logger.debug("normalize_email: no '@' found (length=%d)", len(stripped))

    return stripped.lower() if lowercase else stripped
