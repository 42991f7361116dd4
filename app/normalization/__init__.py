"""Normalization package.

One normalizer per identifying field.  Each normalizer takes the raw value
from an observation and returns the canonical form used for lookups and
storage, or ``None`` when the value is absent or blank.
"""
