"""Exclusion predicates.

Export and import skip an image when any pattern occurs anywhere in the
reference. Convert uses a stricter rule: a leading ``!`` is stripped from the
pattern and the reference must start with what remains. The two rules are
kept apart on purpose; merging them changes which images a convert run skips.
"""

from __future__ import annotations

from typing import Iterable

from .brms import EXCLUSION_MARKER


def matches_substring(image: str, exclusions: Iterable[str]) -> bool:
    return any(pattern and pattern in image for pattern in exclusions)


def matches_marker_prefix(image: str, exclusions: Iterable[str]) -> bool:
    for pattern in exclusions:
        if pattern.startswith(EXCLUSION_MARKER):
            pattern = pattern[len(EXCLUSION_MARKER):]
        if pattern and image.startswith(pattern):
            return True
    return False
