"""Cosmetic river naming."""

from typing import List, Optional

from .alea_prng import AleaPRNG
from .models import River

PREFIXES = ["River", "Great", "Little", "North", "South", "East", "West"]
STEMS = ["Alder", "Birch", "Cedar", "Dale", "Elm", "Fern", "Glen", "Hazel"]
SUFFIXES = ["water", "stream", "flow", "rush", "brook"]

MAX_NAMED_RIVERS = 20
MAJOR_NAME_WIDTH = 5


def name_rivers(rivers: List[River], prng: Optional[AleaPRNG] = None) -> int:
    """
    Name the longest rivers.

    Wide rivers get two-word names ("Great Cedar"), narrow ones a compound
    ("Fernbrook"). Rivers beyond the first MAX_NAMED_RIVERS stay unnamed.

    Returns:
        Number of rivers named
    """
    prng = prng or AleaPRNG("default")
    ranked = sorted(rivers, key=lambda r: (-r.length, -r.width, r.id))

    named = ranked[:MAX_NAMED_RIVERS]
    for river in named:
        if river.width >= MAJOR_NAME_WIDTH:
            river.name = f"{prng.choice(PREFIXES)} {prng.choice(STEMS)}"
        else:
            river.name = f"{prng.choice(STEMS)}{prng.choice(SUFFIXES)}"

    return len(named)
