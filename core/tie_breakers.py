# core/tie_breakers.py

from abc import ABC, abstractmethod


class BaseTieBreaker(ABC):
    """Decides whether a candidate leaf function outranks the current holder of a rank."""

    name = "base"

    @abstractmethod
    def outranks(self, candidate: str, candidate_count: int, holder: str, holder_count: int) -> bool:
        pass


class FirstSeenTieBreaker(BaseTieBreaker):
    """
    Only a strictly higher count displaces a holder, so among equal counts the
    function tallied first keeps the better rank. Tallies are plain dicts,
    which iterate in insertion order, so the result is repeatable.
    """
    name = "first_seen"

    def outranks(self, candidate: str, candidate_count: int, holder: str, holder_count: int) -> bool:
        return candidate_count > holder_count


class NameTieBreaker(BaseTieBreaker):
    """Equal counts are ordered by function name, ascending."""
    name = "name"

    def outranks(self, candidate: str, candidate_count: int, holder: str, holder_count: int) -> bool:
        if candidate_count != holder_count:
            return candidate_count > holder_count
        # an unfilled rank (count 0) never ties with a real candidate
        return holder_count > 0 and candidate < holder


_TIE_BREAKERS = {
    FirstSeenTieBreaker.name: FirstSeenTieBreaker,
    NameTieBreaker.name: NameTieBreaker,
}


def get_tie_breaker(name: str) -> BaseTieBreaker:
    try:
        return _TIE_BREAKERS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown tie-break model '{name}'. Expected one of: {', '.join(sorted(_TIE_BREAKERS))}")
