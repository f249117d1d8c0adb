from dataclasses import dataclass
from typing import Iterable

from .forwarder import ProxyForwarder

CATCH_ALL = "/"


@dataclass(frozen=True)
class RouteBinding:
    prefix: str
    forwarder: ProxyForwarder


def prefix_matches(prefix: str, path: str) -> bool:
    """Segment-aligned prefix match: `/v2` matches `/v2` and `/v2/x`, not `/v2x`."""
    if prefix == CATCH_ALL:
        return True
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


class Router:
    """
    Ordered prefix table. The first matching binding wins, so more specific
    prefixes must be declared first; the catch-all `/` has to come last.
    """
    def __init__(self, bindings: Iterable[RouteBinding]):
        self.bindings = tuple(bindings)
        if not self.bindings or self.bindings[-1].prefix != CATCH_ALL:
            raise ValueError("last route binding must be the catch-all '/'")

    def route(self, path: str) -> ProxyForwarder:
        path = path or CATCH_ALL
        for binding in self.bindings:
            if prefix_matches(binding.prefix, path):
                return binding.forwarder
        # unreachable: the catch-all matches everything
        return self.bindings[-1].forwarder
