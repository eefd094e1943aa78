from __future__ import annotations

import logging
import re
import threading
from typing import Iterable, Optional, Tuple

from cachetools import LRUCache, cached

from .models import Mapping


@cached(cache=LRUCache(maxsize=1024), lock=threading.Lock())
def compile_wildcard(pattern: str) -> "re.Pattern[str]":
    """
    Compile a mapping host pattern into an anchored regular expression.

    Inputs:
      - pattern: Host pattern where '*' stands for any run of characters,
        including '.' label separators and the empty run.

    Outputs:
      - re.Pattern: Pattern that must match the whole subdomain.

    Every character other than '*' is matched literally.

    Example:
      >>> bool(compile_wildcard("*.cdn").match("a.b.cdn"))
      True
      >>> bool(compile_wildcard("*.cdn").match("cdn"))
      False
    """
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(r"\A" + body + r"\Z", re.DOTALL)

class DomainMatcher:
    """
    Resolves a queried hostname to a configured Mapping.

    Inputs (constructor):
      - mappings: Ordered mappings; disabled entries are dropped eagerly.
      - domain: Default domain suffix (e.g. 'test'), without leading dot.
      - logger: Optional logging.Logger (default "wildmask.matcher").

    Exact host matches always outrank wildcard matches. Within each pass the
    first mapping in list order wins.

    The working set is an immutable tuple replaced wholesale by
    update_mappings(), so a concurrent match() sees either the old or the new
    set in full.

    Example:
      >>> m = Mapping(id="1", host="api", target="127.0.0.1", port=3000)
      >>> DomainMatcher([m], "test").match("api.test.") is m
      True
    """

    def __init__(
        self,
        mappings: Iterable[Mapping],
        domain: str,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("wildmask.matcher")
        self._domain = domain
        self._mappings: Tuple[Mapping, ...] = self._filter(mappings)

    @staticmethod
    def _filter(mappings: Iterable[Mapping]) -> Tuple[Mapping, ...]:
        return tuple(m for m in mappings if m.enabled)

    @property
    def domain(self) -> str:
        return self._domain

    def update_mappings(self, mappings: Iterable[Mapping]) -> None:
        """Replace the working set with the enabled subset of mappings."""
        active = self._filter(mappings)
        self._mappings = active
        self.logger.debug("Matcher now holds %d enabled mappings", len(active))

    def get_all_mappings(self) -> Tuple[Mapping, ...]:
        return self._mappings

    def match(self, hostname: str) -> Optional[Mapping]:
        """
        Find the mapping responsible for hostname.

        Inputs:
          - hostname: Queried name, with or without one trailing dot.

        Outputs:
          - Mapping or None when the name is outside the domain or unmapped.
        """
        # Single read so both passes use the same table.
        mappings = self._mappings

        name = hostname[:-1] if hostname.endswith(".") else hostname
        suffix = "." + self._domain
        if not name.endswith(suffix):
            return None
        subdomain = name[: -len(suffix)]

        for mapping in mappings:
            if mapping.host == subdomain:
                return mapping

        for mapping in mappings:
            if mapping.is_wildcard and compile_wildcard(mapping.host).match(
                subdomain
            ):
                return mapping

        return None
