"""
Site registry.

Maps raw site identifiers (with aliases and accented spellings) to canonical
site keys and owns the per-site stats. get_or_create is the only place a new
site's stats come into existence.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Iterator, Mapping

from .models import SiteStats

DEFAULT_SITE = "main"


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class SiteRegistry:
    """Resolves site identifiers and holds one SiteStats per site."""

    def __init__(
        self,
        default_site: str = DEFAULT_SITE,
        aliases: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self.default_site = default_site.strip().lower()
        self._aliases: dict[str, str] = {}
        self._register(self.default_site, self.default_site)
        for site_key, spellings in (aliases or {}).items():
            canonical = site_key.strip().lower()
            self._register(canonical, canonical)
            for spelling in spellings:
                self._register(spelling, canonical)
        self._sites: dict[str, SiteStats] = {}

    def _register(self, spelling: str, canonical: str) -> None:
        key = spelling.strip().lower()
        self._aliases[key] = canonical
        self._aliases.setdefault(strip_accents(key), canonical)

    @property
    def known_sites(self) -> tuple[str, ...]:
        return tuple(sorted(set(self._aliases.values())))

    def resolve(self, raw: object) -> str | None:
        """Canonical site key for raw, the default site when raw is empty, else None."""
        if raw is None:
            return self.default_site
        if not isinstance(raw, str):
            return None
        key = raw.strip().lower()
        if not key:
            return self.default_site
        return self._aliases.get(key) or self._aliases.get(strip_accents(key))

    # --- Stats ownership ---

    def get_or_create(self, site_key: str) -> SiteStats:
        stats = self._sites.get(site_key)
        if stats is None:
            stats = SiteStats()
            self._sites[site_key] = stats
        return stats

    def get(self, site_key: str) -> SiteStats | None:
        return self._sites.get(site_key)

    def replace_all(self, sites: Mapping[str, SiteStats]) -> None:
        self._sites = dict(sites)

    def items(self) -> Iterator[tuple[str, SiteStats]]:
        return iter(list(self._sites.items()))

    def __len__(self) -> int:
        return len(self._sites)
