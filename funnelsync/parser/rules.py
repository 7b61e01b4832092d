"""FunnelSync — Conversion Rule Types.

A CategoryRule describes how one canonical funnel bucket is resolved from
a vendor's action types:

  synonyms   exact action types naming the same physical event, in
             priority order. Only the first one present is counted.
  patterns   lowercase substrings tried when no synonym is present; used
             for free-text vendor names. Never used for purchases on Meta.
  excludes   substrings that disqualify a pattern match.
  proxies    stand-in events used when nothing direct is present. A value
             taken from a proxy is flagged as an approximation.
"""

from typing import Dict, FrozenSet, Tuple

from funnelsync.core.taxonomy import FunnelCategory, Platform


class CategoryRule:
    """Resolution rule for a single canonical category."""

    def __init__(
        self,
        category: FunnelCategory,
        synonyms: Tuple[str, ...] = (),
        patterns: Tuple[str, ...] = (),
        excludes: Tuple[str, ...] = (),
        proxies: Tuple[str, ...] = (),
    ):
        self.category = category
        self.synonyms = tuple(s.lower() for s in synonyms)
        self.patterns = tuple(p.lower() for p in patterns)
        self.excludes = tuple(e.lower() for e in excludes)
        self.proxies = tuple(p.lower() for p in proxies)

    def allows(self, action_type: str) -> bool:
        """False if the action type carries an excluded substring."""
        return not any(e in action_type for e in self.excludes)

    def __repr__(self) -> str:
        return f"<CategoryRule {self.category.value} ({len(self.synonyms)} synonyms)>"


class PlatformRules:
    """The full rule table for one platform.

    `rules` are evaluated in order; an action type chosen by one category
    is unavailable to every later one.
    """

    def __init__(
        self,
        platform: Platform,
        rules: Tuple[CategoryRule, ...],
        ignored: FrozenSet[str] = frozenset(),
    ):
        self.platform = platform
        self.rules = rules
        self.ignored = frozenset(i.lower() for i in ignored)
        self.by_category: Dict[FunnelCategory, CategoryRule] = {
            r.category: r for r in rules
        }

    def known_types(self) -> FrozenSet[str]:
        """Every exact action type some rule (or the ignore list) recognises."""
        known = set(self.ignored)
        for rule in self.rules:
            known.update(rule.synonyms)
            known.update(rule.proxies)
        return frozenset(known)
