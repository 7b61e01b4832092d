"""FunnelSync — Conversion Parser.

Turns one campaign's vendor action arrays into a CanonicalFunnelRecord.

Resolution order per category:
  1. overrides  if any override applies to the category for this campaign,
                only override action types are considered
  2. synonyms   first exact synonym present (entries of that type summed)
  3. patterns   substring tier for free-text names no exact rule claimed;
                the largest value among names matching the first hit wins
  4. proxies    stand-in events, recorded in `proxied_steps`

An action type chosen by one category is never counted by another, and
override action types are invisible to every standard rule.
"""

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from funnelsync.core.logging import get_logger
from funnelsync.core.taxonomy import BOOKING_STEPS, FunnelCategory, Platform
from funnelsync.models.funnel_models import (
    CampaignMetrics,
    CanonicalFunnelRecord,
    ParseAmbiguity,
)
from funnelsync.models.raw_models import ActionEntry, RawInsightRecord
from funnelsync.parser.google_rules import GOOGLE_RULES
from funnelsync.parser.meta_rules import META_RULES
from funnelsync.parser.overrides import OverrideTable
from funnelsync.parser.rules import CategoryRule, PlatformRules

logger = get_logger("parser.conversions")

RULES_BY_PLATFORM: Dict[Platform, PlatformRules] = {
    Platform.META: META_RULES,
    Platform.GOOGLE: GOOGLE_RULES,
}


def _parse_value(entry: ActionEntry) -> Optional[float]:
    """Numeric value of an entry, or None if it is unusable."""
    try:
        value = float(entry.value)
    except (TypeError, ValueError):
        logger.debug(f"Skipping non-numeric value for {entry.action_type}: {entry.value!r}")
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        logger.debug(f"Skipping invalid value for {entry.action_type}: {entry.value!r}")
        return None
    return value


def build_action_map(entries: Iterable[ActionEntry]) -> Dict[str, float]:
    """action_type (lowercased) → summed value of all its entries."""
    totals: Dict[str, float] = defaultdict(float)
    for entry in entries:
        value = _parse_value(entry)
        if value is None:
            continue
        totals[entry.action_type.strip().lower()] += value
    return dict(totals)


class ConversionParser:
    """Maps vendor action arrays onto the canonical funnel for one platform."""

    def __init__(self, rules: PlatformRules):
        self.rules = rules
        self._known = rules.known_types()

    @classmethod
    def for_platform(cls, platform: Platform) -> "ConversionParser":
        return cls(RULES_BY_PLATFORM[Platform(platform)])

    # ── Resolution tiers ──

    def _resolve_standard(
        self,
        rule: CategoryRule,
        counts: Dict[str, float],
        unavailable: Set[str],
    ) -> tuple[Optional[str], bool]:
        """(chosen action type, came from a proxy) for a standard rule."""
        for synonym in rule.synonyms:
            if synonym in counts and synonym not in unavailable:
                return synonym, False

        for pattern in rule.patterns:
            candidates = [
                name
                for name in counts
                if pattern in name
                and name not in unavailable
                and name not in self.rules.ignored
                and rule.allows(name)
            ]
            if candidates:
                return max(candidates, key=lambda n: counts[n]), False

        for proxy in rule.proxies:
            if proxy in counts and proxy not in unavailable:
                return proxy, True

        return None, False

    @staticmethod
    def _resolve_override(
        override_types: List[str], counts: Dict[str, float], claimed: Set[str]
    ) -> Optional[str]:
        for action_type in override_types:
            if action_type in counts and action_type not in claimed:
                return action_type
        return None

    def _purchase_value(
        self,
        chosen: Optional[str],
        candidates: List[str],
        values: Dict[str, float],
    ) -> float:
        if chosen is not None and chosen in values:
            return values[chosen]
        for action_type in candidates:
            if action_type in values:
                return values[action_type]
        return 0.0

    # ── Public API ──

    def parse(
        self, record: RawInsightRecord, overrides: Optional[OverrideTable] = None
    ) -> CanonicalFunnelRecord:
        counts = build_action_map(record.actions)
        values = build_action_map(record.action_values)

        applicable = overrides.for_campaign(record.campaign_name) if overrides else {}
        override_types = {t for types in applicable.values() for t in types}

        claimed: Set[str] = set()
        resolved: Dict[FunnelCategory, float] = {}
        chosen_by_category: Dict[FunnelCategory, Optional[str]] = {}
        proxied: List[str] = []

        for rule in self.rules.rules:
            category = rule.category
            if category in applicable:
                chosen = self._resolve_override(applicable[category], counts, claimed)
                from_proxy = False
            else:
                chosen, from_proxy = self._resolve_standard(
                    rule, counts, claimed | override_types
                )

            chosen_by_category[category] = chosen
            if chosen is None:
                continue
            claimed.add(chosen)
            resolved[category] = counts[chosen]
            if from_proxy and category in BOOKING_STEPS:
                proxied.append(category.value)

        purchase_rule = self.rules.by_category.get(FunnelCategory.PURCHASE)
        value_candidates = list(
            applicable.get(FunnelCategory.PURCHASE)
            or (purchase_rule.synonyms if purchase_rule else ())
        )
        purchase_value = self._purchase_value(
            chosen_by_category.get(FunnelCategory.PURCHASE), value_candidates, values
        )

        unmapped = [
            ParseAmbiguity(action_type=name, value=value)
            for name, value in counts.items()
            if name not in claimed and name not in self._known and name not in override_types
        ]
        for ambiguity in unmapped:
            logger.debug(
                f"Unmapped action type {ambiguity.action_type!r} "
                f"in campaign {record.campaign_id}",
                extra={"platform": self.rules.platform.value},
            )

        def count(category: FunnelCategory) -> int:
            return int(round(resolved.get(category, 0.0)))

        return CanonicalFunnelRecord(
            click_to_call=count(FunnelCategory.CLICK_TO_CALL),
            lead=count(FunnelCategory.LEAD),
            purchase=count(FunnelCategory.PURCHASE),
            purchase_value=round(purchase_value, 2),
            booking_step_1=count(FunnelCategory.BOOKING_STEP_1),
            booking_step_2=count(FunnelCategory.BOOKING_STEP_2),
            booking_step_3=count(FunnelCategory.BOOKING_STEP_3),
            proxied_steps=proxied,
            unmapped_actions=unmapped,
        )

    def to_campaign_metrics(
        self, record: RawInsightRecord, overrides: Optional[OverrideTable] = None
    ) -> CampaignMetrics:
        """Parse a raw record and join the funnel with its core metrics."""
        return CampaignMetrics(
            campaign_id=record.campaign_id,
            campaign_name=record.campaign_name,
            spend=max(record.spend, 0.0),
            impressions=max(record.impressions, 0),
            clicks=max(record.clicks, 0),
            reported_conversions=record.reported_conversions,
            funnel=self.parse(record, overrides),
        )


def parse_records(
    platform: Platform,
    records: List[RawInsightRecord],
    overrides: Optional[OverrideTable] = None,
) -> List[CampaignMetrics]:
    """Parse every raw record of one fetch."""
    parser = ConversionParser.for_platform(platform)
    parsed = [parser.to_campaign_metrics(r, overrides) for r in records]
    logger.info(
        f"Parsed {len(parsed)} campaign records",
        extra={"platform": Platform(platform).value},
    )
    return parsed
