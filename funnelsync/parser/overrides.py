"""FunnelSync — Per-Account Conversion Overrides.

Some accounts track funnel events with custom pixel events or custom
conversion actions instead of the vendor's standard taxonomy. An override
table maps those action types onto canonical categories, optionally only
for campaigns whose name matches a pattern.
"""

import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from funnelsync.core.logging import get_logger
from funnelsync.core.taxonomy import FunnelCategory
from funnelsync.models.store_models import ConversionOverride

logger = get_logger("parser.overrides")


class OverrideTable:
    """Overrides applicable to one account."""

    def __init__(self, overrides: Iterable[ConversionOverride] = ()):
        self._entries: List[tuple[int, FunnelCategory, str, Optional[re.Pattern]]] = []
        for o in overrides:
            try:
                category = FunnelCategory(o.category)
            except ValueError:
                logger.warning(
                    f"Ignoring override {o.action_type!r}: unknown category {o.category!r}"
                )
                continue
            pattern = None
            if o.campaign_pattern:
                try:
                    pattern = re.compile(o.campaign_pattern, re.IGNORECASE)
                except re.error as e:
                    logger.warning(
                        f"Ignoring override {o.action_type!r}: bad campaign pattern ({e})"
                    )
                    continue
            self._entries.append((o.priority, category, o.action_type.lower(), pattern))
        self._entries.sort(key=lambda e: e[0])

    def __bool__(self) -> bool:
        return bool(self._entries)

    def for_campaign(self, campaign_name: str) -> Dict[FunnelCategory, List[str]]:
        """Category → override action types (priority order) for a campaign."""
        applicable: Dict[FunnelCategory, List[str]] = defaultdict(list)
        for _, category, action_type, pattern in self._entries:
            if pattern is not None and not pattern.search(campaign_name or ""):
                continue
            if action_type not in applicable[category]:
                applicable[category].append(action_type)
        return dict(applicable)


def load_overrides(
    session: Session, client_id: str, platform: str, account_id: str
) -> OverrideTable:
    """Overrides for one account, including client-wide ones (account_id NULL)."""
    rows = session.exec(
        select(ConversionOverride).where(
            ConversionOverride.client_id == client_id,
            ConversionOverride.platform == platform,
        )
    ).all()
    return OverrideTable(
        o for o in rows if o.account_id is None or o.account_id == account_id
    )
