"""
Conversion parser tests.

Guards against:
1. Double counting one physical event reported under several aliases
2. Lost purchase value when several value entries exist
3. Overrides and standard rules counting the same action
4. Booking-step names leaking into purchases on Google
5. Proxy usage going unflagged
"""

from datetime import date

from funnelsync.core.taxonomy import FunnelCategory, Platform
from funnelsync.models.raw_models import ActionEntry, RawInsightRecord
from funnelsync.models.store_models import ConversionOverride
from funnelsync.parser.conversion_parser import (
    ConversionParser,
    build_action_map,
    parse_records,
)
from funnelsync.parser.overrides import OverrideTable, load_overrides


def _record(platform=Platform.META, actions=(), values=(), name="Summer Campaign", **kw):
    return RawInsightRecord(
        platform=platform,
        campaign_id="c1",
        campaign_name=name,
        date_start=date(2025, 8, 1),
        date_stop=date(2025, 8, 31),
        actions=[ActionEntry(action_type=t, value=str(v)) for t, v in actions],
        action_values=[ActionEntry(action_type=t, value=str(v)) for t, v in values],
        **kw,
    )


def _override(action_type, category, priority=0, pattern=None, account_id=None):
    return ConversionOverride(
        client_id="hotel-a",
        platform="meta",
        account_id=account_id,
        action_type=action_type,
        category=category,
        priority=priority,
        campaign_pattern=pattern,
    )


meta = ConversionParser.for_platform(Platform.META)
google = ConversionParser.for_platform(Platform.GOOGLE)


# ---------------------------------------------------------------------------
# Action map
# ---------------------------------------------------------------------------

def test_action_map_sums_repeated_types_and_skips_bad_values():
    entries = [
        ActionEntry(action_type="Purchase", value="2"),
        ActionEntry(action_type="purchase", value="1"),
        ActionEntry(action_type="lead", value="abc"),
        ActionEntry(action_type="search", value="-4"),
    ]
    assert build_action_map(entries) == {"purchase": 3.0}


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

def test_purchase_aliases_are_not_double_counted():
    rec = _record(actions=[("purchase", 3), ("offsite_conversion.fb_pixel_purchase", 3)])
    assert meta.parse(rec).purchase == 3


def test_omni_purchase_preferred_over_pixel_purchase():
    rec = _record(actions=[("offsite_conversion.fb_pixel_purchase", 4), ("omni_purchase", 5)])
    assert meta.parse(rec).purchase == 5


def test_purchase_value_accumulates_entries():
    rec = _record(
        actions=[("purchase", 2)],
        values=[("purchase", "100.00"), ("purchase", "50.00")],
    )
    assert meta.parse(rec).purchase_value == 150.0


def test_purchase_value_falls_back_to_first_synonym_with_values():
    rec = _record(
        actions=[("omni_purchase", 1)],
        values=[("offsite_conversion.fb_pixel_purchase", "80.50")],
    )
    funnel = meta.parse(rec)
    assert funnel.purchase == 1
    assert funnel.purchase_value == 80.5


def test_purchase_requires_exact_type():
    rec = _record(actions=[("purchase_intent_custom", 7)])
    funnel = meta.parse(rec)
    assert funnel.purchase == 0
    assert [a.action_type for a in funnel.unmapped_actions] == ["purchase_intent_custom"]


def test_click_to_call_and_lead_counted_once():
    rec = _record(
        actions=[
            ("click_to_call", 4),
            ("click_to_call_call_confirm", 4),
            ("lead", 2),
            ("offsite_conversion.fb_pixel_lead", 2),
        ]
    )
    funnel = meta.parse(rec)
    assert funnel.click_to_call == 4
    assert funnel.lead == 2


def test_meta_standard_events_are_proxied_booking_steps():
    rec = _record(
        actions=[
            ("omni_search", 40),
            ("search", 40),
            ("view_content", 25),
            ("initiate_checkout", 9),
        ]
    )
    funnel = meta.parse(rec)
    assert (funnel.booking_step_1, funnel.booking_step_2, funnel.booking_step_3) == (40, 25, 9)
    assert funnel.proxied_steps == ["booking_step_1", "booking_step_2", "booking_step_3"]


def test_ignored_engagement_actions_are_not_ambiguities():
    rec = _record(actions=[("link_click", 120), ("post_engagement", 300)])
    assert meta.parse(rec).unmapped_actions == []


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------

def test_override_custom_events_replace_proxies():
    overrides = OverrideTable(
        [
            _override("offsite_conversion.custom.111", FunnelCategory.BOOKING_STEP_1.value),
            _override("offsite_conversion.custom.222", FunnelCategory.BOOKING_STEP_2.value),
        ]
    )
    rec = _record(
        actions=[
            ("offsite_conversion.custom.111", 30),
            ("offsite_conversion.custom.222", 12),
            ("search", 90),
            ("initiate_checkout", 4),
        ]
    )
    funnel = meta.parse(rec, overrides)
    assert funnel.booking_step_1 == 30
    assert funnel.booking_step_2 == 12
    # Step 3 has no override, so the proxy still applies there
    assert funnel.booking_step_3 == 4
    assert funnel.proxied_steps == ["booking_step_3"]


def test_overridden_category_ignores_standard_synonyms():
    overrides = OverrideTable([_override("offsite_conversion.custom.999", "purchase")])
    rec = _record(actions=[("purchase", 10)])
    assert meta.parse(rec, overrides).purchase == 0


def test_override_action_never_counted_by_standard_rules():
    # "search" is claimed as a lead by override, so step 1 must not use it
    overrides = OverrideTable([_override("search", "lead")])
    rec = _record(actions=[("search", 6)])
    funnel = meta.parse(rec, overrides)
    assert funnel.lead == 6
    assert funnel.booking_step_1 == 0


def test_override_priority_picks_first_present():
    overrides = OverrideTable(
        [
            _override("offsite_conversion.custom.b", "purchase", priority=2),
            _override("offsite_conversion.custom.a", "purchase", priority=1),
        ]
    )
    rec = _record(
        actions=[("offsite_conversion.custom.a", 3), ("offsite_conversion.custom.b", 3)],
        values=[("offsite_conversion.custom.a", "300")],
    )
    funnel = meta.parse(rec, overrides)
    assert funnel.purchase == 3
    assert funnel.purchase_value == 300.0


def test_override_scoped_by_campaign_pattern():
    overrides = OverrideTable(
        [_override("offsite_conversion.custom.777", "booking_step_1", pattern="^brand")]
    )
    rec_brand = _record(actions=[("offsite_conversion.custom.777", 5)], name="Brand | Summer")
    rec_other = _record(actions=[("offsite_conversion.custom.777", 5)], name="Prospecting")
    assert meta.parse(rec_brand, overrides).booking_step_1 == 5
    assert meta.parse(rec_other, overrides).booking_step_1 == 0


def test_invalid_override_rows_are_skipped():
    overrides = OverrideTable(
        [
            _override("x", "not_a_category"),
            _override("y", "lead", pattern="([unclosed"),
        ]
    )
    assert not overrides


def test_load_overrides_includes_client_wide_rows(session):
    session.add_all(
        [
            _override("custom.all", "lead"),
            _override("custom.mine", "purchase", account_id="act_123"),
            _override("custom.other", "purchase", account_id="act_999"),
        ]
    )
    session.commit()
    table = load_overrides(session, "hotel-a", "meta", "act_123")
    mapping = table.for_campaign("Any")
    assert mapping[FunnelCategory.LEAD] == ["custom.all"]
    assert mapping[FunnelCategory.PURCHASE] == ["custom.mine"]


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------

def test_google_direct_step_names():
    rec = _record(
        platform=Platform.GOOGLE,
        actions=[("Step 1 w BE", 50), ("Step 2 w BE", 20), ("Step 3 w BE", 8)],
    )
    funnel = google.parse(rec)
    assert (funnel.booking_step_1, funnel.booking_step_2, funnel.booking_step_3) == (50, 20, 8)
    assert funnel.proxied_steps == []


def test_google_pattern_tier_takes_largest_match():
    rec = _record(
        platform=Platform.GOOGLE,
        actions=[("Rezerwacja - booking engine confirm", 3), ("Rezerwacja hotel", 7)],
        values=[("Rezerwacja hotel", "1400")],
    )
    funnel = google.parse(rec)
    # The booking engine name is excluded from purchases
    assert funnel.purchase == 7
    assert funnel.purchase_value == 1400.0


def test_google_step_names_never_count_as_purchase():
    rec = _record(platform=Platform.GOOGLE, actions=[("Purchase step 2 krok", 11)])
    funnel = google.parse(rec)
    assert funnel.purchase == 0
    assert funnel.booking_step_2 == 11


def test_google_contact_patterns():
    rec = _record(
        platform=Platform.GOOGLE,
        actions=[("Calls from website", 4), ("Formularz kontaktowy", 2)],
    )
    funnel = google.parse(rec)
    assert funnel.click_to_call == 4
    assert funnel.lead == 2


def test_google_fractional_counts_are_rounded():
    rec = _record(platform=Platform.GOOGLE, actions=[("purchase", "2.6")])
    assert google.parse(rec).purchase == 3


def test_google_proxies_flagged():
    rec = _record(platform=Platform.GOOGLE, actions=[("begin_checkout", 5)])
    funnel = google.parse(rec)
    assert funnel.booking_step_3 == 5
    assert funnel.proxied_steps == ["booking_step_3"]


def test_parse_records_keeps_core_metrics():
    rec = _record(actions=[("purchase", 1)], spend=100.0, impressions=1000, clicks=40)
    [campaign] = parse_records(Platform.META, [rec])
    assert campaign.spend == 100.0
    assert campaign.impressions == 1000
    assert campaign.conversions == 1.0
