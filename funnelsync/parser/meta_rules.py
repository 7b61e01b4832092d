"""FunnelSync — Meta Conversion Rules.

Meta reports one physical event under several action types at once:
the unified `omni_*` type, the pixel type `offsite_conversion.fb_pixel_*`
and often a bare name (`purchase`, `search`). Each synonym tuple below lists
those aliases in priority order, so one purchase reported as both
`purchase` and `offsite_conversion.fb_pixel_purchase` counts once.

Booking steps have no direct standard event on Meta: the real steps are
per-account custom events, configured as overrides. The standard
search / view_content / initiate_checkout events are proxies.
"""

from funnelsync.core.taxonomy import FunnelCategory, Platform
from funnelsync.parser.rules import CategoryRule, PlatformRules

META_RULES = PlatformRules(
    platform=Platform.META,
    rules=(
        CategoryRule(
            FunnelCategory.PURCHASE,
            synonyms=(
                "omni_purchase",
                "purchase",
                "offsite_conversion.fb_pixel_purchase",
                "onsite_web_purchase",
                "onsite_web_app_purchase",
            ),
        ),
        CategoryRule(
            FunnelCategory.CLICK_TO_CALL,
            synonyms=(
                "click_to_call_call_confirm",
                "click_to_call_native_call_placed",
                "click_to_call",
            ),
        ),
        CategoryRule(
            FunnelCategory.LEAD,
            synonyms=(
                "lead",
                "onsite_conversion.lead_grouped",
                "offsite_conversion.fb_pixel_lead",
            ),
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_1,
            proxies=(
                "omni_search",
                "offsite_conversion.fb_pixel_search",
                "search",
            ),
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_2,
            proxies=(
                "omni_view_content",
                "offsite_conversion.fb_pixel_view_content",
                "view_content",
            ),
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_3,
            proxies=(
                "omni_initiated_checkout",
                "offsite_conversion.fb_pixel_initiate_checkout",
                "initiate_checkout",
            ),
        ),
    ),
    # Engagement and delivery actions: known, deliberately not funnel events
    ignored=frozenset(
        {
            "link_click",
            "landing_page_view",
            "omni_landing_page_view",
            "page_engagement",
            "post_engagement",
            "post_reaction",
            "like",
            "comment",
            "post",
            "onsite_conversion.post_save",
            "photo_view",
            "video_view",
            "omni_add_to_cart",
            "add_to_cart",
            "offsite_conversion.fb_pixel_add_to_cart",
            "onsite_conversion.messaging_conversation_started_7d",
            "onsite_conversion.messaging_first_reply",
        }
    ),
)
