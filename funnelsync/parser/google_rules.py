"""FunnelSync — Google Ads Conversion Rules.

Google conversion actions are named by whoever configured the account, so
names arrive as free text ("Step 1 w BE", "Rezerwacja", "Phone call").
Exact names are tried first; substring patterns are a second tier for
names no exact rule claimed. Booking-engine step names never count as
purchases.
"""

from funnelsync.core.taxonomy import FunnelCategory, Platform
from funnelsync.parser.rules import CategoryRule, PlatformRules

BOOKING_STEP_MARKERS = ("step", "krok", "booking engine", "booking_step")

GOOGLE_RULES = PlatformRules(
    platform=Platform.GOOGLE,
    rules=(
        CategoryRule(
            FunnelCategory.PURCHASE,
            synonyms=(
                "purchase",
                "zakup",
                "rezerwacja",
                "reservation",
                "booking",
                "purchase_conversion",
            ),
            patterns=("rezerwacja", "reservation", "zakup", "purchase"),
            excludes=BOOKING_STEP_MARKERS,
        ),
        CategoryRule(
            FunnelCategory.CLICK_TO_CALL,
            synonyms=(
                "click_to_call",
                "phone_call",
                "phone call",
                "calls from ads",
                "call_conversion",
                "phone_click",
                "telefon",
            ),
            patterns=("telefon", "phone", "dzwonienie", "call"),
        ),
        CategoryRule(
            FunnelCategory.LEAD,
            synonyms=(
                "lead",
                "submit lead form",
                "form_submit",
                "contact_form",
                "email",
                "email_click",
                "mailto",
            ),
            patterns=("formularz", "e-mail", "email", "mail", "kontakt", "contact", "lead"),
            excludes=BOOKING_STEP_MARKERS,
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_1,
            synonyms=("step 1 w be", "booking_step_1", "booking step 1", "krok 1", "1 krok"),
            patterns=("step 1", "step1", "krok 1", "1 krok", "pierwszy krok", "pierwszy_krok"),
            proxies=("search",),
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_2,
            synonyms=("step 2 w be", "booking_step_2", "booking step 2", "krok 2", "2 krok"),
            patterns=("step 2", "step2", "krok 2", "2 krok", "drugi krok", "drugi_krok"),
            proxies=("view_item", "view_content"),
        ),
        CategoryRule(
            FunnelCategory.BOOKING_STEP_3,
            synonyms=("step 3 w be", "booking_step_3", "booking step 3", "krok 3", "3 krok"),
            patterns=("step 3", "step3", "krok 3", "3 krok", "trzeci krok", "trzeci_krok"),
            proxies=("begin_checkout", "initiate_checkout"),
        ),
    ),
    ignored=frozenset(
        {
            "page_view",
            "engaged user",
            "add_to_cart",
            "local actions - directions",
            "store visits",
        }
    ),
)
