"""FunnelSync — Canonical Taxonomy.

Closed enumerations shared by every layer: platforms, canonical funnel
categories, and the data-source tags a stored summary may carry.
Vendor strings are resolved into these once, at parse time.
"""

from enum import Enum
from typing import Dict, FrozenSet


class Platform(str, Enum):
    """Supported ad platforms."""

    META = "meta"
    GOOGLE = "google"


class FunnelCategory(str, Enum):
    """Canonical booking-funnel buckets every vendor event maps into."""

    CLICK_TO_CALL = "click_to_call"
    LEAD = "lead"
    BOOKING_STEP_1 = "booking_step_1"
    BOOKING_STEP_2 = "booking_step_2"
    BOOKING_STEP_3 = "booking_step_3"
    PURCHASE = "purchase"


BOOKING_STEPS = (
    FunnelCategory.BOOKING_STEP_1,
    FunnelCategory.BOOKING_STEP_2,
    FunnelCategory.BOOKING_STEP_3,
)


class DataSource(str, Enum):
    """Which pipeline path produced a summary."""

    # Meta
    META_API = "meta_api"
    META_API_PROXY_FUNNEL = "meta_api_proxy_funnel"
    META_CACHE_ARCHIVE = "smart_cache_archive"
    META_PROXY_FUNNEL_CACHE_ARCHIVE = "meta_proxy_funnel_smart_cache_archive"
    # Google
    GOOGLE_ADS_API = "google_ads_api"
    GOOGLE_ADS_API_PROXY_FUNNEL = "google_ads_api_proxy_funnel"
    GOOGLE_ADS_CACHE_ARCHIVE = "google_ads_smart_cache_archive"
    GOOGLE_ADS_PROXY_FUNNEL_CACHE_ARCHIVE = "google_ads_proxy_funnel_smart_cache_archive"


PLATFORM_DATA_SOURCES: Dict[Platform, FrozenSet[DataSource]] = {
    Platform.META: frozenset(
        {
            DataSource.META_API,
            DataSource.META_API_PROXY_FUNNEL,
            DataSource.META_CACHE_ARCHIVE,
            DataSource.META_PROXY_FUNNEL_CACHE_ARCHIVE,
        }
    ),
    Platform.GOOGLE: frozenset(
        {
            DataSource.GOOGLE_ADS_API,
            DataSource.GOOGLE_ADS_API_PROXY_FUNNEL,
            DataSource.GOOGLE_ADS_CACHE_ARCHIVE,
            DataSource.GOOGLE_ADS_PROXY_FUNNEL_CACHE_ARCHIVE,
        }
    ),
}


def live_data_source(platform: Platform, proxied: bool = False) -> DataSource:
    """Tag for a summary built straight from a vendor fetch."""
    if platform == Platform.META:
        return DataSource.META_API_PROXY_FUNNEL if proxied else DataSource.META_API
    return (
        DataSource.GOOGLE_ADS_API_PROXY_FUNNEL
        if proxied
        else DataSource.GOOGLE_ADS_API
    )


def archive_data_source(platform: Platform, proxied: bool = False) -> DataSource:
    """Tag for a summary migrated from the current-period cache."""
    if platform == Platform.META:
        return (
            DataSource.META_PROXY_FUNNEL_CACHE_ARCHIVE
            if proxied
            else DataSource.META_CACHE_ARCHIVE
        )
    return (
        DataSource.GOOGLE_ADS_PROXY_FUNNEL_CACHE_ARCHIVE
        if proxied
        else DataSource.GOOGLE_ADS_CACHE_ARCHIVE
    )


def is_proxy_data_source(data_source: str) -> bool:
    """True if the tag marks booking steps taken from proxy events."""
    return "proxy_funnel" in (data_source or "")


def is_valid_data_source(platform: str, data_source: str) -> bool:
    """True if `data_source` belongs to the platform's enumeration."""
    try:
        allowed = PLATFORM_DATA_SOURCES[Platform(platform)]
    except ValueError:
        return False
    return data_source in {d.value for d in allowed}
