"""FunnelSync — Persistent Models.

Tables:
  - ad_accounts            client identities per platform
  - conversion_overrides   per-account custom action → category mapping
  - period_summaries       permanent archive, one row per closed period
  - current_period_cache   short-TTL cache for the in-progress period
  - validation_issues      advisory anomaly findings
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(SQLModel, table=True):
    """A client's identity on one ad platform.

    The credential itself lives with the token module; only a reference
    is stored here.
    """

    __tablename__ = "ad_accounts"
    __table_args__ = (
        UniqueConstraint("client_id", "platform", "account_id", name="uq_ad_account"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True)
    platform: str = Field(index=True, description="meta | google")
    account_id: str = Field(description="act_… for Meta, customer id for Google")
    credential_ref: str = Field(default="", description="Key the token module resolves")
    manager_account_id: Optional[str] = Field(
        default=None, description="Google login-customer-id when accessed via an MCC"
    )
    earliest_activity: Optional[date] = None
    enabled: bool = True


class ConversionOverride(SQLModel, table=True):
    """Maps an account-specific action type onto a canonical category.

    When any override for a category applies to a campaign, that category is
    resolved from overrides only.
    """

    __tablename__ = "conversion_overrides"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True)
    platform: str = Field(index=True)
    account_id: Optional[str] = Field(
        default=None, description="None = all of the client's accounts on the platform"
    )
    action_type: str = Field(description="Custom pixel event / conversion action name")
    category: str = Field(description="FunnelCategory value")
    campaign_pattern: Optional[str] = Field(
        default=None, description="Case-insensitive regex on campaign name"
    )
    priority: int = Field(default=0, description="Lower wins among synonyms")


class PeriodSummary(SQLModel, table=True):
    """Durable aggregate for one closed week or month."""

    __tablename__ = "period_summaries"
    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "summary_type",
            "summary_date",
            "platform",
            name="uq_period_summary",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True)
    platform: str = Field(index=True)
    summary_type: str = Field(index=True, description="weekly | monthly")
    summary_date: date = Field(index=True, description="Canonical period start")

    total_spend: float = 0.0
    total_impressions: int = 0
    total_clicks: int = 0
    total_conversions: float = 0.0
    average_ctr: float = 0.0
    average_cpc: float = 0.0
    average_cpa: float = 0.0
    roas: float = 0.0
    cost_per_reservation: float = 0.0

    click_to_call: int = 0
    lead: int = 0
    purchase: int = 0
    purchase_value: float = 0.0
    booking_step_1: int = 0
    booking_step_2: int = 0
    booking_step_3: int = 0

    campaign_data: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    data_source: str = Field(default="")
    last_updated: datetime = Field(default_factory=_utcnow)


class CurrentPeriodCache(SQLModel, table=True):
    """Snapshot of the in-progress period, overwritten on every refresh."""

    __tablename__ = "current_period_cache"
    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "platform",
            "period_type",
            "period_id",
            name="uq_current_period_cache",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(index=True)
    platform: str = Field(index=True)
    period_type: str = Field(description="weekly | monthly")
    period_id: str = Field(index=True, description="YYYY-MM or YYYY-Www")
    period_start: date
    cache_data: dict = Field(default_factory=dict, sa_column=Column(JSON))
    last_updated: datetime = Field(default_factory=_utcnow)


class ValidationIssue(SQLModel, table=True):
    """Advisory finding from the anomaly validator. Never blocks anything."""

    __tablename__ = "validation_issues"

    id: Optional[int] = Field(default=None, primary_key=True)
    summary_id: Optional[int] = Field(default=None, index=True)
    client_id: str = Field(index=True)
    platform: str = Field(default="")
    summary_type: str = Field(default="")
    summary_date: Optional[date] = None
    kind: str = Field(index=True)
    detail: str = Field(default="")
    detected_at: datetime = Field(default_factory=_utcnow)
