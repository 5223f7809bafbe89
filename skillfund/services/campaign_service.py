"""Campaign Service - Crowdfunding campaigns and contributions.

This module handles:
- Listing active campaigns with their creators attached
- Funding progress, amount and time-left display helpers
- Creating campaigns (project owners) and backing them (backers)

Interface Contract:
- list_active_campaigns() -> list[Campaign]
- filter_campaigns(campaigns, search) -> list[Campaign]
- create_campaign(creator_id, draft) -> Campaign
- back_campaign(campaign_id, backer_id, amount, reward_tier_id) -> Contribution
- Backend failures raise CampaignServiceError, bad input raises ValidationError

Campaign totals are kept by the client: after a contribution is stored the
campaign row is re-read and written back with a filter on the values that
were read. When another backer changed the row in between, the write
matches nothing and the read is repeated.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping

from skillfund.models import (
    Campaign,
    CampaignStatus,
    Contribution,
    CreatorSummary,
    PaymentStatus,
    RewardTier,
)
from skillfund.models.profile import as_float
from skillfund.services.backend import BackendConsumer, BackendError
from skillfund.services.query import eq, in_, is_
from skillfund.services.validation import FormReader

logger = logging.getLogger(__name__)

CAMPAIGN_CATEGORIES = [
    "Technology",
    "Creative",
    "Community",
    "Business",
    "Education",
    "Health",
    "Environment",
    "Other",
]

# Conditional total updates tried before giving up
MAX_TOTALS_ATTEMPTS = 3


class CampaignServiceError(Exception):
    """Raised when a campaign or contribution operation fails."""
    pass


@dataclass
class CampaignDraft:
    """Validated create-campaign form."""
    title: str
    description: str
    category: str
    goal_amount: float
    deadline: str
    story: str = ""
    image_url: str = ""

    def to_row(self, creator_id: str) -> dict[str, Any]:
        return {
            "creator_id": creator_id,
            "title": self.title,
            "description": self.description,
            "story": self.story or None,
            "category": self.category,
            "goal_amount": self.goal_amount,
            "deadline": self.deadline,
            "image_url": self.image_url or None,
            "status": CampaignStatus.ACTIVE.value,
        }


@dataclass
class BackingDraft:
    amount: float
    reward_tier_id: str | None = None


def calculate_progress(current: float, goal: float) -> float:
    """Percent of goal raised, capped at 100."""
    if not goal or goal <= 0:
        return 0.0
    return min((current or 0) / goal * 100, 100.0)


def format_amount(amount: float | None) -> str:
    """US dollars with thousands separators and no forced decimals."""
    value = amount or 0
    if float(value).is_integer():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def _parse_deadline(value: str) -> datetime:
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), datetime.min.time(), tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def time_left(deadline: str | None, now: datetime | None = None) -> str:
    """'Ended', 'Last day', '1 day left' or 'N days left' until a deadline."""
    if not deadline:
        return ""
    try:
        end = _parse_deadline(deadline)
    except ValueError:
        return ""
    now = now or datetime.now(timezone.utc)
    days = math.ceil((end - now).total_seconds() / 86400)
    if days < 0:
        return "Ended"
    if days == 0:
        return "Last day"
    if days == 1:
        return "1 day left"
    return f"{days} days left"


def filter_campaigns(campaigns: list[Campaign], search: str = "") -> list[Campaign]:
    term = (search or "").strip().lower()
    return [
        c for c in campaigns
        if term in c.title.lower() or term in c.description.lower()
    ]


def parse_campaign_form(form: Mapping[str, Any]) -> CampaignDraft:
    """Validate the create-campaign form.

    Raises:
        ValidationError: With one message per invalid field
    """
    reader = FormReader(form)
    title = reader.text("title", required="Title is required")
    description = reader.text("description", required="Description is required")
    category = reader.choice("category", CAMPAIGN_CATEGORIES, required="Category is required")
    goal = reader.number(
        "goal_amount",
        required="Goal amount is required",
        minimum=0,
        exclusive=True,
        minimum_message="Goal amount must be greater than 0",
    )
    deadline = reader.date("deadline", required="Deadline is required")
    image_url = reader.text("image_url")
    if image_url and not image_url.startswith(("http://", "https://")):
        reader.fail("image_url", "Image URL must start with http:// or https://")
    reader.raise_for_errors()

    return CampaignDraft(
        title=title,
        description=description,
        category=category,
        goal_amount=goal,
        deadline=deadline,
        story=reader.text("story"),
        image_url=image_url,
    )


def parse_backing_form(form: Mapping[str, Any]) -> BackingDraft:
    reader = FormReader(form)
    amount = reader.number(
        "amount", required="Amount is required", minimum=1, minimum_message="Minimum $1"
    )
    reward_tier_id = reader.text("reward_tier_id") or None
    reader.raise_for_errors()
    return BackingDraft(amount=amount, reward_tier_id=reward_tier_id)


def _same(column: str, value: Any):
    return is_(column, None) if value is None else eq(column, value)


class CampaignService(BackendConsumer):
    """Service for campaigns, reward tiers and contributions."""

    def list_active_campaigns(self) -> list[Campaign]:
        """Active campaigns, newest first, each with its creator summary."""
        try:
            rows = self.backend.select(
                "campaigns",
                filters=[eq("status", CampaignStatus.ACTIVE.value)],
                order="created_at.desc",
            )
        except BackendError as e:
            logger.error("Error fetching campaigns: %s", e)
            raise CampaignServiceError("Failed to load campaigns") from e

        campaigns = [Campaign.from_dict(row) for row in rows]
        self._attach_creators(campaigns)
        return campaigns

    def _attach_creators(self, campaigns: list[Campaign]) -> None:
        creator_ids = sorted({c.creator_id for c in campaigns if c.creator_id})
        if not creator_ids:
            return
        try:
            profiles = self.backend.select(
                "profiles",
                columns="id, full_name, avatar_url",
                filters=[in_("id", creator_ids)],
            )
        except BackendError as e:
            logger.error("Error fetching campaign creators: %s", e)
            profiles = []
        by_id = {row["id"]: CreatorSummary.from_dict(row) for row in profiles}
        for campaign in campaigns:
            campaign.creator = by_id.get(campaign.creator_id, CreatorSummary())

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        try:
            row = self.backend.select_one("campaigns", filters=[eq("id", campaign_id)])
        except BackendError as e:
            logger.error("Error fetching campaign %s: %s", campaign_id, e)
            raise CampaignServiceError("Failed to load campaign") from e
        return Campaign.from_dict(row) if row else None

    def create_campaign(self, creator_id: str, draft: CampaignDraft) -> Campaign:
        try:
            rows = self.backend.insert("campaigns", draft.to_row(creator_id))
        except BackendError as e:
            logger.error("Error creating campaign: %s", e)
            raise CampaignServiceError("Failed to create campaign. Please try again.") from e
        logger.info("Owner %s created campaign %r", creator_id, draft.title)
        return Campaign.from_dict(rows[0] if rows else draft.to_row(creator_id))

    def list_reward_tiers(self, campaign_id: str) -> list[RewardTier]:
        try:
            rows = self.backend.select(
                "reward_tiers", filters=[eq("campaign_id", campaign_id)], order="amount.asc"
            )
        except BackendError as e:
            logger.error("Error fetching reward tiers for %s: %s", campaign_id, e)
            raise CampaignServiceError("Failed to load rewards") from e
        return [RewardTier.from_dict(row) for row in rows]

    def back_campaign(
        self,
        campaign_id: str,
        backer_id: str,
        amount: float,
        reward_tier_id: str | None = None,
    ) -> Contribution:
        """Record a contribution and bump the campaign totals.

        Args:
            campaign_id: Campaign being backed
            backer_id: Signed-in backer
            amount: Pledge in dollars (>= 1)
            reward_tier_id: Optional reward the pledge claims

        Returns:
            Contribution: The stored contribution

        Raises:
            CampaignServiceError: If the campaign or reward cannot be backed
                or the contribution insert fails. A failed totals update is
                only logged.
        """
        campaign = self.get_campaign(campaign_id)
        if campaign is None or campaign.status is not CampaignStatus.ACTIVE:
            raise CampaignServiceError("This campaign is not accepting contributions.")

        tier = None
        if reward_tier_id:
            tier = self._get_reward_tier(reward_tier_id)
            if tier is None or tier.campaign_id != campaign_id:
                raise CampaignServiceError("That reward is not available for this campaign.")
            if tier.is_full:
                raise CampaignServiceError("This reward is sold out.")
            if amount < tier.amount:
                raise CampaignServiceError(
                    f"Pledge at least {format_amount(tier.amount)} for this reward."
                )

        try:
            rows = self.backend.insert(
                "contributions",
                {
                    "campaign_id": campaign_id,
                    "backer_id": backer_id,
                    "amount": amount,
                    "payment_status": PaymentStatus.COMPLETED.value,
                    "reward_tier_id": reward_tier_id,
                },
            )
        except BackendError as e:
            logger.error("Error backing campaign %s: %s", campaign_id, e)
            raise CampaignServiceError("Failed to process backing. Please try again.") from e

        self._increment("campaigns", campaign_id, {"current_amount": amount, "backers_count": 1})
        if tier is not None:
            self._increment("reward_tiers", tier.id, {"backers_count": 1})

        logger.info("Backer %s pledged %s to campaign %s", backer_id, amount, campaign_id)
        contribution = Contribution.from_dict(rows[0]) if rows else Contribution(
            id="",
            campaign_id=campaign_id,
            backer_id=backer_id,
            amount=amount,
            payment_status=PaymentStatus.COMPLETED,
            reward_tier_id=reward_tier_id,
        )
        contribution.campaign_title = campaign.title
        return contribution

    def _get_reward_tier(self, tier_id: str) -> RewardTier | None:
        try:
            row = self.backend.select_one("reward_tiers", filters=[eq("id", tier_id)])
        except BackendError as e:
            logger.error("Error fetching reward tier %s: %s", tier_id, e)
            raise CampaignServiceError("Failed to load reward") from e
        return RewardTier.from_dict(row) if row else None

    def _increment(self, table: str, row_id: str, deltas: dict[str, float]) -> bool:
        """Add deltas to numeric columns with a conditional write.

        Returns True when the write landed; failures are logged.
        """
        columns = ", ".join(deltas)
        for attempt in range(1, MAX_TOTALS_ATTEMPTS + 1):
            try:
                row = self.backend.select_one(table, columns=columns, filters=[eq("id", row_id)])
                if row is None:
                    logger.error("Cannot update totals: %s %s not found", table, row_id)
                    return False
                values = {}
                for column, delta in deltas.items():
                    total = as_float(row.get(column)) + delta
                    values[column] = int(total) if isinstance(delta, int) else total
                guards = [eq("id", row_id)] + [_same(column, row.get(column)) for column in deltas]
                if self.backend.update(table, values, filters=guards):
                    return True
            except BackendError as e:
                logger.error("Error updating %s totals for %s: %s", table, row_id, e)
                return False
            logger.info("Totals for %s %s changed concurrently (attempt %d)", table, row_id, attempt)
        logger.warning("Gave up updating %s totals for %s", table, row_id)
        return False

    def list_campaigns_for_creator(self, creator_id: str) -> list[Campaign]:
        try:
            rows = self.backend.select(
                "campaigns", filters=[eq("creator_id", creator_id)], order="created_at.desc"
            )
        except BackendError as e:
            logger.error("Error fetching campaigns for %s: %s", creator_id, e)
            raise CampaignServiceError("Failed to load campaigns") from e
        return [Campaign.from_dict(row) for row in rows]

    def list_contributions_for_backer(self, backer_id: str) -> list[Contribution]:
        try:
            rows = self.backend.select(
                "contributions", filters=[eq("backer_id", backer_id)], order="created_at.desc"
            )
            contributions = [Contribution.from_dict(row) for row in rows]
            campaign_ids = sorted({c.campaign_id for c in contributions})
            titles = {}
            if campaign_ids:
                campaigns = self.backend.select(
                    "campaigns", columns="id, title", filters=[in_("id", campaign_ids)]
                )
                titles = {row["id"]: row.get("title") or "" for row in campaigns}
        except BackendError as e:
            logger.error("Error fetching contributions for %s: %s", backer_id, e)
            raise CampaignServiceError("Failed to load contributions") from e
        for contribution in contributions:
            contribution.campaign_title = titles.get(contribution.campaign_id, "Removed campaign")
        return contributions
