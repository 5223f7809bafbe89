"""Crowdfunding data models."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any

from .profile import as_float, as_int


class CampaignStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    FUNDED = "funded"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class CreatorSummary:
    full_name: str = "Unknown Creator"
    avatar_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"full_name": self.full_name, "avatar_url": self.avatar_url}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CreatorSummary":
        return cls(
            full_name=data.get("full_name") or "Unknown Creator",
            avatar_url=data.get("avatar_url") or "",
        )


@dataclass
class Campaign:
    """A row of the `campaigns` table plus the attached creator summary."""
    id: str
    creator_id: str
    title: str
    description: str
    category: str
    goal_amount: float
    deadline: str
    current_amount: float = 0.0
    backers_count: int = 0
    story: str = ""
    image_url: str = ""
    video_url: str = ""
    status: CampaignStatus = CampaignStatus.ACTIVE
    created_at: str | None = None
    creator: CreatorSummary = dataclass_field(default_factory=CreatorSummary)

    @property
    def is_funded(self) -> bool:
        return self.status is CampaignStatus.FUNDED or (
            self.goal_amount > 0 and self.current_amount >= self.goal_amount
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "goal_amount": self.goal_amount,
            "deadline": self.deadline,
            "current_amount": self.current_amount,
            "backers_count": self.backers_count,
            "story": self.story,
            "image_url": self.image_url,
            "video_url": self.video_url,
            "status": self.status.value,
            "created_at": self.created_at,
            "creator": self.creator.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Campaign":
        """Create from a backend row."""
        creator = data.get("creator")
        return cls(
            id=data.get("id", ""),
            creator_id=data.get("creator_id") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            category=data.get("category") or "",
            goal_amount=as_float(data.get("goal_amount")),
            deadline=data.get("deadline") or "",
            current_amount=as_float(data.get("current_amount")),
            backers_count=as_int(data.get("backers_count")),
            story=data.get("story") or "",
            image_url=data.get("image_url") or "",
            video_url=data.get("video_url") or "",
            status=CampaignStatus(data.get("status") or "active"),
            created_at=data.get("created_at"),
            creator=CreatorSummary.from_dict(creator) if creator else CreatorSummary(),
        )


@dataclass
class RewardTier:
    """A perk a backer unlocks by contributing at least `amount`."""
    id: str
    campaign_id: str
    title: str
    description: str
    amount: float
    estimated_delivery: str | None = None
    max_backers: int | None = None
    backers_count: int = 0

    @property
    def is_full(self) -> bool:
        return self.max_backers is not None and self.backers_count >= self.max_backers

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "title": self.title,
            "description": self.description,
            "amount": self.amount,
            "estimated_delivery": self.estimated_delivery,
            "max_backers": self.max_backers,
            "backers_count": self.backers_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RewardTier":
        max_backers = data.get("max_backers")
        return cls(
            id=data.get("id", ""),
            campaign_id=data.get("campaign_id") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            amount=as_float(data.get("amount")),
            estimated_delivery=data.get("estimated_delivery"),
            max_backers=as_int(max_backers) if max_backers is not None else None,
            backers_count=as_int(data.get("backers_count")),
        )


@dataclass
class Contribution:
    id: str
    campaign_id: str
    backer_id: str
    amount: float
    payment_status: PaymentStatus = PaymentStatus.PENDING
    reward_tier_id: str | None = None
    created_at: str | None = None
    campaign_title: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "backer_id": self.backer_id,
            "amount": self.amount,
            "payment_status": self.payment_status.value,
            "reward_tier_id": self.reward_tier_id,
            "created_at": self.created_at,
            "campaign_title": self.campaign_title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contribution":
        return cls(
            id=data.get("id", ""),
            campaign_id=data.get("campaign_id") or "",
            backer_id=data.get("backer_id") or "",
            amount=as_float(data.get("amount")),
            payment_status=PaymentStatus(data.get("payment_status") or "pending"),
            reward_tier_id=data.get("reward_tier_id"),
            created_at=data.get("created_at"),
            campaign_title=data.get("campaign_title") or "",
        )
