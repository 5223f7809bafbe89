"""Data models - Pure data structures mirroring the backend tables."""

from .profile import Profile, UserRole
from .job import ClientSummary, Job, JobStatus, Proposal, ProposalStatus
from .campaign import (
    Campaign,
    CampaignStatus,
    Contribution,
    CreatorSummary,
    PaymentStatus,
    RewardTier,
)
from .message import Contact, Message, SenderSummary

__all__ = [
    "Profile",
    "UserRole",
    "ClientSummary",
    "Job",
    "JobStatus",
    "Proposal",
    "ProposalStatus",
    "Campaign",
    "CampaignStatus",
    "Contribution",
    "CreatorSummary",
    "PaymentStatus",
    "RewardTier",
    "Contact",
    "Message",
    "SenderSummary",
]
