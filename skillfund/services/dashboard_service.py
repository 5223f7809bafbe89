"""Dashboard Service - Role specific landing content.

Builds the title, description, stat cards and quick actions shown on the
dashboard. Stats are computed from the user's own rows; a failing query
leaves the stat list empty and is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from skillfund.models import Campaign, CampaignStatus, JobStatus, Profile, ProposalStatus, UserRole
from skillfund.services.backend import BackendConsumer, BackendError
from skillfund.services.campaign_service import CampaignService, CampaignServiceError, format_amount
from skillfund.services.job_service import JobService, JobServiceError
from skillfund.services.query import in_

logger = logging.getLogger(__name__)


@dataclass
class Stat:
    icon: str
    label: str
    value: str


@dataclass
class QuickAction:
    label: str
    url: str
    primary: bool = False


@dataclass
class DashboardContent:
    title: str
    description: str
    stats: list[Stat] = field(default_factory=list)
    quick_actions: list[QuickAction] = field(default_factory=list)


def _percent(part: int, whole: int) -> str:
    if not whole:
        return "N/A"
    return f"{round(part / whole * 100)}%"


class DashboardService(BackendConsumer):
    """Service assembling dashboard content for a profile."""

    def build(self, profile: Profile | None) -> DashboardContent:
        role = profile.primary_role if profile else None
        content = self._content_for(role)
        if role is None:
            return content
        try:
            content.stats = self._stats_for(profile)
        except (BackendError, JobServiceError, CampaignServiceError) as e:
            logger.error("Failed to build dashboard stats for %s: %s", profile.id, e)
            content.stats = []
        return content

    @staticmethod
    def _content_for(role: UserRole | None) -> DashboardContent:
        if role is UserRole.FREELANCER:
            return DashboardContent(
                title="Find Your Next Opportunity",
                description="Browse jobs that match your skills",
                quick_actions=[
                    QuickAction("Browse Jobs", "/jobs", primary=True),
                    QuickAction("View Proposals", "/proposals"),
                ],
            )
        if role is UserRole.CLIENT:
            return DashboardContent(
                title="Hire Top Talent",
                description="Find skilled freelancers for your projects",
                quick_actions=[
                    QuickAction("Post New Job", "/jobs#post-job", primary=True),
                    QuickAction("Manage Jobs", "/my-jobs"),
                ],
            )
        if role is UserRole.PROJECT_OWNER:
            return DashboardContent(
                title="Launch Your Campaign",
                description="Turn your ideas into reality with crowdfunding",
                quick_actions=[
                    QuickAction("Create Campaign", "/campaigns#create-campaign", primary=True),
                    QuickAction("My Campaigns", "/my-campaigns"),
                ],
            )
        if role is UserRole.BACKER:
            return DashboardContent(
                title="Support Innovation",
                description="Discover and back amazing projects",
                quick_actions=[
                    QuickAction("Explore Projects", "/campaigns", primary=True),
                    QuickAction("My Contributions", "/my-contributions"),
                ],
            )
        return DashboardContent(
            title="Welcome to SkillFund",
            description="Your gateway to freelancing and crowdfunding",
        )

    def _stats_for(self, profile: Profile) -> list[Stat]:
        role = profile.primary_role
        jobs = JobService(backend=self.backend)
        campaigns = CampaignService(backend=self.backend)

        if role is UserRole.FREELANCER:
            proposals = jobs.list_proposals_for_freelancer(profile.id)
            pending = sum(p.status is ProposalStatus.PENDING for p in proposals)
            accepted = sum(p.status is ProposalStatus.ACCEPTED for p in proposals)
            decided = len(proposals) - pending
            return [
                Stat("briefcase", "Active Applications", str(pending)),
                Stat("dollar", "Total Earned", format_amount(profile.total_earned)),
                Stat("trending", "Success Rate", _percent(accepted, decided)),
            ]

        if role is UserRole.CLIENT:
            own_jobs = jobs.list_jobs_for_client(profile.id)
            proposals = jobs.list_proposals_for_jobs([j.id for j in own_jobs])
            active = sum(j.status is JobStatus.OPEN for j in own_jobs)
            pending = sum(p.status is ProposalStatus.PENDING for p in proposals)
            spent = sum(p.proposed_rate for p in proposals if p.status is ProposalStatus.ACCEPTED)
            return [
                Stat("users", "Active Jobs", str(active)),
                Stat("clock", "Pending Proposals", str(pending)),
                Stat("dollar", "Total Spent", format_amount(spent)),
            ]

        if role is UserRole.PROJECT_OWNER:
            own = campaigns.list_campaigns_for_creator(profile.id)
            return [
                Stat("heart", "Active Campaigns",
                     str(sum(c.status is CampaignStatus.ACTIVE for c in own))),
                Stat("users", "Total Backers", str(sum(c.backers_count for c in own))),
                Stat("dollar", "Funds Raised", format_amount(sum(c.current_amount for c in own))),
            ]

        contributions = campaigns.list_contributions_for_backer(profile.id)
        backed_ids = sorted({c.campaign_id for c in contributions})
        funded = 0
        if backed_ids:
            rows = self.backend.select("campaigns", filters=[in_("id", backed_ids)])
            funded = sum(Campaign.from_dict(row).is_funded for row in rows)
        return [
            Stat("heart", "Projects Backed", str(len(backed_ids))),
            Stat("dollar", "Total Contributed", format_amount(sum(c.amount for c in contributions))),
            Stat("trending", "Successful Projects", f"{funded}/{len(backed_ids)}"),
        ]
