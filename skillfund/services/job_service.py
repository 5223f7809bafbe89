"""Job Service - Freelance marketplace listings and proposals.

This module handles:
- Listing open jobs with the posting client's summary attached
- Free-text and category filtering of an already fetched job list
- Posting jobs (clients) and submitting proposals (freelancers)
- Reviewing proposals received on a client's jobs

Interface Contract:
- list_open_jobs() -> list[Job]
- filter_jobs(jobs, search, category) -> list[Job]
- post_job(client_id, draft) -> Job
- submit_proposal(job_id, freelancer_id, draft) -> Proposal
- Backend failures raise JobServiceError, bad input raises ValidationError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from skillfund.models import ClientSummary, Job, JobStatus, Proposal, ProposalStatus
from skillfund.services.backend import BackendConsumer, BackendError
from skillfund.services.query import eq, in_
from skillfund.services.validation import FormReader, split_csv

logger = logging.getLogger(__name__)

JOB_CATEGORIES = [
    "Web Development",
    "Mobile Development",
    "Design",
    "Writing",
    "Marketing",
    "Data Science",
    "Other",
]

ALL_CATEGORIES = "all"


class JobServiceError(Exception):
    """Raised when a job or proposal operation fails."""
    pass


@dataclass
class JobDraft:
    """Validated job posting form."""
    title: str
    description: str
    category: str
    budget_min: float | None = None
    budget_max: float | None = None
    deadline: str | None = None
    skills: list[str] = field(default_factory=list)

    def to_row(self, client_id: str) -> dict[str, Any]:
        return {
            "client_id": client_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "budget_min": self.budget_min or None,
            "budget_max": self.budget_max or None,
            "deadline": self.deadline or None,
            "skills_required": self.skills or None,
        }


@dataclass
class ProposalDraft:
    """Validated proposal form."""
    cover_letter: str
    proposed_rate: float
    estimated_duration: str = ""


def _money(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def format_budget(budget_min: float | None, budget_max: float | None) -> str:
    """Human readable budget range; zero counts as not specified."""
    if budget_min and budget_max:
        return f"${_money(budget_min)} - ${_money(budget_max)}"
    if budget_min:
        return f"${_money(budget_min)}+"
    if budget_max:
        return f"Up to ${_money(budget_max)}"
    return "Budget not specified"


def filter_jobs(jobs: list[Job], search: str = "", category: str = ALL_CATEGORIES) -> list[Job]:
    """Case-insensitive title/description search plus category match."""
    term = (search or "").strip().lower()
    wanted = category or ALL_CATEGORIES
    return [
        job for job in jobs
        if (term in job.title.lower() or term in job.description.lower())
        and (wanted == ALL_CATEGORIES or job.category == wanted)
    ]


def parse_job_form(form: Mapping[str, Any]) -> JobDraft:
    """Validate the post-a-job form.

    Raises:
        ValidationError: With one message per invalid field
    """
    reader = FormReader(form)
    title = reader.text("title", required="Title is required")
    description = reader.text("description", required="Description is required")
    category = reader.choice("category", JOB_CATEGORIES, required="Category is required")
    budget_min = reader.number("budget_min", minimum=0, minimum_message="Budget cannot be negative")
    budget_max = reader.number("budget_max", minimum=0, minimum_message="Budget cannot be negative")
    if budget_min and budget_max and budget_min > budget_max:
        reader.fail("budget_max", "Max budget must be at least the min budget")
    deadline = reader.date("deadline")
    reader.raise_for_errors()

    return JobDraft(
        title=title,
        description=description,
        category=category,
        budget_min=budget_min,
        budget_max=budget_max,
        deadline=deadline,
        skills=split_csv(form.get("skills")),
    )


def parse_proposal_form(form: Mapping[str, Any]) -> ProposalDraft:
    reader = FormReader(form)
    cover_letter = reader.text("cover_letter", required="Cover letter is required")
    rate = reader.number(
        "proposed_rate",
        required="Rate is required",
        minimum=0,
        exclusive=True,
        minimum_message="Rate must be greater than 0",
    )
    duration = reader.text("estimated_duration")
    reader.raise_for_errors()
    return ProposalDraft(cover_letter=cover_letter, proposed_rate=rate, estimated_duration=duration)


class JobService(BackendConsumer):
    """Service for jobs and proposals."""

    def list_open_jobs(self) -> list[Job]:
        """Open jobs, newest first, each with its client summary.

        A failed client lookup is logged and every job falls back to the
        anonymous client summary.

        Raises:
            JobServiceError: If the jobs query fails
        """
        try:
            rows = self.backend.select(
                "jobs", filters=[eq("status", JobStatus.OPEN.value)], order="created_at.desc"
            )
        except BackendError as e:
            logger.error("Failed to load jobs: %s", e)
            raise JobServiceError("Failed to load jobs") from e

        jobs = [Job.from_dict(row) for row in rows]
        client_ids = sorted({job.client_id for job in jobs if job.client_id})
        if not client_ids:
            return jobs

        try:
            profiles = self.backend.select(
                "profiles",
                columns="id, full_name, location, rating",
                filters=[in_("id", client_ids)],
            )
        except BackendError as e:
            logger.error("Failed to load job clients: %s", e)
            profiles = []

        by_id = {row["id"]: ClientSummary.from_dict(row) for row in profiles}
        for job in jobs:
            job.client = by_id.get(job.client_id, ClientSummary())
        return jobs

    def get_job(self, job_id: str) -> Job | None:
        try:
            row = self.backend.select_one("jobs", filters=[eq("id", job_id)])
        except BackendError as e:
            logger.error("Failed to load job %s: %s", job_id, e)
            raise JobServiceError("Failed to load job") from e
        return Job.from_dict(row) if row else None

    def post_job(self, client_id: str, draft: JobDraft) -> Job:
        try:
            rows = self.backend.insert("jobs", draft.to_row(client_id))
        except BackendError as e:
            logger.error("Error posting job: %s", e)
            raise JobServiceError("Failed to post job. Please try again.") from e
        logger.info("Client %s posted job %r", client_id, draft.title)
        return Job.from_dict(rows[0]) if rows else Job.from_dict(draft.to_row(client_id))

    def submit_proposal(self, job_id: str, freelancer_id: str, draft: ProposalDraft) -> Proposal:
        """Submit a proposal on an open job.

        Raises:
            JobServiceError: If the job is gone or closed, the freelancer
                already applied, or the insert fails
        """
        job = self.get_job(job_id)
        if job is None or job.status is not JobStatus.OPEN:
            raise JobServiceError("This job is no longer accepting proposals.")
        try:
            existing = self.backend.select(
                "proposals",
                columns="id",
                filters=[eq("job_id", job_id), eq("freelancer_id", freelancer_id)],
                limit=1,
            )
            if existing:
                raise JobServiceError("You have already submitted a proposal for this job.")
            rows = self.backend.insert(
                "proposals",
                {
                    "job_id": job_id,
                    "freelancer_id": freelancer_id,
                    "cover_letter": draft.cover_letter,
                    "proposed_rate": draft.proposed_rate,
                    "estimated_duration": draft.estimated_duration or None,
                },
            )
        except BackendError as e:
            logger.error("Error submitting proposal: %s", e)
            raise JobServiceError("Failed to submit proposal. Please try again.") from e
        proposal = Proposal.from_dict(rows[0]) if rows else Proposal(
            id="",
            job_id=job_id,
            freelancer_id=freelancer_id,
            cover_letter=draft.cover_letter,
            proposed_rate=draft.proposed_rate,
            estimated_duration=draft.estimated_duration,
        )
        proposal.job_title = job.title
        return proposal

    def list_proposals_for_freelancer(self, freelancer_id: str) -> list[Proposal]:
        try:
            rows = self.backend.select(
                "proposals", filters=[eq("freelancer_id", freelancer_id)], order="created_at.desc"
            )
            proposals = [Proposal.from_dict(row) for row in rows]
            job_ids = sorted({p.job_id for p in proposals})
            titles = {}
            if job_ids:
                jobs = self.backend.select("jobs", columns="id, title", filters=[in_("id", job_ids)])
                titles = {row["id"]: row.get("title") or "" for row in jobs}
        except BackendError as e:
            logger.error("Failed to load proposals for %s: %s", freelancer_id, e)
            raise JobServiceError("Failed to load proposals") from e
        for proposal in proposals:
            proposal.job_title = titles.get(proposal.job_id, "Removed job")
        return proposals

    def list_jobs_for_client(self, client_id: str) -> list[Job]:
        try:
            rows = self.backend.select(
                "jobs", filters=[eq("client_id", client_id)], order="created_at.desc"
            )
        except BackendError as e:
            logger.error("Failed to load jobs for client %s: %s", client_id, e)
            raise JobServiceError("Failed to load jobs") from e
        return [Job.from_dict(row) for row in rows]

    def list_proposals_for_jobs(self, job_ids: list[str]) -> list[Proposal]:
        if not job_ids:
            return []
        try:
            rows = self.backend.select(
                "proposals", filters=[in_("job_id", job_ids)], order="created_at.desc"
            )
        except BackendError as e:
            logger.error("Failed to load proposals: %s", e)
            raise JobServiceError("Failed to load proposals") from e
        return [Proposal.from_dict(row) for row in rows]

    def decide_proposal(self, client_id: str, proposal_id: str, accept: bool) -> Proposal:
        """Accept or reject a pending proposal on one of the client's jobs.

        Accepting moves the job to in_progress so it leaves the open list.
        """
        try:
            row = self.backend.select_one("proposals", filters=[eq("id", proposal_id)])
            if row is None:
                raise JobServiceError("Proposal not found.")
            proposal = Proposal.from_dict(row)
            job = self.get_job(proposal.job_id)
            if job is None or job.client_id != client_id:
                raise JobServiceError("You can only review proposals on your own jobs.")
            if proposal.status is not ProposalStatus.PENDING:
                raise JobServiceError("This proposal has already been reviewed.")

            status = ProposalStatus.ACCEPTED if accept else ProposalStatus.REJECTED
            self.backend.update(
                "proposals", {"status": status.value}, filters=[eq("id", proposal_id)]
            )
            if accept:
                self.backend.update(
                    "jobs",
                    {"status": JobStatus.IN_PROGRESS.value},
                    filters=[eq("id", job.id)],
                )
        except BackendError as e:
            logger.error("Failed to update proposal %s: %s", proposal_id, e)
            raise JobServiceError("Failed to update proposal. Please try again.") from e

        proposal.status = status
        proposal.job_title = job.title
        logger.info("Proposal %s %s by client %s", proposal_id, status.value, client_id)
        return proposal
