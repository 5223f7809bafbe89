"""Job marketplace data models."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any

from .profile import as_float, as_int, as_list


class JobStatus(Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProposalStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class ClientSummary:
    """The slice of a client's profile shown on a job card."""
    full_name: str = "Anonymous Client"
    location: str = "Not specified"
    rating: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"full_name": self.full_name, "location": self.location, "rating": self.rating}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientSummary":
        return cls(
            full_name=data.get("full_name") or "Anonymous Client",
            location=data.get("location") or "Not specified",
            rating=as_float(data.get("rating")),
        )


@dataclass
class Job:
    """A row of the `jobs` table plus the attached client summary."""
    id: str
    client_id: str
    title: str
    description: str
    category: str
    budget_min: float | None = None
    budget_max: float | None = None
    deadline: str | None = None
    skills_required: list[str] = dataclass_field(default_factory=list)
    proposals_count: int = 0
    status: JobStatus = JobStatus.OPEN
    created_at: str | None = None
    client: ClientSummary = dataclass_field(default_factory=ClientSummary)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "budget_min": self.budget_min,
            "budget_max": self.budget_max,
            "deadline": self.deadline,
            "skills_required": self.skills_required,
            "proposals_count": self.proposals_count,
            "status": self.status.value,
            "created_at": self.created_at,
            "client": self.client.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        """Create from a backend row."""
        client = data.get("client")
        return cls(
            id=data.get("id", ""),
            client_id=data.get("client_id") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            category=data.get("category") or "",
            budget_min=as_float(data.get("budget_min"), default=None),
            budget_max=as_float(data.get("budget_max"), default=None),
            deadline=data.get("deadline"),
            skills_required=as_list(data.get("skills_required")),
            proposals_count=as_int(data.get("proposals_count")),
            status=JobStatus(data.get("status") or "open"),
            created_at=data.get("created_at"),
            client=ClientSummary.from_dict(client) if client else ClientSummary(),
        )


@dataclass
class Proposal:
    """A freelancer's bid on a job."""
    id: str
    job_id: str
    freelancer_id: str
    cover_letter: str
    proposed_rate: float
    estimated_duration: str = ""
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: str | None = None
    job_title: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "freelancer_id": self.freelancer_id,
            "cover_letter": self.cover_letter,
            "proposed_rate": self.proposed_rate,
            "estimated_duration": self.estimated_duration,
            "status": self.status.value,
            "created_at": self.created_at,
            "job_title": self.job_title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Proposal":
        return cls(
            id=data.get("id", ""),
            job_id=data.get("job_id") or "",
            freelancer_id=data.get("freelancer_id") or "",
            cover_letter=data.get("cover_letter") or "",
            proposed_rate=as_float(data.get("proposed_rate")),
            estimated_duration=data.get("estimated_duration") or "",
            status=ProposalStatus(data.get("status") or "pending"),
            created_at=data.get("created_at"),
            job_title=data.get("job_title") or "",
        )
