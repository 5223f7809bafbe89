"""Profile data models.

Pure data structures with no business logic.
These can be safely used by any module.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any


class UserRole(Enum):
    """Primary role a user signs up with."""
    FREELANCER = "freelancer"
    CLIENT = "client"
    PROJECT_OWNER = "project_owner"
    BACKER = "backer"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def parse(cls, value: Any) -> "UserRole | None":
        """Return the role for a raw column value, None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def as_list(value: Any) -> list[str]:
    """Normalize an array column that may come back as null or a CSV string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item) for item in value]


def as_float(value: Any, default: float | None = 0.0) -> float | None:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Profile:
    """A row of the `profiles` table (id equals the auth user id)."""
    id: str
    email: str
    primary_role: UserRole | None = None
    full_name: str = ""
    bio: str = ""
    location: str = ""
    website: str = ""
    avatar_url: str = ""
    hourly_rate: float | None = None
    skills: list[str] = dataclass_field(default_factory=list)
    interests: list[str] = dataclass_field(default_factory=list)
    rating: float = 0.0
    reviews_count: int = 0
    total_earned: float = 0.0
    is_verified: bool = False
    created_at: str | None = None

    @property
    def first_name(self) -> str:
        parts = (self.full_name or "").split()
        return parts[0] if parts else "User"

    @property
    def initial(self) -> str:
        return (self.full_name or "U")[:1].upper()

    def has_role(self, *roles: UserRole) -> bool:
        return self.primary_role in roles

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "primary_role": self.primary_role.value if self.primary_role else None,
            "full_name": self.full_name,
            "bio": self.bio,
            "location": self.location,
            "website": self.website,
            "avatar_url": self.avatar_url,
            "hourly_rate": self.hourly_rate,
            "skills": self.skills,
            "interests": self.interests,
            "rating": self.rating,
            "reviews_count": self.reviews_count,
            "total_earned": self.total_earned,
            "is_verified": self.is_verified,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from a backend row."""
        return cls(
            id=data.get("id", ""),
            email=data.get("email") or "",
            primary_role=UserRole.parse(data.get("primary_role")),
            full_name=data.get("full_name") or "",
            bio=data.get("bio") or "",
            location=data.get("location") or "",
            website=data.get("website") or "",
            avatar_url=data.get("avatar_url") or "",
            hourly_rate=as_float(data.get("hourly_rate"), default=None),
            skills=as_list(data.get("skills")),
            interests=as_list(data.get("interests")),
            rating=as_float(data.get("rating")),
            reviews_count=as_int(data.get("reviews_count")),
            total_earned=as_float(data.get("total_earned")),
            is_verified=bool(data.get("is_verified")),
            created_at=data.get("created_at"),
        )
