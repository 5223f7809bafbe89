"""Profile Service - Reading and editing user profiles.

This module handles:
- Loading the signed-in user's profile
- Parsing the profile settings form
- Persisting profile changes

Interface Contract:
- get_profile(user_id) -> Profile | None
- get_profiles(user_ids, columns) -> dict[id, row]
- parse_profile_form(form) -> ProfileUpdate
- update_profile(user_id, update, email) -> Profile (creates the row when missing)
- Backend failures raise ProfileServiceError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from skillfund.models import Profile, UserRole
from skillfund.services.backend import BackendConsumer, BackendError
from skillfund.services.query import eq, in_
from skillfund.services.validation import FormReader, split_csv

logger = logging.getLogger(__name__)


class ProfileServiceError(Exception):
    """Raised when a profile cannot be loaded or saved."""
    pass


@dataclass
class ProfileUpdate:
    """Editable profile fields."""
    full_name: str
    primary_role: UserRole
    bio: str = ""
    location: str = ""
    website: str = ""
    hourly_rate: float | None = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)

    def to_row(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "primary_role": self.primary_role.value,
            "bio": self.bio or None,
            "location": self.location or None,
            "website": self.website or None,
            "hourly_rate": self.hourly_rate,
            "skills": self.skills or None,
            "interests": self.interests or None,
        }


def parse_profile_form(form: Mapping[str, Any]) -> ProfileUpdate:
    """Validate the profile settings form.

    Raises:
        ValidationError: With one message per invalid field
    """
    reader = FormReader(form)
    full_name = reader.text("full_name", required="Full name is required")
    role_value = reader.text("primary_role", required="Select your primary role")
    role = UserRole.parse(role_value)
    if role_value and role is None:
        reader.fail("primary_role", "Select your primary role")
    website = reader.text("website")
    if website and not website.startswith(("http://", "https://")):
        reader.fail("website", "Website must start with http:// or https://")
    hourly_rate = reader.number(
        "hourly_rate", minimum=0, minimum_message="Hourly rate cannot be negative"
    )
    reader.raise_for_errors()

    return ProfileUpdate(
        full_name=full_name,
        primary_role=role,
        bio=reader.text("bio"),
        location=reader.text("location"),
        website=website,
        hourly_rate=hourly_rate,
        skills=split_csv(form.get("skills")),
        interests=split_csv(form.get("interests")),
    )


class ProfileService(BackendConsumer):
    """Service for profile reads and writes."""

    def get_profile(self, user_id: str) -> Profile | None:
        try:
            row = self.backend.select_one("profiles", filters=[eq("id", user_id)])
        except BackendError as e:
            logger.error("Failed to load profile %s: %s", user_id, e)
            raise ProfileServiceError(f"Failed to load profile: {e}") from e
        return Profile.from_dict(row) if row else None

    def get_profiles(self, user_ids: list[str], columns: str = "*") -> dict[str, dict[str, Any]]:
        """Rows for a set of ids keyed by id (one `in` query)."""
        ids = sorted(set(filter(None, user_ids)))
        if not ids:
            return {}
        try:
            rows = self.backend.select("profiles", columns=columns, filters=[in_("id", ids)])
        except BackendError as e:
            logger.error("Failed to load profiles: %s", e)
            raise ProfileServiceError(f"Failed to load profiles: {e}") from e
        return {row["id"]: row for row in rows}

    def update_profile(self, user_id: str, update: ProfileUpdate, email: str = "") -> Profile:
        """Save the settings form, inserting the row if the account has none yet."""
        try:
            rows = self.backend.update("profiles", update.to_row(), filters=[eq("id", user_id)])
            if not rows:
                logger.info("No profile row for %s, creating it", user_id)
                rows = self.backend.insert(
                    "profiles", {"id": user_id, "email": email, **update.to_row()}, upsert=True
                )
        except BackendError as e:
            logger.error("Failed to update profile %s: %s", user_id, e)
            raise ProfileServiceError(f"Failed to update profile: {e}") from e
        if not rows:
            raise ProfileServiceError("Profile could not be saved")
        logger.info("Profile %s updated", user_id)
        return Profile.from_dict(rows[0])
