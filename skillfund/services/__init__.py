"""Service layer - Business logic modules.

Each service talks to the hosted backend through BackendClient and can be
tested independently against an in-memory client.
"""

from .backend import BackendClient, BackendError
from .auth_service import AuthService
from .profile_service import ProfileService
from .job_service import JobService
from .campaign_service import CampaignService
from .message_service import MessageService
from .dashboard_service import DashboardService

__all__ = [
    "BackendClient",
    "BackendError",
    "AuthService",
    "ProfileService",
    "JobService",
    "CampaignService",
    "MessageService",
    "DashboardService",
]
