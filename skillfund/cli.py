from __future__ import annotations

import argparse
import os

from config import SUPABASE_URL
from skillfund.services.campaign_service import (
    CampaignService,
    CampaignServiceError,
    calculate_progress,
    filter_campaigns,
    format_amount,
    time_left,
)
from skillfund.services.job_service import (
    ALL_CATEGORIES,
    JOB_CATEGORIES,
    JobService,
    JobServiceError,
    filter_jobs,
    format_budget,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="SkillFund: freelance marketplace and crowdfunding client backed by Supabase."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web app")
    serve.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    serve.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", 5000)),
        help="Port to listen on (default: $PORT or 5000)",
    )
    serve.add_argument("--debug", action="store_true", help="Enable the Flask debugger and reloader")

    jobs = subparsers.add_parser("jobs", help="List open jobs")
    jobs.add_argument("--search", default="", help="Match against title and description")
    jobs.add_argument(
        "--category",
        default=ALL_CATEGORIES,
        choices=[ALL_CATEGORIES, *JOB_CATEGORIES],
        help="Only show jobs in this category (default: all)",
    )

    campaigns = subparsers.add_parser("campaigns", help="List active campaigns")
    campaigns.add_argument("--search", default="", help="Match against title and description")

    return parser.parse_args(argv)


def print_jobs(search: str, category: str) -> int:
    try:
        found = filter_jobs(JobService().list_open_jobs(), search, category)
    except JobServiceError as e:
        print(f"❌ {e}")
        return 1

    if not found:
        print("No jobs found matching your criteria.")
        return 0
    for job in found:
        print(f"💼 {job.title}  [{job.category}]")
        print(f"   {job.client.full_name} · {job.client.location}")
        print(f"   {format_budget(job.budget_min, job.budget_max)} · {job.proposals_count} proposals")
        if job.skills_required:
            print(f"   Skills: {', '.join(job.skills_required)}")
        print()
    return 0


def print_campaigns(search: str) -> int:
    try:
        found = filter_campaigns(CampaignService().list_active_campaigns(), search)
    except CampaignServiceError as e:
        print(f"❌ {e}")
        return 1

    if not found:
        print("No campaigns found.")
        return 0
    for campaign in found:
        progress = calculate_progress(campaign.current_amount, campaign.goal_amount)
        print(f"❤️  {campaign.title}  [{campaign.category}] by {campaign.creator.full_name}")
        print(
            f"   {format_amount(campaign.current_amount)} of {format_amount(campaign.goal_amount)}"
            f" ({progress:.0f}%) · {campaign.backers_count} backers · {time_left(campaign.deadline)}"
        )
        print()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    from app import app, configure_logging
    configure_logging()

    if not SUPABASE_URL:
        raise SystemExit("SUPABASE_URL is not set")

    if args.command == "serve":
        app.run(debug=args.debug, host=args.host, port=args.port)
        return 0
    if args.command == "jobs":
        return print_jobs(args.search, args.category)
    return print_campaigns(args.search)


if __name__ == "__main__":
    raise SystemExit(main())
