"""JobService 单元测试。

测试覆盖:
- 职位列表与客户信息
- 搜索与分类过滤
- 发布职位、提交提案的表单校验
- 提案审核
"""

import pytest

from skillfund.models import Job, JobStatus, ProposalStatus
from skillfund.services.job_service import (
    JobService,
    JobServiceError,
    ProposalDraft,
    filter_jobs,
    format_budget,
    parse_job_form,
    parse_proposal_form,
)
from skillfund.services.validation import ValidationError


def proposal_draft(**overrides) -> ProposalDraft:
    data = {"cover_letter": "I have built five similar apps.", "proposed_rate": 1500.0}
    data.update(overrides)
    return ProposalDraft(**data)


class TestFormatBudget:
    """测试预算显示。"""

    @pytest.mark.parametrize(
        "budget_min, budget_max, expected",
        [
            (500, 2000, "$500 - $2000"),
            (500, None, "$500+"),
            (None, 2000, "Up to $2000"),
            (None, None, "Budget not specified"),
            (0, 0, "Budget not specified"),
            (99.5, None, "$99.50+"),
        ],
    )
    def test_format_budget(self, budget_min, budget_max, expected):
        assert format_budget(budget_min, budget_max) == expected


class TestFilterJobs:
    """测试客户端搜索过滤。"""

    jobs = [
        Job(id="1", client_id="c", title="React dashboard", description="Admin UI", category="Web Development"),
        Job(id="2", client_id="c", title="Logo", description="Brand refresh for a REACT meetup", category="Design"),
        Job(id="3", client_id="c", title="Blog posts", description="Ten articles", category="Writing"),
    ]

    def test_search_matches_title_or_description_case_insensitive(self):
        found = filter_jobs(self.jobs, "react")

        assert [job.id for job in found] == ["1", "2"]

    def test_category_filter(self):
        assert [job.id for job in filter_jobs(self.jobs, "", "Design")] == ["2"]

    def test_search_and_category_combined(self):
        assert filter_jobs(self.jobs, "react", "Writing") == []

    def test_all_categories_and_blank_search(self):
        """测试 all 分类和空搜索返回全部职位。"""
        assert len(filter_jobs(self.jobs, "  ", "all")) == 3


class TestParseJobForm:
    """测试发布职位表单校验。"""

    def test_valid_form(self):
        draft = parse_job_form({
            "title": " Build an API ",
            "description": "REST API in Flask",
            "category": "Web Development",
            "budget_min": "500",
            "budget_max": "1500",
            "deadline": "2030-06-01",
            "skills": "Python, Flask",
        })

        assert draft.title == "Build an API"
        assert draft.budget_min == 500.0
        assert draft.skills == ["Python", "Flask"]
        assert draft.to_row("c1")["skills_required"] == ["Python", "Flask"]

    def test_optional_fields_become_null(self):
        draft = parse_job_form({"title": "T", "description": "D", "category": "Other"})

        row = draft.to_row("c1")

        assert row["budget_min"] is None
        assert row["deadline"] is None
        assert row["skills_required"] is None

    def test_required_fields(self):
        """测试必填字段的提示。"""
        with pytest.raises(ValidationError) as exc_info:
            parse_job_form({})

        assert exc_info.value.errors == {
            "title": "Title is required",
            "description": "Description is required",
            "category": "Category is required",
        }

    def test_budget_rules(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_form({
                "title": "T",
                "description": "D",
                "category": "Design",
                "budget_min": "2000",
                "budget_max": "500",
            })

        assert exc_info.value.errors["budget_max"] == "Max budget must be at least the min budget"

    def test_negative_budget(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_form({"title": "T", "description": "D", "category": "Design", "budget_min": "-1"})

        assert exc_info.value.errors["budget_min"] == "Budget cannot be negative"

    def test_non_finite_budget(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_form({"title": "T", "description": "D", "category": "Design", "budget_max": "inf"})

        assert exc_info.value.errors["budget_max"] == "Must be a number"

    def test_bad_deadline(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_job_form({"title": "T", "description": "D", "category": "Design", "deadline": "soon"})

        assert exc_info.value.errors["deadline"] == "Enter a valid date (YYYY-MM-DD)"


class TestParseProposalForm:
    """测试提案表单校验。"""

    def test_valid(self):
        draft = parse_proposal_form(
            {"cover_letter": "Hi", "proposed_rate": "1200", "estimated_duration": "2 weeks"}
        )

        assert draft.proposed_rate == 1200.0
        assert draft.estimated_duration == "2 weeks"

    @pytest.mark.parametrize(
        "form, field, message",
        [
            ({"proposed_rate": "10"}, "cover_letter", "Cover letter is required"),
            ({"cover_letter": "Hi"}, "proposed_rate", "Rate is required"),
            ({"cover_letter": "Hi", "proposed_rate": "0"}, "proposed_rate", "Rate must be greater than 0"),
            ({"cover_letter": "Hi", "proposed_rate": "nan"}, "proposed_rate", "Must be a number"),
            ({"cover_letter": "Hi", "proposed_rate": "Infinity"}, "proposed_rate", "Must be a number"),
        ],
    )
    def test_invalid(self, form, field, message):
        with pytest.raises(ValidationError) as exc_info:
            parse_proposal_form(form)

        assert exc_info.value.errors[field] == message


class TestListOpenJobs:
    """测试职位列表。"""

    def test_attaches_client_summary(self, backend, open_job):
        jobs = JobService(backend=backend).list_open_jobs()

        assert len(jobs) == 1
        assert jobs[0].client.full_name == "Cleo Client"
        assert jobs[0].client.location == "Berlin"
        assert jobs[0].client.rating == 4.8

    def test_newest_first_and_only_open(self, backend, open_job, users):
        backend.seed(
            "jobs",
            {"id": "job-2", "client_id": "u-client", "title": "Newer", "category": "Design"},
            {"id": "job-3", "client_id": "u-client", "title": "Closed", "status": "completed"},
        )

        jobs = JobService(backend=backend).list_open_jobs()

        assert [job.id for job in jobs] == ["job-2", "job-1"]

    def test_unknown_client_falls_back(self, backend):
        """测试找不到客户资料时显示匿名客户。"""
        backend.seed("jobs", {"id": "j", "client_id": "ghost", "title": "T"})

        jobs = JobService(backend=backend).list_open_jobs()

        assert jobs[0].client.full_name == "Anonymous Client"
        assert jobs[0].client.location == "Not specified"

    def test_client_lookup_failure_is_not_fatal(self, backend, open_job):
        backend.fail_on.add(("select", "profiles"))

        jobs = JobService(backend=backend).list_open_jobs()

        assert jobs[0].client.full_name == "Anonymous Client"

    def test_jobs_failure_raises(self, backend):
        backend.fail_on.add(("select", "jobs"))

        with pytest.raises(JobServiceError, match="Failed to load jobs"):
            JobService(backend=backend).list_open_jobs()


class TestPostJob:
    def test_post_job(self, backend, users):
        draft = parse_job_form({"title": "T", "description": "D", "category": "Writing"})

        job = JobService(backend=backend).post_job("u-client", draft)

        assert job.status is JobStatus.OPEN
        assert job.client_id == "u-client"
        assert backend.rows("jobs")[0]["title"] == "T"

    def test_post_job_failure(self, backend):
        backend.fail_on.add(("insert", "jobs"))
        draft = parse_job_form({"title": "T", "description": "D", "category": "Writing"})

        with pytest.raises(JobServiceError, match="Failed to post job"):
            JobService(backend=backend).post_job("u-client", draft)


class TestSubmitProposal:
    """测试提交提案。"""

    def test_submit(self, backend, open_job):
        proposal = JobService(backend=backend).submit_proposal("job-1", "u-freelancer", proposal_draft())

        assert proposal.status is ProposalStatus.PENDING
        assert proposal.job_title == "Build a React Native App"
        assert backend.rows("proposals")[0]["estimated_duration"] is None

    def test_duplicate_rejected(self, backend, open_job):
        """测试同一自由职业者不能重复提交。"""
        service = JobService(backend=backend)
        service.submit_proposal("job-1", "u-freelancer", proposal_draft())

        with pytest.raises(JobServiceError, match="already submitted"):
            service.submit_proposal("job-1", "u-freelancer", proposal_draft())

        assert len(backend.rows("proposals")) == 1

    def test_closed_job_rejected(self, backend, open_job):
        open_job["status"] = "in_progress"

        with pytest.raises(JobServiceError, match="no longer accepting"):
            JobService(backend=backend).submit_proposal("job-1", "u-freelancer", proposal_draft())

    def test_missing_job_rejected(self, backend):
        with pytest.raises(JobServiceError, match="no longer accepting"):
            JobService(backend=backend).submit_proposal("nope", "u-freelancer", proposal_draft())


class TestProposalLists:
    def test_list_for_freelancer_attaches_titles(self, backend, open_job):
        backend.seed(
            "proposals",
            {"job_id": "job-1", "freelancer_id": "u-freelancer", "cover_letter": "a", "proposed_rate": 1},
            {"job_id": "deleted", "freelancer_id": "u-freelancer", "cover_letter": "b", "proposed_rate": 2},
        )

        proposals = JobService(backend=backend).list_proposals_for_freelancer("u-freelancer")

        titles = {p.job_id: p.job_title for p in proposals}
        assert titles == {"job-1": "Build a React Native App", "deleted": "Removed job"}

    def test_list_for_jobs_empty(self, backend):
        assert JobService(backend=backend).list_proposals_for_jobs([]) == []
        assert backend.calls == []


class TestDecideProposal:
    """测试客户审核提案。"""

    @pytest.fixture
    def pending(self, backend, open_job):
        return backend.seed(
            "proposals",
            {"id": "p1", "job_id": "job-1", "freelancer_id": "u-freelancer", "cover_letter": "a", "proposed_rate": 900},
        )[0]

    def test_accept_moves_job_in_progress(self, backend, pending, open_job):
        proposal = JobService(backend=backend).decide_proposal("u-client", "p1", accept=True)

        assert proposal.status is ProposalStatus.ACCEPTED
        assert pending["status"] == "accepted"
        assert open_job["status"] == "in_progress"

    def test_reject_keeps_job_open(self, backend, pending, open_job):
        JobService(backend=backend).decide_proposal("u-client", "p1", accept=False)

        assert pending["status"] == "rejected"
        assert open_job["status"] == "open"

    def test_only_job_owner(self, backend, pending):
        with pytest.raises(JobServiceError, match="your own jobs"):
            JobService(backend=backend).decide_proposal("u-someone", "p1", accept=True)

    def test_already_reviewed(self, backend, pending):
        pending["status"] = "rejected"

        with pytest.raises(JobServiceError, match="already been reviewed"):
            JobService(backend=backend).decide_proposal("u-client", "p1", accept=True)

    def test_not_found(self, backend):
        with pytest.raises(JobServiceError, match="Proposal not found"):
            JobService(backend=backend).decide_proposal("u-client", "p404", accept=True)
