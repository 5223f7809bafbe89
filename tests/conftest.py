"""测试配置和共享 Fixtures。"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from skillfund.services.backend import AuthSession, BackendClient, BackendError, BaseBackendClient
from skillfund.services.query import matches_all


# ============================================================================
# Mock Backend
# ============================================================================

# Column defaults the real database applies on insert
TABLE_DEFAULTS = {
    "jobs": {"status": "open", "proposals_count": 0},
    "proposals": {"status": "pending"},
    "campaigns": {"status": "active", "current_amount": 0, "backers_count": 0},
    "reward_tiers": {"backers_count": 0},
    "contributions": {"payment_status": "pending"},
    "messages": {"is_read": False},
}

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class MockBackend(BaseBackendClient):
    """测试用内存 Backend。

    表数据保存在 tables 字典中，过滤条件使用 query 模块的 matches() 求值。
    可以通过 fail_on 集合模拟某个 (方法, 表) 调用失败，
    可以通过 before_update 钩子模拟并发写入，
    可以通过 expired_tokens 模拟过期的 access token（表操作返回 401）。
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.users: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[tuple[str, str]] = set()
        self.fail_status: int | None = None
        self.before_update = None
        self.confirm_email = False
        self.tokens: list = []
        self.signed_out: list = []
        self.expired_tokens: set = set()
        self.refreshed: list = []
        self.current_token = None
        self._clock = 0

    # -- helpers -----------------------------------------------------------

    def _check(self, method: str, table: str = "") -> None:
        self.calls.append((method, table))
        if table and self.current_token in self.expired_tokens:
            raise BackendError("JWT expired", status_code=401)
        if (method, table) in self.fail_on or (method, "*") in self.fail_on:
            raise BackendError(f"Mock {method} failure on {table}", status_code=self.fail_status)

    def _now(self) -> str:
        self._clock += 1
        return (BASE_TIME + timedelta(minutes=self._clock)).isoformat()

    def seed(self, table: str, *rows: dict) -> list[dict]:
        """直接写入数据（不记录调用）。"""
        stored = []
        for row in rows:
            data = {**TABLE_DEFAULTS.get(table, {}), **row}
            data.setdefault("id", uuid.uuid4().hex)
            data.setdefault("created_at", self._now())
            self.tables.setdefault(table, []).append(data)
            stored.append(data)
        return stored

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def count(self, method: str, table: str) -> int:
        return self.calls.count((method, table))

    # -- BaseBackendClient -------------------------------------------------

    def select(self, table, *, columns="*", filters=(), order=None, limit=None):
        self._check("select", table)
        found = [dict(row) for row in self.rows(table) if matches_all(row, filters)]
        if order:
            column, _, direction = order.partition(".")
            found.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=direction == "desc")
        if limit is not None:
            found = found[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            found = [{c: row.get(c) for c in wanted} for row in found]
        return found

    def insert(self, table, rows, *, upsert=False):
        self._check("insert", table)
        items = rows if isinstance(rows, list) else [rows]
        stored = []
        for item in items:
            existing = None
            if upsert and item.get("id"):
                existing = next((r for r in self.rows(table) if r["id"] == item["id"]), None)
            if existing is not None:
                existing.update(item)
                stored.append(dict(existing))
            else:
                stored.extend(dict(r) for r in self.seed(table, dict(item)))
        return stored

    def update(self, table, values, *, filters):
        self._check("update", table)
        filters = list(filters)
        if not filters:
            raise BackendError("Refusing to update without filters")
        if self.before_update is not None:
            self.before_update(table, values)
        updated = []
        for row in self.rows(table):
            if matches_all(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    def sign_up(self, email, password, metadata=None):
        self._check("sign_up")
        if email in self.users:
            raise BackendError("User already registered", status_code=422)
        user_id = uuid.uuid4().hex
        self.users[email] = {"id": user_id, "password": password, "metadata": metadata or {}}
        if self.confirm_email:
            return AuthSession(user_id=user_id, email=email, metadata=metadata or {})
        return AuthSession(
            user_id=user_id,
            email=email,
            access_token=f"token-{user_id}",
            refresh_token=f"refresh-{user_id}",
            metadata=metadata or {},
        )

    def sign_in(self, email, password):
        self._check("sign_in")
        user = self.users.get(email)
        if user is None or user["password"] != password:
            raise BackendError("Invalid login credentials", status_code=400)
        return AuthSession(
            user_id=user["id"],
            email=email,
            access_token=f"token-{user['id']}",
            refresh_token=f"refresh-{user['id']}",
            metadata=user.get("metadata", {}),
        )

    def refresh(self, refresh_token):
        """接受 refresh-<用户 id> 形式的 token，返回新的 access token。"""
        self._check("refresh")
        self.refreshed.append(refresh_token)
        if not refresh_token.startswith("refresh-"):
            raise BackendError("Invalid Refresh Token", status_code=400)
        user_id = refresh_token.removeprefix("refresh-")
        return AuthSession(
            user_id=user_id,
            email=next((e for e, u in self.users.items() if u["id"] == user_id), ""),
            access_token=f"token-{user_id}-renewed",
            refresh_token=f"refresh-{user_id}",
        )

    def sign_out(self, access_token):
        self._check("sign_out")
        self.signed_out.append(access_token)

    def with_token(self, access_token):
        self.tokens.append(access_token)
        self.current_token = access_token
        return self


# ============================================================================
# Backend Fixtures
# ============================================================================

@pytest.fixture
def backend() -> MockBackend:
    """创建空的 Mock Backend。"""
    return MockBackend()


@pytest.fixture
def users(backend: MockBackend) -> dict:
    """每种角色各一个 profile（按角色名索引）。"""
    rows = backend.seed(
        "profiles",
        {
            "id": "u-freelancer",
            "email": "fran@example.com",
            "full_name": "Fran Freelancer",
            "primary_role": "freelancer",
            "location": "Lisbon",
            "skills": ["Python", "React"],
            "total_earned": 4200,
        },
        {
            "id": "u-client",
            "email": "cleo@example.com",
            "full_name": "Cleo Client",
            "primary_role": "client",
            "location": "Berlin",
            "rating": 4.8,
        },
        {
            "id": "u-owner",
            "email": "omar@example.com",
            "full_name": "Omar Owner",
            "primary_role": "project_owner",
        },
        {
            "id": "u-backer",
            "email": "bea@example.com",
            "full_name": "Bea Backer",
            "primary_role": "backer",
        },
    )
    return {row["primary_role"]: row for row in rows}


@pytest.fixture
def open_job(backend: MockBackend, users: dict) -> dict:
    """Cleo 发布的一个开放职位。"""
    return backend.seed(
        "jobs",
        {
            "id": "job-1",
            "client_id": users["client"]["id"],
            "title": "Build a React Native App",
            "description": "Cross-platform mobile app for a bakery",
            "category": "Mobile Development",
            "budget_min": 500,
            "budget_max": 2000,
            "skills_required": ["React Native", "TypeScript", "Firebase", "Figma"],
        },
    )[0]


@pytest.fixture
def active_campaign(backend: MockBackend, users: dict) -> dict:
    """Omar 发起的一个进行中的众筹项目。"""
    return backend.seed(
        "campaigns",
        {
            "id": "camp-1",
            "creator_id": users["project_owner"]["id"],
            "title": "Smart Home Garden",
            "description": "An indoor garden that waters itself",
            "category": "Technology",
            "goal_amount": 10000,
            "current_amount": 2500,
            "backers_count": 10,
            "deadline": "2099-12-31",
        },
    )[0]


@pytest.fixture
def reward_tier(backend: MockBackend, active_campaign: dict) -> dict:
    """限量 2 份的奖励档位。"""
    return backend.seed(
        "reward_tiers",
        {
            "id": "tier-1",
            "campaign_id": active_campaign["id"],
            "title": "Early Bird",
            "description": "First production unit",
            "amount": 100,
            "max_backers": 2,
            "backers_count": 0,
        },
    )[0]


@pytest.fixture
def installed_backend(backend: MockBackend):
    """把 Mock Backend 注册为全局实例，测试结束后恢复。"""
    BackendClient.set_instance(backend)
    yield backend
    BackendClient.reset()
