"""
Shared test fixtures — in-memory SQLite async database + ASGI clients.

Strategy:
1. Set DATABASE_URL to SQLite before anything loads
2. Inject a stand-in opengrc.database module into sys.modules before
   opengrc.main imports it, bound to the in-memory test engine
3. Service tests use a raw httpx AsyncClient; client-library tests use
   ApiClient over the same ASGI transport
"""
import os
import sys
import types
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# ── 1. Environment ──
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DEBUG"] = "false"

# ── 2. Test engine (SQLite in-memory) ──
TEST_ENGINE = create_async_engine(
    "sqlite+aiosqlite://",
    echo=False,
    connect_args={"check_same_thread": False},
)

TestSession = async_sessionmaker(
    TEST_ENGINE,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── 3. Replace opengrc.database BEFORE opengrc.main is imported ──
async def _test_get_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestSession() as session:
        yield session


async def _test_dispose() -> None:
    return None


async def _test_check_db() -> bool:
    return True


_fake_db = types.ModuleType("opengrc.database")
_fake_db.engine = TEST_ENGINE
_fake_db.async_session = TestSession
_fake_db.get_session = _test_get_session
_fake_db.check_db_connection = _test_check_db
_fake_db.dispose_engine = _test_dispose
sys.modules["opengrc.database"] = _fake_db

# ── 4. Now import the app — all routers will see the test database ──
from opengrc.client.api import ApiClient, Credentials  # noqa: E402
from opengrc.main import app as fastapi_app  # noqa: E402
from opengrc.models import *  # noqa: E402, F401, F403
from opengrc.models.base import Base  # noqa: E402

API_BASE = "http://test/api/v1"


# ── Fixtures ──

@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create all tables before each test, drop after."""
    async with TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def api() -> AsyncGenerator[ApiClient, None]:
    """The library client, talking to the app in-process."""
    c = ApiClient(API_BASE, Credentials(token="test-token"), transport=ASGITransport(app=fastapi_app))
    yield c
    await c.aclose()


class RecordingTransport(ASGITransport):
    """ASGI transport that remembers every (method, path) it sent."""

    def __init__(self, app):
        super().__init__(app=app)
        self.sent: list[tuple[str, str]] = []

    async def handle_async_request(self, request):
        self.sent.append((request.method, request.url.path))
        return await super().handle_async_request(request)

    def count(self, method: str, path_prefix: str = "") -> int:
        return sum(1 for m, p in self.sent if m == method and p.startswith(path_prefix))


@pytest_asyncio.fixture
async def recorded_api() -> AsyncGenerator[tuple[ApiClient, RecordingTransport], None]:
    transport = RecordingTransport(fastapi_app)
    c = ApiClient(API_BASE, Credentials(token="test-token"), transport=transport)
    yield c, transport
    await c.aclose()


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSession() as session:
        yield session


# ── Seed data helpers ──

@pytest_asyncio.fixture
async def seed_framework(db: AsyncSession):
    """Custom framework: CC1 > CC1.1, CC1.2 and CC2 > CC2.1."""
    from opengrc.models.framework import Framework, FrameworkRequirement

    fw = Framework(name="SOC 2 (custom)", version="2017", category="Security")
    db.add(fw)
    await db.flush()

    cc1 = FrameworkRequirement(framework_id=fw.id, code="CC1", name="Control Environment",
                               category="Common Criteria", sort_order=1)
    cc2 = FrameworkRequirement(framework_id=fw.id, code="CC2", name="Communication",
                               category="Common Criteria", sort_order=2)
    db.add_all([cc1, cc2])
    await db.flush()

    cc11 = FrameworkRequirement(framework_id=fw.id, parent_id=cc1.id, code="CC1.1",
                                name="Integrity and ethics", category="Governance", sort_order=1)
    cc12 = FrameworkRequirement(framework_id=fw.id, parent_id=cc1.id, code="CC1.2",
                                name="Board oversight", category="Governance", sort_order=2)
    cc21 = FrameworkRequirement(framework_id=fw.id, parent_id=cc2.id, code="CC2.1",
                                name="Quality information", category="Information", sort_order=1)
    db.add_all([cc11, cc12, cc21])
    await db.commit()
    return {
        "fw_id": fw.id,
        "cc1": cc1.id, "cc2": cc2.id,
        "cc11": cc11.id, "cc12": cc12.id, "cc21": cc21.id,
    }


@pytest_asyncio.fixture
async def seed_system_framework(db: AsyncSession):
    from opengrc.models.framework import Framework, FrameworkRequirement

    fw = Framework(name="ISO 27001", version="2022", is_system=True)
    db.add(fw)
    await db.flush()
    req = FrameworkRequirement(framework_id=fw.id, code="A.5.1", name="Policies for information security")
    db.add(req)
    await db.commit()
    return fw.id, req.id


@pytest_asyncio.fixture
async def seed_control(db: AsyncSession):
    from opengrc.models.control import Control

    c = Control(code="AC-001", name="Access reviews", status="implemented", control_type="detective")
    db.add(c)
    await db.commit()
    return c.id


@pytest_asyncio.fixture
async def seed_aws(db: AsyncSession):
    """One AWS integration with a small inventory."""
    from opengrc.models.aws import (
        AwsCloudTrailEvent, AwsConfigRule, AwsEc2Instance, AwsIamPolicy, AwsIamRole,
        AwsIamUser, AwsRdsInstance, AwsS3Bucket, AwsSecurityFinding,
    )
    from opengrc.models.integration import Integration

    integ = Integration(name="Production AWS", integration_type="aws", last_sync_at=datetime(2026, 10, 1, 12, 0))
    db.add(integ)
    await db.flush()
    acct = "123456789012"
    iid = integ.id

    db.add_all([
        AwsS3Bucket(integration_id=iid, aws_account_id=acct, bucket_name="public-assets", region="us-east-1",
                    is_public=True, encryption_enabled=True, versioning_enabled=True, logging_enabled=True),
        AwsS3Bucket(integration_id=iid, aws_account_id=acct, bucket_name="audit-logs", region="eu-west-1",
                    encryption_enabled=True, versioning_enabled=True, logging_enabled=True),
        AwsS3Bucket(integration_id=iid, aws_account_id=acct, bucket_name="scratch", region="us-east-1"),
        AwsEc2Instance(integration_id=iid, aws_account_id=acct, region="us-east-1", instance_id="i-0abc",
                       instance_type="t3.micro", state="running", public_ip="54.1.2.3", is_public=True),
        AwsEc2Instance(integration_id=iid, aws_account_id=acct, region="us-east-1", instance_id="i-0def",
                       instance_type="t3.large", state="stopped", private_ip="10.0.0.5"),
        AwsRdsInstance(integration_id=iid, aws_account_id=acct, region="us-east-1",
                       db_instance_identifier="orders-db", engine="postgres",
                       publicly_accessible=True, storage_encrypted=False),
        AwsIamUser(integration_id=iid, aws_account_id=acct, user_id="AIDA1", user_name="alice",
                   arn="arn:aws:iam::123456789012:user/alice", mfa_enabled=True,
                   access_keys=[{"id": "AKIA1", "status": "Active"}], risk_score=10),
        AwsIamUser(integration_id=iid, aws_account_id=acct, user_id="AIDA2", user_name="bob",
                   arn="arn:aws:iam::123456789012:user/bob", mfa_enabled=False,
                   access_keys=[{"id": "AKIA2", "status": "Inactive"}], risk_score=40),
        AwsIamUser(integration_id=iid, aws_account_id=acct, user_id="AIDA3", user_name="carol",
                   arn="arn:aws:iam::123456789012:user/carol", mfa_enabled=False, access_keys=[],
                   risk_score=20),
        AwsIamRole(integration_id=iid, aws_account_id=acct, role_id="AROA1", role_name="deploy",
                   arn="arn:aws:iam::123456789012:role/deploy", allows_cross_account=True),
        AwsIamPolicy(integration_id=iid, aws_account_id=acct, policy_id="ANPA1", policy_name="AdminAll",
                     arn="arn:aws:iam::123456789012:policy/AdminAll", allows_admin_access=True,
                     uses_wildcard_resources=True, risk_score=90),
        AwsSecurityFinding(integration_id=iid, aws_account_id=acct, region="us-east-1", finding_id="f-1",
                           title="S3 bucket is public", severity_label="CRITICAL", compliance_status="FAILED"),
        AwsSecurityFinding(integration_id=iid, aws_account_id=acct, region="us-east-1", finding_id="f-2",
                           title="Root account used", severity_label="HIGH", compliance_status="FAILED"),
        AwsSecurityFinding(integration_id=iid, aws_account_id=acct, region="eu-west-1", finding_id="f-3",
                           title="Logging disabled", severity_label="LOW", workflow_status="RESOLVED",
                           compliance_status="PASSED"),
        AwsConfigRule(integration_id=iid, aws_account_id=acct, region="us-east-1",
                      config_rule_name="s3-bucket-public-read-prohibited", compliance_type="NON_COMPLIANT",
                      non_compliant_count=1),
        AwsConfigRule(integration_id=iid, aws_account_id=acct, region="us-east-1",
                      config_rule_name="iam-user-mfa-enabled", compliance_type="COMPLIANT", compliant_count=3),
        AwsCloudTrailEvent(integration_id=iid, aws_account_id=acct, region="us-east-1", event_id="e-1",
                           event_name="ConsoleLogin", event_source="signin.amazonaws.com",
                           event_time=datetime(2026, 10, 1, 9, 0), user_name="root",
                           is_root_action=True, is_sensitive_action=True, risk_level="HIGH"),
        AwsCloudTrailEvent(integration_id=iid, aws_account_id=acct, region="us-east-1", event_id="e-2",
                           event_name="ListBuckets", event_source="s3.amazonaws.com",
                           event_time=datetime(2026, 10, 1, 10, 0), user_name="alice"),
    ])
    await db.commit()
    return iid
