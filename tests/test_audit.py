# tests/test_audit.py
from unittest.mock import AsyncMock

import pytest

from pov_tracker.db.repository import AuditFilters
from pov_tracker.models.activity import ActivityType
from pov_tracker.models.permission import ResourceAction, ResourceType
from pov_tracker.models.pov import PoVStatus
from pov_tracker.models.user import Role
from pov_tracker.services.audit import AuditLogger
from tests.fakes import FakeRepository


@pytest.mark.asyncio
async def test_write_failure_is_swallowed():
    repo = FakeRepository()
    repo.append_audit_row = AsyncMock(side_effect=RuntimeError("disk full"))
    audit = AuditLogger(repo)

    await audit.track_activity("u1", ActivityType.AUTH, "LOGIN", {"ip": "1.2.3.4"})

    repo.append_audit_row.assert_awaited_once()


@pytest.mark.asyncio
async def test_metadata_is_merged_over_timestamp():
    repo = FakeRepository()
    audit = AuditLogger(repo)

    await audit.track_activity("u1", "CUSTOM", "DO", {"timestamp": "caller", "n": 1})

    entry = repo.audit[0]
    assert entry.type == "CUSTOM"
    assert entry.metadata == {"timestamp": "caller", "n": 1}


@pytest.mark.asyncio
async def test_enum_values_are_stored_as_plain_strings():
    repo = FakeRepository()
    audit = AuditLogger(repo)

    await audit.log_permission_change("u1", Role.USER, ResourceType.POV, ResourceAction.CREATE, True, False)
    await audit.log_status_change("u1", "p1", PoVStatus.PROJECTED, PoVStatus.IN_PROGRESS)

    change, status = repo.audit
    assert change.type == ActivityType.PERMISSION_CHANGE.value
    assert change.metadata["role"] == "USER"
    assert change.metadata["resourceType"] == "pov"
    assert change.metadata["action"] == "create"
    assert change.metadata["oldValue"] is True
    assert change.metadata["newValue"] is False
    assert status.metadata["resourceType"] == "pov"
    assert status.metadata["oldStatus"] == "PROJECTED"
    assert status.metadata["newStatus"] == "IN_PROGRESS"


@pytest.mark.asyncio
async def test_role_and_membership_changes():
    repo = FakeRepository()
    audit = AuditLogger(repo)

    await audit.log_role_change("admin", "u1", Role.USER, Role.ADMIN)
    await audit.log_team_membership_change("admin", "u1", "t1", "ADD")

    role, member = repo.audit
    assert (role.type, role.action) == ("ROLE_CHANGE", "UPDATE")
    assert role.metadata["targetUserId"] == "u1"
    assert role.metadata["newRole"] == "ADMIN"
    assert (member.type, member.action) == ("TEAM_MEMBERSHIP", "ADD")
    assert member.metadata["teamId"] == "t1"


@pytest.mark.asyncio
async def test_listing_filters_and_propagates_errors():
    repo = FakeRepository()
    audit = AuditLogger(repo)
    await audit.track_activity("u1", ActivityType.AUTH, "LOGIN")
    await audit.track_activity("u2", ActivityType.AUTH, "LOGIN")
    await audit.track_activity("u1", ActivityType.ROLE_CHANGE, "UPDATE")

    page = await audit.get_audit_logs(AuditFilters(type="AUTH"), page=1, limit=1)

    assert page.total == 2
    assert page.pages == 2
    assert len(page.entries) == 1
    assert page.types == ["AUTH", "ROLE_CHANGE"]

    repo.list_audit_rows = AsyncMock(side_effect=RuntimeError("db down"))
    with pytest.raises(RuntimeError):
        await audit.get_audit_logs(AuditFilters())
