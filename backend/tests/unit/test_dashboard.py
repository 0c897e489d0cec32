from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from beacon.moderation.domain import container
from beacon.moderation.domain.dashboard import MAX_PAGE_SIZE, clamp_page
from beacon.moderation.domain.rbac import StaffContext

NOW = datetime(2025, 12, 12, 12, 0, tzinfo=timezone.utc)
ADMIN = StaffContext(actor_id=900, admin=True)


@pytest_asyncio.fixture
async def seeded(users_repo, profile_factory):
    await users_repo.add(profile_factory(1, display_name="Ada Lovelace", email="ada@example.edu"))
    await users_repo.add(profile_factory(2, display_name="Grace Hopper", email="grace@example.edu"))
    await users_repo.add(profile_factory(3, display_name="Alan Turing", email="alan@example.edu"))
    await users_repo.add(profile_factory(4, display_name="Edsger Dijkstra", email="edsger@example.edu"))
    dispatcher = container.get_dispatcher()
    await dispatcher.ban_user(1, actor=ADMIN, now=NOW - timedelta(days=30))
    await dispatcher.ban_user(2, actor=ADMIN, now=NOW - timedelta(days=1))
    await dispatcher.ban_user(3, actor=ADMIN, now=NOW - timedelta(days=2))
    return users_repo


@pytest.mark.parametrize(
    "limit,offset,expected",
    [(None, None, (50, 0)), (0, -5, (1, 0)), (10_000, 3, (MAX_PAGE_SIZE, 3)), (25, 10, (25, 10))],
)
def test_clamp_page(limit, offset, expected):
    assert clamp_page(limit, offset) == expected


@pytest.mark.asyncio
async def test_list_banned_newest_first(seeded):
    page = await container.get_dashboard_service().list_banned()
    assert [user.id for user in page.users] == [2, 3, 1]
    assert page.total == 3


@pytest.mark.asyncio
async def test_list_banned_paging_and_search(seeded):
    dashboard = container.get_dashboard_service()

    page = await dashboard.list_banned(limit=1, offset=1)
    assert [user.id for user in page.users] == [3]
    assert page.total == 3

    found = await dashboard.list_banned(query="  ALAN ")
    assert [user.id for user in found.users] == [3]
    assert found.query == "ALAN"

    by_email = await dashboard.list_banned(query="ada@")
    assert [user.id for user in by_email.users] == [1]


@pytest.mark.asyncio
async def test_metrics(seeded):
    reports = container.get_report_service()
    dispatcher = container.get_dispatcher()
    first = await reports.submit_report(4, 1, "spam", 5, now=NOW)
    second = await reports.submit_report(4, 2, "spam", 1, now=NOW)
    await reports.submit_report(4, 3, "spam", 1, now=NOW)
    await dispatcher.update_report_status(first.report.id, "UNDER_REVIEW", actor=ADMIN, now=NOW)
    await dispatcher.update_report_status(second.report.id, "RESOLVED_ACTION", actor=ADMIN, now=NOW)

    metrics = await container.get_dashboard_service().metrics(now=NOW)

    assert metrics.total_users == 4
    assert metrics.banned_users == 3
    assert metrics.bans_last_7_days == 2
    assert metrics.open_reports == 1
    assert metrics.under_review_reports == 1
    assert metrics.resolved_last_7_days == 1
    # 89 + 97 + 97 + 99
    assert metrics.average_trust_score == 95.5
    assert metrics.generated_at == NOW


@pytest.mark.asyncio
async def test_metrics_on_empty_system():
    metrics = await container.get_dashboard_service().metrics(now=NOW)
    assert metrics.total_users == 0
    assert metrics.average_trust_score is None
