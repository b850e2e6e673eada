from __future__ import annotations

from datetime import datetime, timezone

import pytest

from helpdesk.analytics import ReportRange


def test_report_range_parse_falls_back():
    assert ReportRange.parse("7d") is ReportRange.LAST_WEEK
    assert ReportRange.parse("fortnight") is ReportRange.LAST_MONTH
    assert ReportRange.parse(None, ReportRange.LAST_YEAR) is ReportRange.LAST_YEAR


def test_report_range_since():
    now = datetime(2024, 3, 31, tzinfo=timezone.utc)

    assert ReportRange.LAST_WEEK.since(now) == datetime(2024, 3, 24, tzinfo=timezone.utc)
    assert ReportRange.LAST_YEAR.since(now).year == 2023


async def _ticket(services, actor, title, category, priority="medium"):
    return await services.tickets.create_ticket(
        actor, title=title, description=f"{title} details", priority=priority, category=category
    )


@pytest.mark.asyncio
async def test_report_counts_tickets_users_and_articles(services, people):
    vpn = await _ticket(services, people.client, "VPN", "network", priority="high")
    wifi = await _ticket(services, people.client, "Wi-Fi", "network")
    await _ticket(services, people.other_client, "Printer", "hardware", priority="low")
    await services.tickets.take_ticket(people.support, vpn.id)
    await services.tickets.update_ticket(people.support, vpn.id, {"status": "resolved"})
    await services.tickets.take_ticket(people.other_support, wifi.id)

    article = await services.knowledge.create_article(
        people.support, title="VPN how-to", content="Steps", category="network", is_published=True
    )
    await services.knowledge.get_article(people.client, article.id)
    await services.knowledge.vote(people.client, article.id, is_helpful=True)
    await services.users.register(
        first_name="Petr",
        last_name="Ivanov",
        email="petr@example.com",
        password="long-enough-pass",
        department="Sales",
        position="Manager",
    )

    report = await services.analytics.build_report("30d")

    assert report.range is ReportRange.LAST_MONTH
    assert report.tickets.total == 3
    assert report.tickets.by_status == {"new": 1, "in_progress": 1, "resolved": 1, "closed": 0}
    assert report.tickets.by_priority == {"low": 1, "medium": 1, "high": 1, "urgent": 0}

    assert report.users.total == 5
    assert report.users.active == 5
    assert report.users.pending == 1
    assert report.users.by_role == {"client": 2, "support": 2, "admin": 1}

    assert [(item.category, item.ticket_count, item.percentage) for item in report.top_categories] == [
        ("network", 2, 66.7),
        ("hardware", 1, 33.3),
    ]

    assert report.knowledge_base.published_articles == 1
    assert report.knowledge_base.total_views == 1
    assert report.knowledge_base.helpful_votes == 1
    assert report.knowledge_base.not_helpful_votes == 0

    team = {member.user_id: member for member in report.support_team}
    assert set(team) == {people.support.id, people.other_support.id, people.admin.id}
    assert report.support_team[0].user_id == people.support.id
    assert (team[people.support.id].assigned, team[people.support.id].resolved) == (1, 1)
    assert team[people.support.id].efficiency == 100.0
    assert team[people.other_support.id].efficiency == 0.0
    assert team[people.admin.id].assigned == 0


@pytest.mark.asyncio
async def test_daily_series_covers_last_week(services, people):
    ticket = await _ticket(services, people.client, "Monitor", "hardware")
    await services.tickets.update_ticket(people.admin, ticket.id, {"status": "resolved"})

    report = await services.analytics.build_report()

    assert len(report.daily) == 7
    assert report.daily[-1].day == report.generated_at.date()
    assert (report.daily[-1].created, report.daily[-1].resolved) == (1, 1)
    assert all(day.created == 0 for day in report.daily[:-1])


@pytest.mark.asyncio
async def test_recent_activity_is_newest_first(services, people):
    first = await _ticket(services, people.client, "First", "other")
    second = await _ticket(services, people.client, "Second", "other")
    await services.tickets.add_comment(people.client, first.id, content="bump")

    report = await services.analytics.build_report("7d")

    assert [item.ticket_id for item in report.recent_activity] == [first.id, second.id]


@pytest.mark.asyncio
async def test_empty_report_has_zero_percentages(services):
    report = await services.analytics.build_report("1y")

    assert report.tickets.total == 0
    assert report.top_categories == []
    assert report.support_team == []
