from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

DEMO_TEAM_ID = "demo-team"

TEAM_USERS: list[dict[str, Any]] = [
    {"id": "demo-user", "firstName": "Alex", "lastName": "Morgan", "email": "alex@coworkr.com", "role": "admin", "title": "CEO & Founder"},
    {"id": "john-doe", "firstName": "John", "lastName": "Doe", "email": "john@coworkr.com", "role": "manager", "title": "Sales Manager"},
    {"id": "jane-smith", "firstName": "Jane", "lastName": "Smith", "email": "jane@coworkr.com", "role": "member", "title": "Senior Developer"},
    {"id": "mike-johnson", "firstName": "Mike", "lastName": "Johnson", "email": "mike@coworkr.com", "role": "member", "title": "Product Designer"},
    {"id": "sarah-wilson", "firstName": "Sarah", "lastName": "Wilson", "email": "sarah@coworkr.com", "role": "member", "title": "Marketing Lead"},
    {"id": "david-lee", "firstName": "David", "lastName": "Lee", "email": "david@coworkr.com", "role": "member", "title": "Account Executive"},
]


def team_members(team_id: str = DEMO_TEAM_ID) -> list[dict[str, Any]]:
    return [{**member, "teamId": team_id} for member in TEAM_USERS]


def demo_records(caller_id: str, now: datetime) -> dict[str, dict[str, list[dict[str, Any]]]]:
    """Sample records for a local run without the Coworkr app."""
    today = now.replace(minute=0, second=0, microsecond=0)

    def at(days: int, hour: int, minute: int = 0) -> str:
        return (today + timedelta(days=days)).replace(hour=hour, minute=minute).isoformat()

    return {
        caller_id: {
            "tasks": [
                {"title": "Prepare Q4 sales report", "status": "pending", "priority": "high", "dueDate": at(0, 17)},
                {"title": "Review marketing proposal", "status": "pending", "priority": "medium", "dueDate": at(2, 12)},
                {"title": "Update CRM contacts", "status": "in_progress", "priority": "low"},
                {"title": "Send onboarding pack", "status": "done", "priority": "medium"},
            ],
            "events": [
                {"title": "Team Standup", "startTime": at(1, 10), "endTime": at(1, 10, 30)},
                {"title": "Client Demo", "startTime": at(2, 14), "endTime": at(2, 15)},
            ],
            "projects": [
                {"name": "Website Redesign", "status": "in-progress", "priority": "high"},
                {"name": "Mobile App Launch", "status": "open", "priority": "medium"},
            ],
            "contacts": [
                {"firstName": "Emily", "lastName": "Chen", "email": "emily@acme.com", "company": "Acme Corporation"},
                {"firstName": "Robert", "lastName": "Garcia", "email": "robert@globex.com", "company": "Globex Inc"},
            ],
            "deals": [
                {"name": "Acme Enterprise License", "value": 50000, "stage": "proposal"},
                {"name": "Globex Support Renewal", "value": 12000, "stage": "won"},
            ],
            "accounts": [
                {"name": "Acme Corporation", "industry": "Technology"},
                {"name": "Globex Inc", "industry": "Manufacturing"},
            ],
        },
        "jane-smith": {
            "tasks": [
                {"title": "Fix login bug", "status": "pending", "priority": "high"},
                {"title": "Code review", "status": "pending", "priority": "medium"},
                {"title": "API documentation", "status": "in_progress", "priority": "low"},
            ],
        },
        "david-lee": {
            "tasks": [{"title": "Follow up with Globex", "status": "pending", "priority": "medium"}],
        },
    }
