from __future__ import annotations

import copy
from typing import Any, Protocol

from coworkr.agent.services.rest_client import CoworkrRestClient


class TeamRoster(Protocol):
    def list_members(self, caller_id: str, team_id: str) -> list[dict[str, Any]]: ...


class RestTeamRoster:
    def __init__(self, client: CoworkrRestClient | None = None) -> None:
        self._client = client or CoworkrRestClient()

    def list_members(self, caller_id: str, team_id: str) -> list[dict[str, Any]]:
        body = self._client.get(caller_id, "/api/team/users", params={"teamId": team_id})
        return [member for member in body.get("users") or [] if isinstance(member, dict)]


class InMemoryTeamRoster:
    def __init__(self, members: list[dict[str, Any]] | None = None, *, team_id: str | None = None) -> None:
        self._members = [copy.deepcopy(member) for member in members or []]
        self._team_id = team_id

    def list_members(self, caller_id: str, team_id: str) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(member)
            for member in self._members
            if self._team_id is None or str(member.get("teamId") or self._team_id) == team_id
        ]
