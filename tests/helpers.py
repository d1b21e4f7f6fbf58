"""
Test doubles shared by the unit and integration suites.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

TEST_HOST = "poller-test-host"
TEST_URL = "http://rets.example.com/Login"


class FakeSessionClient:
    """
    Records every call and replays scripted results per query.

    `results` maps a RETS query string to a list of records or to an
    exception to raise from `find`.
    """

    def __init__(
        self,
        results: Optional[Dict[str, Any]] = None,
        login_error: Optional[BaseException] = None,
        logout_error: Optional[BaseException] = None,
    ) -> None:
        self.results = results or {}
        self.login_error = login_error
        self.logout_error = logout_error
        self.calls: List[str] = []
        self.criteria: List[Dict[str, Any]] = []
        self.logged_in = False

    def login(self) -> None:
        self.calls.append("login")
        if self.login_error is not None:
            raise self.login_error
        self.logged_in = True

    def find(self, criteria: Mapping[str, Any]) -> List[Dict[str, Any]]:
        self.calls.append("find")
        self.criteria.append(dict(criteria))
        outcome = self.results.get(criteria.get("query"), [])
        if isinstance(outcome, BaseException):
            raise outcome
        return [dict(record) for record in outcome]

    def logout(self) -> None:
        self.calls.append("logout")
        self.logged_in = False
        if self.logout_error is not None:
            raise self.logout_error
