# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scripted stand-ins for requests.Session / requests.Response."""
from __future__ import annotations

import requests


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = dict(headers or {})
        self.closed = False

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """
    Each call pops the next scripted outcome: a FakeResponse is returned, an
    exception instance is raised. When the script runs out the last outcome
    repeats.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [FakeResponse()])
        self.calls = []

    def _next(self):
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def request(self, method, url, headers=None, data=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), "data": data, "timeout": timeout})
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._next()
