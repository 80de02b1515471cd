"""Shared fixtures: a fresh in-memory store per test."""

from __future__ import annotations

import pytest

from eventdesk.repos.memory import InMemoryStore


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()
