"""Shared fixtures for the harpoon test suite."""

import hashlib
import hmac
import json
from typing import Any, List

import pytest

from harpoon.core.config import HarpoonConfig, Rule
from harpoon.services.dispatcher import CommandDispatcher, DispatchResult, split_arguments

SECRET = "s3cr3t"


def sign(payload: bytes, secret: str = SECRET, algorithm: str = "sha1") -> str:
    digest = hmac.new(secret.encode(), payload, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"


def push_payload(repository: str = "acme/widgets", ref: str = "refs/heads/main", **extra: Any) -> bytes:
    body = {
        "ref": ref,
        "repository": {
            "id": 42,
            "name": repository.split("/")[-1],
            "full_name": repository,
            "owner": {"name": "acme", "email": None},
            "private": False,
            "html_url": f"https://github.com/{repository}",
            "description": None,
        },
        "commits": [
            {
                "id": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
                "timestamp": "2024-05-01T10:00:00+02:00",
                "message": "Fix the widget",
                "author": {"name": "Jane Doe", "email": "jane@example.com"},
            }
        ],
    }
    body.update(extra)
    return json.dumps(body).encode()


class RecordingDispatcher(CommandDispatcher):
    """Dispatcher that records rules instead of launching processes."""

    def __init__(self, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.calls: List[Rule] = []

    async def dispatch(self, rule: Rule) -> DispatchResult:
        self.calls.append(rule)
        return DispatchResult(argv=[rule.cmd, *split_arguments(rule.args)], started=True, pid=0)


@pytest.fixture
def config() -> HarpoonConfig:
    return HarpoonConfig(
        events={
            "push:acme/widgets:refs/heads/main": {"cmd": "echo", "args": "deployed"},
        }
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def signer():
    return sign


@pytest.fixture
def make_push():
    return push_payload
