"""
Shared fixtures: recording hub connections, test settings and a service
graph built on langchain's fake chat model and in-memory vector store.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models import FakeListChatModel

from formforge.config import Settings
from formforge.plans.fallback import minimal_plan
from formforge.realtime.connection import Connection
from formforge.services.container import build_services


class RecordingConnection(Connection):
    """Hub subscriber that keeps every delivered event in order."""

    def __init__(self, connection_id: Optional[str] = None):
        super().__init__(connection_id)
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def send(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [event for event, _ in self.events]

    def of(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def recorder():
    return RecordingConnection()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        vector_backend="memory",
        google_api_key="test-key",
        upload_retention_seconds=60,
        generation_retention_seconds=60,
    )


@pytest.fixture
def model_plan():
    """A schema-valid plan that is distinguishable from the fallback plan."""
    plan = minimal_plan()
    plan["program_name"] = "Ring Strength Foundations"
    plan["program_goal"] = "First muscle-up"
    return plan


def fenced(obj: Any) -> str:
    return "Here is your program:\n```json\n" + json.dumps(obj) + "\n```\nGood luck!"


def make_services(settings: Settings, responses: Optional[List[str]] = None):
    return build_services(
        settings,
        chat_model=FakeListChatModel(responses=responses or ["I don't know."]),
        embeddings=DeterministicFakeEmbedding(size=32),
    )


@pytest.fixture
def services(test_settings):
    return make_services(test_settings)
