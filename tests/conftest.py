import json
import random
import re
import threading
import time
from pathlib import Path

import pytest

from prism.config import MergeConfig
from prism.framework_data import FrameworkRepository
from prism.llm_layer import ServiceError
from prism.merge_agent.question_merger import QuestionMergeService
from prism.merge_agent.question_pipeline import MergePipeline


QUOTED_QUESTION_RE = re.compile(r'^(?:Framework \d \([^)]*\):|\d\.) "(.*)"$', re.MULTILINE)


def echo_merge(prompt, system_prompt, profile):
    """Merge that keeps every word of both quoted source questions."""
    first, second = QUOTED_QUESTION_RE.findall(prompt)[:2]
    return f"How can organizations align {first.rstrip('?.')} with {second.rstrip('?.')}?"


class FakeLLMClient:
    """Stands in for LLMClient; answers from a responder callable."""

    def __init__(self, responder=None, delay: float = 0.0):
        self.responder = responder or echo_merge
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, prompt, system_prompt="", profile=None, **params):
        with self._lock:
            self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "profile": profile})
        if self.delay:
            time.sleep(self.delay)
        result = self.responder(prompt, system_prompt, profile)
        if isinstance(result, Exception):
            raise result
        return result

    def ping(self, profile="ping"):
        return self.complete("ping", "You are a helpful assistant.", profile)

    def profiles_called(self):
        return [call["profile"] for call in self.calls]


def failing_responder(prompt, system_prompt, profile):
    return ServiceError("HTTP 503: upstream unavailable")


def oid(value: str) -> dict:
    return {"$oid": value}


SAMPLE_FRAMEWORKS = [
    {
        "_id": oid("65f1a2b3c4d5e6f708192a01"),
        "name": "Alpha",
        "description": "Environmental disclosure and reporting standard",
        "questions": [
            {"_id": oid("65f1a2b3c4d5e6f708192b01"), "ref": "A-1", "category": "Environmental",
             "question": "How does your organization report water consumption?"},
            {"_id": oid("65f1a2b3c4d5e6f708192b02"), "category": "Governance",
             "question": "What is the board composition?"},
            {"_id": oid("65f1a2b3c4d5e6f708192b03"), "ref": "A-3", "category": "Social",
             "question": "Describe employee safety training programs."},
        ],
    },
    {
        "_id": oid("65f1a2b3c4d5e6f708192a02"),
        "name": "Beta",
        "description": "Industry risk and reporting guidance",
        "questions": [
            {"_id": oid("65f1a2b3c4d5e6f708192c01"), "ref": "B-1", "category": "Environmental",
             "question": "How does your company report water withdrawal?"},
            {"_id": oid("65f1a2b3c4d5e6f708192c02"), "ref": "B-2", "category": "Governance",
             "question": "What is the board structure?"},
            {"_id": oid("65f1a2b3c4d5e6f708192c03"), "ref": "B-3", "category": "Social",
             "question": "Explain employee safety incident rates."},
        ],
    },
    {
        "_id": oid("65f1a2b3c4d5e6f708192a03"),
        "name": "Gamma",
        "questions": [
            {"ref": "G-1", "category": "Governance", "question": "What is the board composition?"},
        ],
    },
    {
        "_id": oid("65f1a2b3c4d5e6f708192a04"),
        "name": "Delta",
        "questions": [
            {"ref": "D-1", "category": "Environmental", "question": "How much water is withdrawn?"},
        ],
    },
]


@pytest.fixture
def frameworks_path(tmp_path: Path) -> Path:
    path = tmp_path / "prism.frameworks.json"
    path.write_text(json.dumps(SAMPLE_FRAMEWORKS), encoding="utf-8")
    return path


@pytest.fixture
def repository(frameworks_path: Path) -> FrameworkRepository:
    return FrameworkRepository(frameworks_path)


@pytest.fixture
def merge_config() -> MergeConfig:
    return MergeConfig(merge_concurrency=4, merge_timeout=2.0, random_seed=7)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def make_pipeline(repository, merge_config):
    """Factory for pipelines wired to a fake LLM and the sample document."""

    created = []

    def _make(llm=None, config=None, repo=None):
        config = config or merge_config
        service = QuestionMergeService(llm=llm or FakeLLMClient(), config=config)
        pipeline = MergePipeline(
            service=service,
            repository=repo or repository,
            config=config,
            rng=random.Random(11),
        )
        created.append(pipeline)
        return pipeline

    yield _make
    for pipeline in created:
        pipeline.close()
