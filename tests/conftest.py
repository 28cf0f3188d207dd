import json
from collections import Counter

import mongomock
import pytest

from resumeflame.app import create_app
from resumeflame.config import TestConfig
from resumeflame.storage import SubmissionStore

RESUME_TEXT = (
    "Jane Doe\nSoftware Engineer\n\nExperience\n"
    "- Responsible for various tasks on the backend team\n"
    "- Helped with deployments\n\nSkills\nPython, synergy, hard-working\n"
)

CRITIQUE = {
    "score": 4,
    "roast_lines": ["'Responsible for various tasks' is not a job, it's a shrug."],
    "issues": ["No metrics anywhere"],
    "one_liner": "A resume that whispers when it should shout.",
}

REWRITE = "JANE DOE\nSoftware Engineer\n\n- Led backend deployments for 12 services"


class StubGenerator:
    """Counts generate() calls per request kind and replays scripted outcomes."""

    def __init__(self, critique=None, rewrite=None):
        self.outcomes = {
            "critique": list(critique) if critique is not None else [json.dumps(CRITIQUE)],
            "rewrite": list(rewrite) if rewrite is not None else [REWRITE],
        }
        self.calls = Counter()
        self.requests = []

    def check_configured(self):
        return None

    def generate(self, request):
        self.calls[request.kind] += 1
        self.requests.append(request)
        queue = self.outcomes[request.kind]
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def db():
    return mongomock.MongoClient().resumeflame


@pytest.fixture
def store(db):
    s = SubmissionStore(db)
    s.migrate()
    return s


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def app(db, generator):
    return create_app(TestConfig, db=db, generator=generator)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    return app.extensions["resumeflame.store"]
