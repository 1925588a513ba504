"""Shared fixtures: in-memory database and a fake OpenAI client."""
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.models import PropertyFAQ
from app.services.answer_generator import AnswerGenerator

PROPERTY_ID = "prop-1"

CHECK_IN_FAQ = ("What time is check-in?", "Check-in is at 3pm.")
PARKING_FAQ = ("Is parking available?", "Yes, free parking in the driveway.")


def completion(content: Optional[str]) -> Any:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


class FakeCompletions:
    def __init__(self, response: Any = None, error: Optional[Exception] = None):
        self.response = response if response is not None else completion("Check-in is at 3pm.")
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakeOpenAI:
    def __init__(self, completions: FakeCompletions):
        self.completions = completions
        self.chat = SimpleNamespace(completions=completions)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def add_faqs(session):
    def _add(*pairs: tuple[str, str], property_id: str = PROPERTY_ID) -> list[PropertyFAQ]:
        faqs = [
            PropertyFAQ(property_id=property_id, question=question, answer=answer)
            for question, answer in pairs
        ]
        session.add_all(faqs)
        session.commit()
        return faqs

    return _add


@pytest.fixture
def completions():
    return FakeCompletions()


@pytest.fixture
def generator(completions):
    return AnswerGenerator(api_key="sk-test", client=FakeOpenAI(completions))
