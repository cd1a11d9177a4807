"""Shared test fixtures."""

import asyncio
import math
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import openai
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from academichub.config import Settings
from academichub.db.base import Base
from academichub.models import Document, Project, ProjectStudent, Task, User
from academichub.search.schemas import Principal
from academichub.services.embedding import EmbeddingService

DIM = 1536


def unit_vector(*hot: int, dim: int = DIM) -> list[float]:
    """Normalized vector with equal weight on the given axes."""
    vec = [0.0] * dim
    for i in hot:
        vec[i] = 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec]


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment, with no embedding provider."""
    values = {
        "openai_api_key": "",
        "azure_openai_endpoint": "",
        "azure_openai_api_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeEmbeddings:
    """Stand-in for ``client.embeddings`` of the OpenAI SDK.

    Returns the vector mapped to each input text (or ``default``), with the
    response items in reverse order to exercise index sorting.
    """

    def __init__(
        self,
        vectors=None,
        default=None,
        fail_times=0,
        fail_when=None,
        delay=0.0,
        error=None,
        empty=False,
    ):
        self.vectors = vectors or {}
        self.default = default or unit_vector(0)
        self.fail_times = fail_times
        self.fail_when = fail_when
        self.delay = delay
        self.error = error
        self.empty = empty
        self.calls = []

    async def create(self, model, input, dimensions=None):
        self.calls.append({"model": model, "input": input, "dimensions": dimensions})
        if self.delay:
            await asyncio.sleep(self.delay)

        inputs = [input] if isinstance(input, str) else list(input)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise openai.OpenAIError("provider unavailable")
        if self.fail_when is not None and self.fail_when(inputs):
            raise openai.OpenAIError("rate limited")
        if self.error is not None:
            raise self.error
        if self.empty:
            return SimpleNamespace(data=[])

        data = [
            SimpleNamespace(index=i, embedding=self.vectors.get(text, self.default))
            for i, text in enumerate(inputs)
        ]
        return SimpleNamespace(data=list(reversed(data)))


def fake_client(**kwargs) -> SimpleNamespace:
    return SimpleNamespace(embeddings=FakeEmbeddings(**kwargs))


class SleepRecorder:
    """Records backoff delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def unavailable_embeddings(settings):
    return EmbeddingService(settings=settings)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """On-disk SQLite database so concurrent sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'search.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def world(session_factory):
    """Seed two lecturers, two students and their projects, tasks and documents.

    - ml: "Machine Learning Research" by lecturer_a, student enrolled, embedded
    - vision: "Deep Learning for Vision" by lecturer_b, embedded near ml
    - history: "Medieval History Archive" by lecturer_a, no embedding, old
    """
    now = datetime.now(timezone.utc)

    admin = User(id=uuid4(), email="admin@uni.edu", full_name="Ada Admin", role="ADMIN")
    lecturer_a = User(id=uuid4(), email="a@uni.edu", full_name="Alan Lecturer", role="LECTURER")
    lecturer_b = User(id=uuid4(), email="b@uni.edu", full_name="Barbara Lecturer", role="LECTURER")
    student = User(id=uuid4(), email="s@uni.edu", full_name="Sam Student", role="STUDENT")
    outsider = User(id=uuid4(), email="o@uni.edu", full_name="Olive Outsider", role="STUDENT")

    ml = Project(
        id=uuid4(),
        title="Machine Learning Research",
        description="Neural networks for course recommendation",
        status="IN_PROGRESS",
        lecturer_id=lecturer_a.id,
        embedding=unit_vector(0),
        created_at=now - timedelta(days=2),
        updated_at=now - timedelta(hours=1),
    )
    vision = Project(
        id=uuid4(),
        title="Deep Learning for Vision",
        description="Convolutional models for image classification",
        status="COMPLETED",
        lecturer_id=lecturer_b.id,
        embedding=unit_vector(0, 1),
        created_at=now - timedelta(days=3),
        updated_at=now - timedelta(hours=2),
    )
    history = Project(
        id=uuid4(),
        title="Medieval History Archive",
        description="Digitizing manuscripts",
        status="IN_PROGRESS",
        lecturer_id=lecturer_a.id,
        created_at=now - timedelta(days=30),
        updated_at=now - timedelta(days=20),
    )

    dataset_task = Task(
        id=uuid4(),
        title="Collect learning datasets",
        description="Gather public benchmarks",
        status="TODO",
        priority="HIGH",
        project_id=ml.id,
        assignee_id=student.id,
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(hours=3),
    )
    review_task = Task(
        id=uuid4(),
        title="Review vision papers",
        description="Survey of deep learning literature",
        status="IN_PROGRESS",
        priority="LOW",
        project_id=vision.id,
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(hours=4),
    )

    notes = Document(
        id=uuid4(),
        file_name="learning_notes.pdf",
        file_url="/files/learning_notes.pdf",
        file_size=1024,
        mime_type="application/pdf",
        description="Lecture notes",
        status="APPROVED",
        project_id=ml.id,
        uploaded_by_id=student.id,
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(hours=5),
    )

    async with session_factory() as session:
        session.add_all([admin, lecturer_a, lecturer_b, student, outsider])
        await session.flush()
        session.add_all([ml, vision, history])
        await session.flush()
        session.add(ProjectStudent(project_id=ml.id, student_id=student.id))
        session.add_all([dataset_task, review_task, notes])
        await session.commit()

    return SimpleNamespace(
        now=now,
        admin=Principal(id=admin.id, role="ADMIN"),
        lecturer_a=Principal(id=lecturer_a.id, role="LECTURER"),
        lecturer_b=Principal(id=lecturer_b.id, role="LECTURER"),
        student=Principal(id=student.id, role="STUDENT"),
        outsider=Principal(id=outsider.id, role="STUDENT"),
        ml=ml.id,
        vision=vision.id,
        history=history.id,
        dataset_task=dataset_task.id,
        review_task=review_task.id,
        notes=notes.id,
    )
