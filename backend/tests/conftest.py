"""
Test configuration and fixtures for votekit tests.
"""
import pytest
import pytest_asyncio
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from votekit.db.base import Base, enable_sqlite_savepoints
from votekit.services.ledger import VoteLedger
from votekit.services.registry import VoteableRegistry

from sample_models import User, Post, Comment, Article


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a test database engine."""
    # File-based SQLite: each new aiosqlite connection to :memory: would
    # see an empty database.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def registry() -> VoteableRegistry:
    """Registry with Post (score counter), Comment (default counter) and Article."""
    registry = VoteableRegistry()
    registry.register(Post, vote_counter="score")
    registry.register(Comment, vote_counter=True)
    registry.register(Article)
    return registry


@pytest.fixture
def ledger(registry: VoteableRegistry) -> VoteLedger:
    return VoteLedger(registry)


async def _user(db_session: AsyncSession, name: str) -> User:
    user = User(name=name)
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    return await _user(db_session, "Alice")


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> User:
    return await _user(db_session, "Bob")


@pytest_asyncio.fixture
async def carol(db_session: AsyncSession) -> User:
    return await _user(db_session, "Carol")


@pytest_asyncio.fixture
async def post(db_session: AsyncSession) -> Post:
    """A post with a zero score."""
    post = Post(title="Hello world")
    db_session.add(post)
    await db_session.flush()
    return post


@pytest_asyncio.fixture
async def comment(db_session: AsyncSession) -> Comment:
    comment = Comment(body="First!")
    db_session.add(comment)
    await db_session.flush()
    return comment


@pytest_asyncio.fixture
async def article(db_session: AsyncSession) -> Article:
    article = Article(headline="Integer keys")
    db_session.add(article)
    await db_session.flush()
    return article
