import os

# 앱 모듈 임포트 전에 테스트 설정 주입
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["TEST_MODE"] = "true"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import uuid

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from novel_api.core.database import Base, get_db, get_redis
from novel_api.core.security import create_access_token
from novel_api.main import app
from novel_api.models import Chapter, ChapterUnlock, Novel, Profile, ProfileRole


@dataclass
class Seed:
    reader_id: uuid.UUID
    author_id: uuid.UUID
    novel_id: uuid.UUID
    novel_slug: str


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def future():
    return datetime.now(timezone.utc) + timedelta(days=30)


@pytest.fixture
def past():
    return datetime.now(timezone.utc) - timedelta(days=30)


async def seed_novel(
    session_factory,
    *,
    reader_coins: int = 10,
    author_coins: int = 0,
    author_role: str = ProfileRole.AUTHOR.value,
    with_author: bool = True,
    chapters=(),
) -> Seed:
    """독자/작가 프로필과 소설, 회차 생성

    chapters: (chapter_number, publish_at, coins) 튜플 목록
    """
    reader_id = uuid.uuid4()
    author_id = uuid.uuid4()
    novel_id = uuid.uuid4()
    slug = f"novel-{novel_id.hex[:8]}"
    async with session_factory() as session:
        session.add(Profile(id=reader_id, username="reader", role=ProfileRole.USER.value, coins=reader_coins))
        session.add(Profile(id=author_id, username="author", role=author_role, coins=author_coins))
        session.add(Novel(
            id=novel_id,
            slug=slug,
            title="The Long Road",
            author="author",
            author_profile_id=author_id if with_author else None,
        ))
        for number, publish_at, coins in chapters:
            session.add(Chapter(
                novel_id=novel_id,
                chapter_number=number,
                title=f"Chapter {number}",
                content=f"content of chapter {number}",
                publish_at=publish_at,
                coins=coins,
            ))
        await session.commit()
    return Seed(reader_id=reader_id, author_id=author_id, novel_id=novel_id, novel_slug=slug)


async def coins_of(session_factory, profile_id) -> int:
    async with session_factory() as session:
        return (await session.execute(select(Profile.coins).where(Profile.id == profile_id))).scalar_one()


async def unlock_count(session_factory, profile_id=None) -> int:
    stmt = select(func.count()).select_from(ChapterUnlock)
    if profile_id is not None:
        stmt = stmt.where(ChapterUnlock.profile_id == profile_id)
    async with session_factory() as session:
        return (await session.execute(stmt)).scalar_one()


def auth_headers(profile_id, **metadata) -> dict:
    token = create_access_token({"sub": str(profile_id), "user_metadata": metadata})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    async def _override_get_redis():
        return None

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = _override_get_redis
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
