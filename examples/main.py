from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Depends
import sqlalchemy
from sqlalchemy import String, ForeignKey, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column, relationship, declarative_base
import uvicorn

from fastapi_querybuilder.builder import QueryBuilder
from fastapi_querybuilder.dependencies import query_builder
from fastapi_querybuilder.filters import AllowedFilter
from examples.schemas import StatusEnum

# ───── App & DB Setup ───────────────────────────

DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(DATABASE_URL, echo=True)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)
Base = declarative_base()


async def get_db():
    async with SessionLocal() as session:
        yield session


# ───── Models ────────────────────────────────────

class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)

    posts: Mapped[list["Post"]] = relationship("Post", back_populates="author")
    author_profile: Mapped["AuthorProfile"] = relationship("AuthorProfile", back_populates="author", uselist=False)


class AuthorProfile(Base):
    __tablename__ = "author_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"))
    bio: Mapped[str] = mapped_column(String, nullable=True)

    author: Mapped["Author"] = relationship("Author", back_populates="author_profile")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String, index=True)
    body: Mapped[str] = mapped_column(String, nullable=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"))
    published: Mapped[bool] = mapped_column(default=False, nullable=False)
    status: Mapped[StatusEnum] = mapped_column(
        sqlalchemy.Enum(StatusEnum),
        default=StatusEnum.DRAFT,
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))

    author: Mapped["Author"] = relationship("Author", back_populates="posts")


# ───── Lifespan / Seed Data ─────────────────────

@asynccontextmanager
async def lifespan(_: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as session:
        result = await session.execute(select(Author))
        if not result.scalars().first():
            alice = Author(name="Alice", email="alice@example.com",
                           author_profile=AuthorProfile(bio="Writes about databases"))
            bob = Author(name="Bob", email="bob@example.com")
            session.add_all([
                Post(title="Hello SQLAlchemy", body="...", author=alice,
                     status=StatusEnum.PUBLISHED, published=True),
                Post(title="Hello FastAPI", body="...", author=bob,
                     status=StatusEnum.PUBLISHED, published=True),
                Post(title="Unfinished thoughts", body="...", author=alice),
            ])
            await session.commit()

    yield

# ───── FastAPI App ───────────────────────────────

app = FastAPI(lifespan=lifespan)


def configure_posts(builder: QueryBuilder) -> QueryBuilder:
    return (
        builder
        .allowed_filters(
            AllowedFilter.exact("id"),
            AllowedFilter.exact("published"),
            AllowedFilter.operator("created_at", operators=("$gte", "$lte")),
            AllowedFilter.partial("author.name"),
            "title",
        )
        .default_sort("-created_at")
        .allowed_sorts("created_at", "title", "author.name")
        .allowed_includes("author", "author.authorProfile")
    )


@app.get("/posts")
async def get_posts(builder=query_builder(Post, configure_posts), session: AsyncSession = Depends(get_db)):
    """
    Examples:

    GET /posts?filter[title]=hello
    GET /posts?filter[published]=true&sort=-created_at
    GET /posts?filter[created_at]=$gte:"2024-01-01"
    GET /posts?include=author&fields[posts]=id,title&fields[author]=id,name
    GET /posts?sort=author.name
    """
    result = await session.execute(builder.query)
    return result.scalars().all()


@app.get("/authors")
async def get_authors(builder=query_builder(Author), session: AsyncSession = Depends(get_db)):
    builder.allowed_filters("name").allowed_sorts("*").allowed_includes("posts", "authorProfile")
    result = await session.execute(builder.query)
    return result.scalars().all()


# ───── Run Server ────────────────────────────────

if __name__ == "__main__":
    uvicorn.run("examples.main:app", host="0.0.0.0", port=8000, reload=True)
