"""Shared models and fixtures."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import ForeignKey, String, create_engine
from sqlalchemy.dialects import sqlite
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String, nullable=True)

    posts: Mapped[list["Post"]] = relationship(back_populates="author", foreign_keys="Post.author_id")
    author_profile: Mapped["AuthorProfile"] = relationship(back_populates="author", uselist=False)


class AuthorProfile(Base):
    __tablename__ = "author_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"))
    bio: Mapped[str] = mapped_column(String, nullable=True)
    website: Mapped[str] = mapped_column(String, nullable=True)

    author: Mapped["Author"] = relationship(back_populates="author_profile")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String)
    body: Mapped[str] = mapped_column(String, nullable=True)
    age: Mapped[int] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=True)
    published: Mapped[bool] = mapped_column(default=False)
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"), nullable=True)
    editor_id: Mapped[int] = mapped_column(ForeignKey("authors.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=True)

    author: Mapped["Author"] = relationship(back_populates="posts", foreign_keys=[author_id])
    editor: Mapped["Author"] = relationship(foreign_keys=[editor_id])


def sql(query) -> str:
    """Compile a statement with inlined parameters."""
    return str(query.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        alice = Author(name="Alice", email="alice@example.com",
                       author_profile=AuthorProfile(bio="Databases", website="https://alice.dev"))
        bob = Author(name="Bob", email="bob@example.com")
        session.add_all([
            Post(title="Hello world", body="first", age=3, published=True, author=alice, editor=bob,
                 created_at=datetime(2024, 1, 1)),
            Post(title="Goodbye", body="second", age=10, published=False, author=bob, editor=alice,
                 created_at=datetime(2024, 2, 1)),
            Post(title="hello again", body="third", age=7, published=True, author=bob,
                 created_at=datetime(2024, 3, 1)),
        ])
        session.commit()
        session.expunge_all()
        yield session
