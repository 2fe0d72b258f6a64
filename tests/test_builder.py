"""Tests for QueryBuilder declarations."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect as sa_inspect, select
from starlette.datastructures import QueryParams

from conftest import Author, Post, sql
from fastapi_querybuilder.builder import QueryBuilder
from fastapi_querybuilder.directives import DirectiveSet
from fastapi_querybuilder.exceptions import (
    FilterNotAllowed,
    IncludeNotAllowed,
    SortNotAllowed,
    UnknownAttribute,
)
from fastapi_querybuilder.filters import AllowedFilter


def builder_for(model=Post, **directives) -> QueryBuilder:
    return QueryBuilder.for_(model, DirectiveSet(**directives))


def test_partial_title_filter() -> None:
    builder = builder_for(filters={"title": "hello"}).allowed_filters([AllowedFilter.partial("title")])
    compiled = sql(builder.query)
    assert "posts.title" in compiled
    assert "'%hello%'" in compiled


def test_wildcard_sort() -> None:
    builder = builder_for(sorts=("-created_at",)).allowed_sorts(["*"])
    assert sql(builder.query).endswith("ORDER BY posts.created_at DESC")


def test_include_cross_walk(session) -> None:
    builder = builder_for(Author, includes=("author-profile",)).allowed_includes(["authorProfile"])

    authors = session.scalars(builder.query).all()
    alice = next(a for a in authors if a.name == "Alice")
    assert "author_profile" not in sa_inspect(alice).unloaded
    assert alice.author_profile.bio == "Databases"


def test_disallowed_filter() -> None:
    builder = builder_for(filters={"secret": "x"})
    with pytest.raises(FilterNotAllowed) as exc_info:
        builder.allowed_filters([AllowedFilter.exact("title")])
    assert exc_info.value.offending == {"secret"}
    assert exc_info.value.allowed == {"title"}


def test_rejection_applies_nothing() -> None:
    builder = builder_for(filters={"title": "x", "secret": "y"})
    with pytest.raises(FilterNotAllowed):
        builder.allowed_filters("title")
    assert "WHERE" not in sql(builder.query)


def test_filters_are_combined(session) -> None:
    builder = builder_for(filters={"title": "hello", "published": "true", "age": "$gte:5"}).allowed_filters(
        "title", AllowedFilter.exact("published"), AllowedFilter.operator("age")
    )
    assert [p.title for p in session.scalars(builder.query)] == ["hello again"]


def test_sort_order_is_preserved() -> None:
    builder = builder_for(sorts=("-age", "name")).allowed_sorts("age", "name")
    assert sql(builder.query).endswith("ORDER BY posts.age DESC, posts.name ASC")

    builder = builder_for(sorts=("name", "-age")).allowed_sorts("age", "name")
    assert sql(builder.query).endswith("ORDER BY posts.name ASC, posts.age DESC")


def test_disallowed_sort() -> None:
    with pytest.raises(SortNotAllowed) as exc_info:
        builder_for(sorts=("-age", "body")).allowed_sorts("age", "name")
    assert exc_info.value.offending == {"body"}
    assert exc_info.value.allowed == {"age", "name"}


def test_allowed_sorts_without_client_sorts_is_a_noop() -> None:
    builder = builder_for().allowed_sorts("age")
    assert "ORDER BY" not in sql(builder.query)


def test_default_sort() -> None:
    builder = builder_for().default_sort("-created_at").allowed_sorts("title")
    assert sql(builder.query).endswith("ORDER BY posts.created_at DESC")


def test_default_sort_never_overrides_client_sort() -> None:
    builder = builder_for(sorts=("title",)).default_sort("-created_at").allowed_sorts("title")
    compiled = sql(builder.query)
    assert compiled.endswith("ORDER BY posts.title ASC")
    assert "created_at DESC" not in compiled


def test_default_sort_bypasses_guard() -> None:
    builder = builder_for().default_sort("-age", "author.name").allowed_sorts("title")
    compiled = sql(builder.query)
    assert "LEFT OUTER JOIN authors" in compiled
    assert compiled.endswith("ORDER BY posts.age DESC, authors_1.name ASC")


def test_wildcard_accepts_unknown_keys_without_joining() -> None:
    builder = builder_for(sorts=("-popularity", "author.name")).allowed_sorts("*")
    compiled = sql(builder.query)
    assert "JOIN" not in compiled
    assert compiled.endswith('ORDER BY popularity DESC, "author.name" ASC')


def test_declared_related_sort_is_joined() -> None:
    builder = builder_for(sorts=("-author.name",)).allowed_sorts("author.name")
    compiled = sql(builder.query)
    assert "LEFT OUTER JOIN authors AS authors_1" in compiled
    assert compiled.endswith("ORDER BY authors_1.name DESC")


def test_related_filter_and_sort_share_one_join() -> None:
    builder = (
        builder_for(filters={"author.name": "ali"}, sorts=("author.name",))
        .allowed_filters("author.name")
        .allowed_sorts("author.name")
    )
    assert sql(builder.query).count("JOIN") == 1


def test_declaring_twice_reapplies() -> None:
    builder = builder_for(sorts=("-age",)).allowed_sorts("age").allowed_sorts("age")
    assert sql(builder.query).endswith("ORDER BY posts.age DESC, posts.age DESC")


def test_base_query_is_not_modified() -> None:
    base = select(Post).where(Post.published.is_(True))
    builder = QueryBuilder.for_(base, DirectiveSet(sorts=("title",))).allowed_sorts("title")

    assert "ORDER BY" not in sql(base)
    compiled = sql(builder.query)
    assert "WHERE posts.published IS" in compiled
    assert compiled.endswith("ORDER BY posts.title ASC")
    assert builder.model is Post


def test_root_field_selection() -> None:
    builder = builder_for(fields={"posts": ("title", "password")})
    compiled = sql(builder.query)
    assert "posts.title" in compiled
    assert "posts.body" not in compiled
    assert "password" not in compiled


def test_field_selection_for_other_tables_is_ignored() -> None:
    builder = builder_for(fields={"Posts": ("title",), "authors": ("name",)})
    assert "posts.body" in sql(builder.query)


def test_include_with_field_selection(session) -> None:
    builder = builder_for(includes=("author",), fields={"author": ("name",)}).allowed_includes("author")

    post = session.scalars(builder.query.where(Post.title == "Goodbye")).one()
    author_state = sa_inspect(post.author)
    assert post.author.name == "Bob"
    assert "email" in author_state.unloaded


def test_include_without_field_selection(session) -> None:
    builder = builder_for(includes=("author",)).allowed_includes("author")

    post = session.scalars(builder.query.where(Post.title == "Goodbye")).one()
    assert "author" not in sa_inspect(post).unloaded
    assert "email" not in sa_inspect(post.author).unloaded


def test_nested_include(session) -> None:
    builder = builder_for(Author, includes=("posts.author",)).allowed_includes("posts.author")

    bob = session.scalars(builder.query.where(Author.name == "Bob")).one()
    assert "posts" not in sa_inspect(bob).unloaded
    assert {p.title for p in bob.posts} == {"Goodbye", "hello again"}


def test_disallowed_include() -> None:
    with pytest.raises(IncludeNotAllowed) as exc_info:
        builder_for(includes=("author", "comments")).allowed_includes("author")
    assert exc_info.value.offending == {"comments"}


def test_include_must_name_a_relationship() -> None:
    with pytest.raises(UnknownAttribute):
        builder_for(includes=("title",)).allowed_includes("title")


def test_guard_and_lookup_mismatch_is_internal_error() -> None:
    class Broken(AllowedFilter):
        def is_for_property(self, property):
            return False

    with pytest.raises(RuntimeError):
        builder_for(filters={"title": "x"}).allowed_filters(Broken.partial("title"))


def test_end_to_end(session) -> None:
    directives = DirectiveSet.from_query_params(
        {"filter[title]": "hello", "sort": "-created_at", "include": "author", "fields[posts]": "id,title,author_id"}
    )
    builder = (
        QueryBuilder.for_(Post, directives)
        .allowed_filters("title")
        .default_sort("title")
        .allowed_sorts("created_at")
        .allowed_includes("author")
    )

    posts = session.scalars(builder.query).all()
    assert [p.title for p in posts] == ["hello again", "Hello world"]
    assert "body" in sa_inspect(posts[0]).unloaded
    assert posts[0].author.name == "Bob"


def test_relationships_to_the_same_model_are_joined_separately(session) -> None:
    builder = builder_for(filters={"author.name": "Alice", "editor.name": "Bob"}).allowed_filters(
        AllowedFilter.exact("author.name"), AllowedFilter.exact("editor.name")
    )
    compiled = sql(builder.query)
    assert compiled.count("LEFT OUTER JOIN authors") == 2
    assert [p.title for p in session.scalars(builder.query)] == ["Hello world"]

    builder = builder_for(filters={"author.name": "Bob"}, sorts=("-editor.name",))
    builder.allowed_filters(AllowedFilter.exact("author.name")).allowed_sorts("editor.name")
    assert sql(builder.query).count("LEFT OUTER JOIN authors") == 2
    assert [p.title for p in session.scalars(builder.query)] == ["Goodbye", "hello again"]


def test_include_fields_use_cross_walked_key(session) -> None:
    directives = DirectiveSet.from_query_params(
        QueryParams("include=author-profile&fields[author-profile]=bio")
    )
    builder = QueryBuilder.for_(Author, directives).allowed_includes("authorProfile")

    alice = session.scalars(builder.query.where(Author.name == "Alice")).one()
    profile = alice.author_profile
    assert profile.bio == "Databases"
    assert "website" in sa_inspect(profile).unloaded
