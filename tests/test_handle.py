"""Tests for perch.handle: accessor laws, composition, and missing targets."""

from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from perch.errors import MissingHandleTarget
from perch.handle import MISSING, Handle, attr, identity, key


@dataclass(frozen=True)
class Blog:
    posts: tuple[str, ...] = ()


@dataclass(frozen=True)
class Site:
    blog: Blog = MISSING
    title: str = "site"


class TestAttr:
    def test_project(self) -> None:
        site = Site(blog=Blog(posts=("a",)))
        assert attr("blog").project(site) == Blog(posts=("a",))

    def test_inject_returns_new_state(self) -> None:
        site = Site(blog=Blog())
        updated = attr("blog").inject(site, Blog(posts=("b",)))
        assert updated.blog.posts == ("b",)
        assert site.blog.posts == ()
        assert updated.title == "site"

    def test_get_after_set(self) -> None:
        handle = attr("blog")
        site = Site(blog=Blog())
        value = Blog(posts=("x", "y"))
        assert handle.get(handle.set(site, value)) == value

    def test_set_what_you_got(self) -> None:
        handle = attr("blog")
        site = Site(blog=Blog(posts=("x",)))
        assert handle.set(site, handle.get(site)) == site

    def test_plain_object_is_copied(self) -> None:
        state = SimpleNamespace(count=1)
        updated = attr("count").inject(state, 2)
        assert updated.count == 2
        assert state.count == 1

    def test_missing_sentinel_raises(self) -> None:
        with pytest.raises(MissingHandleTarget) as exc_info:
            attr("blog").project(Site())
        assert exc_info.value.handle == "blog"

    def test_absent_attribute_raises(self) -> None:
        with pytest.raises(MissingHandleTarget, match="no attribute 'nope'"):
            attr("nope").project(Site())

    def test_modify(self) -> None:
        site = Site(blog=Blog(posts=("a",)))
        updated = attr("blog").modify(site, lambda b: Blog(posts=(*b.posts, "b")))
        assert updated.blog.posts == ("a", "b")


class TestKey:
    def test_roundtrip_laws(self) -> None:
        handle = key("counter")
        state = {"counter": 1, "other": "x"}
        assert handle.get(handle.set(state, 5)) == 5
        assert handle.set(state, handle.get(state)) == state

    def test_inject_does_not_mutate(self) -> None:
        state = {"counter": 1}
        key("counter").inject(state, 2)
        assert state == {"counter": 1}

    def test_missing_key_raises(self) -> None:
        with pytest.raises(MissingHandleTarget):
            key("counter").project({})

    def test_name(self) -> None:
        assert key("counter").name == "[counter]"


class TestIdentity:
    def test_project_and_inject(self) -> None:
        site = Site(blog=Blog())
        handle = identity()
        assert handle.project(site) is site
        replacement = Site(blog=Blog(posts=("z",)))
        assert handle.inject(site, replacement) is replacement

    def test_then_identity_keeps_name(self) -> None:
        assert identity().then(attr("blog")).name == "blog"
        assert attr("blog").then(identity()).name == "blog"


class TestThen:
    def test_reaches_nested_slot(self) -> None:
        site = Site(blog=Blog(posts=("a",)))
        posts = attr("blog").then(attr("posts"))
        assert posts.project(site) == ("a",)

    def test_nested_inject_rebuilds_path(self) -> None:
        site = Site(blog=Blog(posts=("a",)), title="t")
        posts = attr("blog").then(attr("posts"))
        updated = posts.inject(site, ("b",))
        assert updated.blog.posts == ("b",)
        assert updated.title == "t"
        assert site.blog.posts == ("a",)

    def test_mixed_with_key(self) -> None:
        state = {"site": Site(blog=Blog())}
        handle = key("site").then(attr("blog"))
        assert handle.name == "[site].blog"
        updated = handle.inject(state, Blog(posts=("q",)))
        assert updated["site"].blog.posts == ("q",)

    def test_names_join_with_dots(self) -> None:
        assert attr("a").then(attr("b")).then(attr("c")).name == "a.b.c"
        assert attr("a").then(key("b")).name == "a[b]"


class TestHandleType:
    def test_custom_handle(self) -> None:
        first = Handle(lambda pair: pair[0], lambda pair, v: (v, pair[1]), name="first")
        assert first.get((1, 2)) == 1
        assert first.set((1, 2), 9) == (9, 2)
        assert repr(first) == "Handle(first)"

    def test_missing_repr(self) -> None:
        assert repr(MISSING) == "MISSING"
