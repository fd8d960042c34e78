"""Tests for the blog example."""

from perch.testing import TestClient


class TestBlogApp:
    async def test_index_renders_posts(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/blog")
        assert response.status == 200
        assert "<h1>Posts</h1>" in response.text
        assert '<a href="/blog/hello">Hello, perch</a>' in response.text

    async def test_show_post(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/blog/handles")
        assert "<h1>On handles</h1>" in response.text

    async def test_unknown_post(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/blog/nope")
        assert response.status == 404

    async def test_comments_survive_requests(self, example_app) -> None:
        async with TestClient(example_app) as client:
            posted = await client.post("/blog/comments/hello", json={"text": "<b>nice</b>"})
            again = await client.post("/blog/comments/hello", json={"text": "agreed"})
            page = await client.get("/blog/hello")

        assert posted.status == 201
        assert again.text == '{"slug": "hello", "count": 2}'
        assert "<li>&lt;b&gt;nice&lt;/b&gt;</li>" in page.text
        assert "<li>agreed</li>" in page.text

    async def test_feed_reads_blog_through_handle(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/feed.json")
        assert '"slug": "hello"' in response.text
        assert '"title": "On handles"' in response.text
