"""Blog: nested extensions, a shared renderer, and capability passing.

- ``renderer`` is mounted at the root; ``Site`` implements ``HasRenderer``
  so any extension can call ``render()``.
- ``blog`` mounts ``comments`` beneath itself; comments live in a
  ``SharedCell`` so they outlive the request that posted them.
- ``feed`` reads the blog's posts through a handle it is given at mount
  time instead of looking the blog up by name.

Run:
    python app.py
"""

from dataclasses import dataclass
from pathlib import Path

from perch import (
    MISSING,
    App,
    Handle,
    Initializer,
    NotFound,
    Renderer,
    Request,
    SharedCell,
    StateView,
    attr,
    current_extension,
    extension,
    make_extension,
    render,
    renderer_extension,
    root_state,
)

TEMPLATES = Path(__file__).parent / "templates"


@dataclass(frozen=True)
class Post:
    slug: str
    title: str
    body: str


@dataclass(frozen=True)
class Comments:
    by_post: SharedCell[dict[str, tuple[str, ...]]]

    def for_post(self, slug: str) -> tuple[str, ...]:
        return self.by_post.get().get(slug, ())


@extension("comments", description="Reader comments, kept across requests")
def comments(ctx: Initializer) -> Comments:
    async def add(slug: str, request: Request, state: StateView[Comments]):
        text = (await request.json())["text"]
        state.get().by_post.update(lambda by: {**by, slug: (*by.get(slug, ()), text)})
        return {"slug": slug, "count": len(state.get().for_post(slug))}, 201

    ctx.add_routes([("/{slug}", add, ["POST"])])
    return Comments(by_post=ctx.lift_external(SharedCell, {}))


@dataclass(frozen=True)
class Blog:
    posts: tuple[Post, ...]
    comments: Comments = MISSING

    def find(self, slug: str) -> Post:
        for post in self.posts:
            if post.slug == slug:
                return post
        raise NotFound(f"No post {slug!r}")


@extension("blog", description="Posts with comments")
def blog(ctx: Initializer) -> Blog:
    def index(state: StateView[Blog]):
        return render("index.html", title="Posts", posts=state.get().posts, root=current_extension().root_url)

    def show(slug: str, state: StateView[Blog]):
        current = state.get()
        return render("post.html", post=current.find(slug), comments=current.comments.for_post(slug))

    comments_state = ctx.mount("comments", attr("comments"), comments)
    ctx.add_routes([("/", index), ("/{slug}", show)])
    posts = (
        Post("hello", "Hello, perch", "Extensions all the way down."),
        Post("handles", "On handles", "Get and set, nothing more."),
    )
    return Blog(posts=posts, comments=comments_state)


def feed(blog_handle: Handle) -> object:
    """A feed over whichever blog it is handed."""

    def initialize(ctx: Initializer) -> tuple[str, ...]:
        def titles():
            posts = blog_handle.get(root_state().get()).posts
            return [{"slug": post.slug, "title": post.title} for post in posts]

        ctx.add_routes([("/feed.json", titles)])
        return ("json",)

    return make_extension("feed", "JSON feed of blog posts", None, initialize)


@dataclass(frozen=True)
class Site:
    renderer: Renderer = MISSING
    blog: Blog = MISSING
    feed: tuple[str, ...] = MISSING

    @property
    def renderer_handle(self) -> Handle:
        return attr("renderer")


@extension("site", description="Blog example root")
def site(ctx: Initializer) -> Site:
    renderer = ctx.mount("", attr("renderer"), renderer_extension(TEMPLATES))
    blog_state = ctx.mount("blog", attr("blog"), blog)
    feed_state = ctx.mount("", attr("feed"), feed(attr("blog")))
    return Site(renderer=renderer, blog=blog_state, feed=feed_state)


app = App(site)

if __name__ == "__main__":
    app.run()
