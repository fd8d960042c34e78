"""Tutorial: three extensions composed under one root.

``foo`` is mounted at ``/foo``, ``bar`` at the root's own prefix, and the
root adds ``/hello`` itself. ``counter`` keeps a hit count in a
``SharedCell`` so it survives across requests, while ``visits`` keeps a
per-request tally that is thrown away after every response.

Run:
    python app.py
"""

from dataclasses import dataclass, replace

from perch import (
    MISSING,
    App,
    Initializer,
    NotFound,
    Response,
    SharedCell,
    StateView,
    attr,
    current_extension,
    extension,
)


@dataclass(frozen=True)
class Named:
    label: str


@extension("foo", description="Answers at /foo/name")
def foo(ctx: Initializer) -> Named:
    def name():
        return f"{current_extension().qualified_name} at {current_extension().root_url}"

    ctx.add_routes([("/name", name)])
    return Named("foo")


@extension("bar", description="Answers at /name")
def bar(ctx: Initializer) -> Named:
    def name(state: StateView[Named]):
        return state.get().label

    ctx.add_routes([("/name", name)])
    return Named("bar")


@dataclass(frozen=True)
class Counter:
    hits: SharedCell[int]
    visits: int = 0


@extension("counter", description="Shared and per-request counters")
def counter(ctx: Initializer) -> Counter:
    def hit(state: StateView[Counter]):
        return {"hits": state.get().hits.update(lambda n: n + 1)}

    def visit(state: StateView[Counter]):
        state.modify(lambda c: replace(c, visits=c.visits + 1))
        state.modify(lambda c: replace(c, visits=c.visits + 1))
        return {"visits": state.get().visits}

    def show(state: StateView[Counter]):
        current = state.get()
        return {"hits": current.hits.get(), "visits": current.visits}

    ctx.add_routes([("/", show), ("/hit", hit, ["POST"]), ("/visit", visit, ["POST"])])
    return Counter(hits=ctx.lift_external(SharedCell, 0))


@dataclass(frozen=True)
class Site:
    foo: Named = MISSING
    bar: Named = MISSING
    counter: Counter = MISSING


def not_found_page(inner):
    async def endpoint(request):
        try:
            return await inner(request)
        except NotFound:
            return Response(f"Nothing at {request.path}", status=404)

    return endpoint


@extension("site", description="Tutorial root")
def site(ctx: Initializer) -> Site:
    ctx.wrap_handlers(not_found_page)
    foo_state = ctx.mount("foo", attr("foo"), foo)
    bar_state = ctx.mount("", attr("bar"), bar)
    counter_state = ctx.mount("counter", attr("counter"), counter)
    ctx.add_routes([("/hello", lambda: "Hello from the root!")])
    return Site(foo=foo_state, bar=bar_state, counter=counter_state)


app = App(site)

if __name__ == "__main__":
    app.run()
