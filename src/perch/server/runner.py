"""Serve a live perch App with pounce.

Pounce's ``run()`` takes an import string, but perch has a live ``App``
object, so ``pounce.Server`` is used directly with the ASGI callable.
Debug mode runs a single reloading worker.
"""


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    workers: int = 1,
    reload: bool = False,
    reload_dirs: tuple[str, ...] = (),
    log_level: str = "info",
) -> None:
    """Start a pounce server for *app* and block until it stops.

    Args:
        app: ASGI callable (perch App instance).
        host: Bind host address.
        port: Bind port number.
        workers: Worker count; forced to 1 when *reload* is set.
        reload: Restart on source changes.
        reload_dirs: Extra directories to watch alongside cwd.
        log_level: Pounce log level (debug, info, warning, error, critical).
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1 if reload else workers,
        reload=reload,
        reload_dirs=reload_dirs,
        log_level=log_level,
    )
    Server(config, app).run()
