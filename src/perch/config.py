"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups. Initializers read it through ``ctx.config``.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, app_dir="site")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    workers: int = 1
    reload_dirs: tuple[str, ...] = ()  # Extra directories to watch in debug mode

    # Application directory tree
    app_dir: str | Path = "."
    extensions_dir: str = "extensions"  # <app_dir>/extensions/<name>/extensions/<child>
    install_extension_files: bool = True  # Copy missing default assets at startup

    # Templates (renderer extension)
    template_dir: str | Path | None = None  # Defaults to <extension file path>/templates
    autoescape: bool = True

    # Logging
    log_level: str = "info"
