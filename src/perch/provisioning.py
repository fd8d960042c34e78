"""Install extension default files into the application directory.

Each extension may ship a ``data_dir`` of defaults (templates, config).
On first startup it is copied to the extension's ``file_path``
(``<app_dir>/<extensions_dir>/<name>`` nested by ancestry). Existing
directories are left alone so local edits survive restarts. The root
extension's file path is the application directory itself, so a root
``data_dir`` is never installed."""

import logging
import shutil
from pathlib import Path

from perch.compose import Application
from perch.errors import ConfigurationError

logger = logging.getLogger("perch.provisioning")


def provision(application: Application) -> list[Path]:
    """Copy missing extension directories and return the ones installed."""
    installed: list[Path] = []
    for info in application.extensions:
        if info.data_dir is None:
            continue
        if not info.data_dir.is_dir():
            msg = f"Data directory for extension {info.qualified_name!r} not found: {info.data_dir}"
            raise ConfigurationError(msg)
        if info.is_root:
            logger.debug(
                "Skipping %s: the root extension's files live in app_dir (%s) and are never installed",
                info.qualified_name,
                info.file_path,
            )
            continue
        if info.file_path.exists():
            logger.debug("Skipping %s: %s already exists", info.qualified_name, info.file_path)
            continue
        shutil.copytree(info.data_dir, info.file_path)
        logger.info("Installed %s files into %s", info.qualified_name, info.file_path)
        installed.append(info.file_path)
    return installed
