"""Pointing the deployer config at a locally built load-test tarball."""

from __future__ import annotations

import json
import os
import re
import stat
import tempfile
from pathlib import Path

from ..errors import BuildOutputError
from ..utils.logging import get_logger

logger = get_logger(__name__)

DOWNLOAD_URL_KEY = "LoadTestDownloadURL"

# `make package` echoes its tar invocation, e.g. `tar -czf dist/mattermost-load-test-ng-v1.2.tar.gz ...`
_TARBALL = re.compile(r"-czf\s+(dist/\S+\.tar\.gz)")


def find_tarball(build_output: str) -> str:
    match = _TARBALL.search(build_output)
    if not match:
        raise BuildOutputError(build_output)
    return match.group(1)


def update_tarball_reference(config_path: Path, tarball: Path) -> str:
    """Rewrite the download URL in `config_path` to a file:// URL for `tarball`.

    Every other key is preserved in its original order.
    """
    with config_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    url = f"file://{tarball}"
    payload[DOWNLOAD_URL_KEY] = url

    # the deployer must never see a half-written config
    mode = stat.S_IMODE(config_path.stat().st_mode)
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=config_path.parent, suffix=".tmp", delete=False
    )
    try:
        with handle:
            json.dump(payload, handle, indent=4)
        os.chmod(handle.name, mode)
        os.replace(handle.name, config_path)
    except BaseException:
        os.unlink(handle.name)
        raise
    logger.info("Set %s to %s in %s", DOWNLOAD_URL_KEY, url, config_path)
    return url
