"""Scraping fields out of `ltctl deployment info` text output.

ltctl has no machine-readable info output, so these patterns are tied to its
human-readable format, which prints (among other lines):

    Instances:
    - <cluster>-app-0:  10.0.0.5
    ...
    DB writer endpoint: <cluster>db.cluster-xyz.us-east-1.rds.amazonaws.com

A change to either line breaks the runner with a DeploymentInfoError that
carries the full text.
"""

from __future__ import annotations

import re

from ..errors import DeploymentInfoError

_IPV4 = r"(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"
_DB_WRITER = re.compile(r"DB writer endpoint:[ \t]+(\S[^\r\n]*)")


def parse_app_ip(text: str, cluster_name: str) -> str:
    pattern = re.compile(re.escape(cluster_name) + r"-app-0:\s+" + _IPV4)
    match = pattern.search(text)
    if not match:
        raise DeploymentInfoError("app IP", text)
    return match.group(1)


def parse_db_host(text: str) -> str:
    match = _DB_WRITER.search(text)
    if not match:
        raise DeploymentInfoError("DB writer endpoint", text)
    return match.group(1).strip()
