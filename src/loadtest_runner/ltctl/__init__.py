"""Helpers around the load-test repository's ltctl tool."""

from .client import LoadTestCtl, report_file, results_file
from .info import parse_app_ip, parse_db_host
from .tarball import find_tarball, update_tarball_reference

__all__ = [
    "LoadTestCtl",
    "report_file",
    "results_file",
    "parse_app_ip",
    "parse_db_host",
    "find_tarball",
    "update_tarball_reference",
]
