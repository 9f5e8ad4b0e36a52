# SPDX-License-Identifier: MIT
"""CLI command implementations."""

from . import install, listing, versions

__all__ = ["install", "listing", "versions"]
