# SPDX-License-Identifier: MIT
"""Command line interface for runtime-loader."""

__version__ = "0.1.0"
