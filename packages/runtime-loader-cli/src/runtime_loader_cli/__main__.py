# SPDX-License-Identifier: MIT
"""Allow ``python -m runtime_loader_cli``."""

from .main import main

main()
