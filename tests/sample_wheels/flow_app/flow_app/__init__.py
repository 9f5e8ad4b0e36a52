# SPDX-License-Identifier: MIT
"""Sample application package that depends on flow_lib."""

from flow_lib import greet


def run() -> str:
    return greet("runtime")
