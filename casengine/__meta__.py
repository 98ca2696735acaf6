# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = "casengine"
__summary__ = "Content-addressable storage engines addressed by URI Templates."
__url__ = "https://github.com/wking/casengine"

__version__ = "0.1.0"

__install_requires__ = ["anyio", "httpx", "typer"]
__tests_require__ = ["pytest"]

__author__ = "casengine contributors"

__license__ = "Apache License 2.0"
