# -*- coding: utf-8 -*-
from .config import CONFIG, print_lock, get_headers, __version__

__all__ = ["CONFIG", "print_lock", "get_headers", "__version__"]
