# Copyright (c) 2025 Henru Wang
# All rights reserved.

__version__ = "0.1.0"
