# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from .args import build_parser, parse_args

__all__ = ["build_parser", "parse_args"]
