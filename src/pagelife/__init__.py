# MIT License
#
# Copyright (c) 2025 pagelife contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice (including the next
# paragraph) shall be included in all copies or substantial portions of the
# Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
pagelife fetches daily per-page traffic from a web analytics reporting API,
re-indexes each page's traffic to days since launch, and charts how pages
accumulate visits over their lifetime.
"""

try:
    from ._version import __version__
except ImportError:
    __version__ = "unknown"

from .normalize import (
    normalize_launch, detect_launch_date, validate_series,
    NormalizationError, InvalidInputSeries, NoQualifyingLaunchDay
)
from .lifecycle import (
    NormalizationResult, select_entities, split_by_entity, normalize_entities,
    combine_lifecycles, build_lifecycle, summarize_lifecycles,
    build_lifecycle_by_category, combine_category_lifecycles, label_by_category
)
from .config import load_config, save_config, validate_config, default_config

from . import reporting_api
