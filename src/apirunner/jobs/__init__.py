# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Scan job expansion, registry and orchestration."""

from .combinator import count_combinations, generate_combinations
from .orchestrator import JobOrchestrator, batch_progress
from .registry import JobRegistry, JobRunState

__all__ = [
    "JobOrchestrator",
    "JobRegistry",
    "JobRunState",
    "batch_progress",
    "count_combinations",
    "generate_combinations",
]
