# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Repository protocols and the in-memory reference store."""

from .memory import InMemoryStore
from .repository import (
    CollectionRepository,
    DataStore,
    ParameterSetRepository,
    ProxyRepository,
    RequestRepository,
    ScanJobRepository,
    ScanResultRepository,
)

__all__ = [
    "CollectionRepository",
    "DataStore",
    "InMemoryStore",
    "ParameterSetRepository",
    "ProxyRepository",
    "RequestRepository",
    "ScanJobRepository",
    "ScanResultRepository",
]
