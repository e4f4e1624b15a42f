# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Proxy selection from explicit proxies or rotating pools."""

from __future__ import annotations

import logging
import random
import threading

from ..models import Proxy, SelectionMode
from ..store.repository import ProxyRepository

logger = logging.getLogger(__name__)


class ProxySelector:
    """
    Pick the proxy for one call.

    An explicit active proxy wins over any pool. Pools filter to active members and
    then apply their selection mode: ``random`` draws uniformly, ``sequential``
    advances the persisted cursor by one (pre-increment, modulo the active count),
    anything else returns the first active proxy. ``None`` means "connect
    directly" and is never an error.

    The sequential read-modify-write runs under a per-pool lock, so concurrent
    selections from one selector never lose a cursor update.
    """

    def __init__(self, repository: ProxyRepository, rng: random.Random | None = None):
        self.repository = repository
        self._rng = rng or random.Random()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _pool_lock(self, pool_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(pool_id)
            if lock is None:
                lock = self._locks[pool_id] = threading.Lock()
            return lock

    def select(self, proxy_id: str | None = None, proxy_pool_id: str | None = None) -> Proxy | None:
        try:
            if proxy_id:
                proxy = self.repository.get_proxy(proxy_id)
                if proxy is not None and proxy.is_active:
                    return proxy
                logger.debug("Proxy %s missing or inactive; falling back", proxy_id)

            if proxy_pool_id:
                return self._select_from_pool(proxy_pool_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Proxy selection failed (proxy=%s, pool=%s): %s", proxy_id, proxy_pool_id, exc)
        return None

    def _select_from_pool(self, pool_id: str) -> Proxy | None:
        with self._pool_lock(pool_id):
            pool = self.repository.get_proxy_pool(pool_id)
            if pool is None:
                logger.debug("Proxy pool %s not found", pool_id)
                return None
            active = pool.active_proxies
            if not active:
                return None
            mode = pool.selection_mode
            if mode == SelectionMode.SEQUENTIAL.value:
                next_index = (pool.last_proxy_index + 1) % len(active)
                self.repository.update_proxy_pool_cursor(pool_id, next_index)
                return active[next_index]

        if mode == SelectionMode.RANDOM.value:
            return self._rng.choice(active)
        return active[0]


__all__ = ["ProxySelector"]
