# SPDX-FileCopyrightText: 2025 WeCode, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Per-workspace mutual exclusion for provisioning and teardown."""

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class WorkspaceLockRegistry:
    """Hands out one lock per workspace id.

    Requests for different workspaces never contend. Requests for the same
    workspace are serialized within this process only; coordinating several
    fleet processes is left to the caller.

    Usage:
        locks = WorkspaceLockRegistry()
        with locks.hold("ws1"):
            ...  # create or delete compute for ws1
    """

    def __init__(self) -> None:
        # Entries vanish once no caller references the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, workspace_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(workspace_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[workspace_id] = lock
            return lock

    @contextmanager
    def hold(self, workspace_id: str) -> Iterator[None]:
        lock = self._lock_for(workspace_id)
        with lock:
            yield
