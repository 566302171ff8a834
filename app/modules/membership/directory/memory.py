"""In-memory directory backend for tests and dry runs."""

import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from infrastructure.operations import CREATION_INCOMPLETE, OperationResult, OperationStatus
from infrastructure.resilience import RetryMode
from modules.membership.directory.base import Directory
from modules.membership.domain.models import Member


class InMemoryDirectory(Directory):
    """Dict-backed Directory.

    Reads return copies, so callers can never mutate stored members.

    Args:
        members: Members present at start
        creation_lag: Number of update/delete calls that report
            CREATION_INCOMPLETE for a member after it is added
        **policy: Retry and polling settings, see Directory

    Attributes:
        calls: (operation, primary_email) for every backend call, in order
    """

    def __init__(
        self,
        members: Optional[Iterable[Member]] = None,
        creation_lag: int = 0,
        retry_mode: RetryMode = RetryMode.RETRY,
        retry_delay_ms: int = 0,
        retry_max_attempts: int = 5,
        add_poll_attempts: int = 3,
        delete_poll_attempts: int = 3,
        poll_delay_ms: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(
            retry_mode=retry_mode,
            retry_delay_ms=retry_delay_ms,
            retry_max_attempts=retry_max_attempts,
            add_poll_attempts=add_poll_attempts,
            delete_poll_attempts=delete_poll_attempts,
            poll_delay_ms=poll_delay_ms,
            sleep=sleep,
        )
        self._members: Dict[str, Member] = {}
        self._pending: Dict[str, int] = {}
        self.creation_lag = creation_lag
        self.calls: List[Tuple[str, str]] = []
        for member in members or []:
            self._members[member.primary_email] = member.copy()

    def get_member(self, email_key: str) -> OperationResult:
        key = email_key.strip().lower()
        self.calls.append(("get", key))
        member = self._members.get(key)
        if member is None:
            return OperationResult.not_found(f"Resource Not Found: userKey {key}")
        return OperationResult.success(data=member.copy())

    def list_members(self, org_unit_path: Optional[str] = None) -> OperationResult:
        self.calls.append(("list", org_unit_path or ""))
        members = [
            m.copy()
            for m in self._members.values()
            if org_unit_path is None or m.org_unit_path == org_unit_path
        ]
        return OperationResult.success(data=members, message=f"{len(members)} members")

    def _insert(self, candidate: Member) -> OperationResult:
        key = candidate.primary_email
        self.calls.append(("insert", key))
        if key in self._members:
            return OperationResult.error(
                OperationStatus.ALREADY_EXISTS,
                "Entity already exists.",
                error_code="ALREADY_EXISTS",
            )
        self._members[key] = candidate.copy()
        self._pending[key] = self.creation_lag
        return OperationResult.success(data=candidate.copy(), message="member created")

    def _creation_incomplete(self, key: str) -> bool:
        remaining = self._pending.get(key, 0)
        if remaining > 0:
            self._pending[key] = remaining - 1
            return True
        return False

    def _update(self, member: Member) -> OperationResult:
        key = member.primary_email
        self.calls.append(("update", key))
        if key not in self._members:
            return OperationResult.not_found(f"Resource Not Found: userKey {key}")
        if self._creation_incomplete(key):
            return OperationResult.transient_error(
                "User creation is not complete.", error_code=CREATION_INCOMPLETE
            )
        self._members[key] = member.copy()
        return OperationResult.success(data=member.copy(), message="member updated")

    def _remove(self, member: Member) -> OperationResult:
        key = member.primary_email
        self.calls.append(("delete", key))
        if key not in self._members:
            return OperationResult.not_found(f"Resource Not Found: userKey {key}")
        if self._creation_incomplete(key):
            return OperationResult.transient_error(
                "User creation is not complete.", error_code=CREATION_INCOMPLETE
            )
        del self._members[key]
        self._pending.pop(key, None)
        return OperationResult.success(message="member deleted")
