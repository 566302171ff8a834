"""Directory abstraction shared by every identity backend.

Backends implement the raw calls (``_insert``, ``_update``, ``_remove``) and
the reads. The base class owns the behaviour every backend must share:

- creation-incomplete failures on update and delete run under
  ``retry_on_error`` with the configured mode and budget
- ``wait`` on add and delete polls with ``poll_until`` until the change is
  visible
- a missing member on delete is reported as ALREADY_SATISFIED

Expected outcomes travel as OperationResult variants. Use
``modules.membership.domain.errors.raise_for_result`` to convert a failure
into an exception.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import CREATION_INCOMPLETE, OperationResult, OperationStatus
from infrastructure.resilience import RetryMode, poll_until, retry_on_error
from modules.membership.domain.errors import CreationIncompleteError
from modules.membership.domain.models import Member

logger = get_module_logger()


class Directory(ABC):
    """Create, read, update and delete member identity records.

    Args:
        retry_mode: RetryMode for creation-incomplete failures
        retry_delay_ms: Delay after each creation-incomplete failure
        retry_max_attempts: Invocations allowed in RETRY mode
        add_poll_attempts: Reads made while waiting for a new member
        delete_poll_attempts: Reads made while waiting for a deletion
        poll_delay_ms: Delay between reads
        sleep: Sleep function (seconds), injectable for tests
    """

    def __init__(
        self,
        retry_mode: RetryMode = RetryMode.RETRY,
        retry_delay_ms: int = 250,
        retry_max_attempts: int = 5,
        add_poll_attempts: int = 4000,
        delete_poll_attempts: int = 400,
        poll_delay_ms: int = 250,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retry_mode = retry_mode
        self.retry_delay_ms = retry_delay_ms
        self.retry_max_attempts = retry_max_attempts
        self.add_poll_attempts = add_poll_attempts
        self.delete_poll_attempts = delete_poll_attempts
        self.poll_delay_ms = poll_delay_ms
        self._sleep = sleep

    @classmethod
    def policy_kwargs(cls, membership_settings: Any) -> Dict[str, Any]:
        """Constructor keyword arguments taken from MembershipFeatureSettings."""
        return {
            "retry_mode": RetryMode(membership_settings.retry_on_error_mode),
            "retry_delay_ms": membership_settings.retry_on_error_delay_ms,
            "retry_max_attempts": membership_settings.retry_on_error_max_attempts,
            "add_poll_attempts": membership_settings.add_poll_attempts,
            "delete_poll_attempts": membership_settings.delete_poll_attempts,
            "poll_delay_ms": membership_settings.poll_delay_ms,
        }

    # ------------------------------------------------------------------
    # Backend calls
    # ------------------------------------------------------------------

    @abstractmethod
    def get_member(self, email_key: str) -> OperationResult:
        """SUCCESS with the Member in data, or NOT_FOUND."""

    @abstractmethod
    def list_members(self, org_unit_path: Optional[str] = None) -> OperationResult:
        """SUCCESS with a list of Member in data."""

    @abstractmethod
    def _insert(self, candidate: Member) -> OperationResult:
        """Create the member. ALREADY_EXISTS when the primary email is taken."""

    @abstractmethod
    def _update(self, member: Member) -> OperationResult:
        """Write the member's mutable fields."""

    @abstractmethod
    def _remove(self, member: Member) -> OperationResult:
        """Delete the member. NOT_FOUND when absent."""

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def is_known(self, member: Member) -> bool:
        return self.get_member(member.primary_email).is_success

    def add_member(self, candidate: Member, wait: bool = False) -> OperationResult:
        """Create ``candidate``.

        Returns:
            SUCCESS with the Member; ALREADY_EXISTS; TRANSIENT_ERROR with
            error_code CREATION_INCOMPLETE when ``wait`` ran out before the
            member became readable; PERMANENT_ERROR otherwise
        """
        result = self._insert(candidate)
        if not result.is_success:
            logger.warning(
                "directory_add_failed",
                email=candidate.primary_email,
                status=result.status.value,
                error=result.message,
            )
            return result

        if wait and not poll_until(
            self.add_poll_attempts,
            lambda: self.is_known(candidate),
            self.poll_delay_ms,
            sleep=self._sleep,
        ):
            return OperationResult.transient_error(
                f"User creation is not complete: {candidate.primary_email}",
                error_code=CREATION_INCOMPLETE,
            )

        logger.info("directory_member_added", email=candidate.primary_email)
        return result

    def update_member(
        self, member: Member, patch: Optional[Dict[str, Any]] = None
    ) -> OperationResult:
        """Write ``member`` with the Member field changes in ``patch`` applied.

        Returns:
            SUCCESS with the updated Member; NOT_FOUND; TRANSIENT_ERROR
            (CREATION_INCOMPLETE) once the retry budget is spent;
            PERMANENT_ERROR otherwise
        """
        target = member.copy(**patch) if patch else member
        return self._retrying(lambda: self._update(target), "update_member")

    def delete_member(self, member: Member, wait: bool = False) -> OperationResult:
        """Delete ``member``; absence is the goal, so NOT_FOUND is ok.

        Returns:
            SUCCESS; ALREADY_SATISFIED when the member did not exist; or the
            failure result
        """
        result = self._retrying(lambda: self._remove(member), "delete_member")
        if result.status == OperationStatus.NOT_FOUND:
            logger.info("directory_member_already_absent", email=member.primary_email)
            return OperationResult.already_satisfied(
                f"{member.primary_email} does not exist"
            )
        if not result.is_success:
            return result

        gone = poll_until(
            self.delete_poll_attempts if wait else 1,
            lambda: not self.is_known(member),
            self.poll_delay_ms,
            sleep=self._sleep,
        )
        if not gone:
            logger.warning("directory_delete_not_visible", email=member.primary_email)
        logger.info("directory_member_deleted", email=member.primary_email)
        return result

    def _retrying(
        self, call: Callable[[], OperationResult], operation: str
    ) -> OperationResult:
        def attempt() -> OperationResult:
            result = call()
            if result.error_code == CREATION_INCOMPLETE:
                raise CreationIncompleteError(result.message, response=result)
            return result

        try:
            return retry_on_error(
                attempt,
                CreationIncompleteError,
                delay_ms=self.retry_delay_ms,
                mode=self.retry_mode,
                max_attempts=self.retry_max_attempts,
                sleep=self._sleep,
            )
        except CreationIncompleteError as e:
            logger.warning(
                "directory_creation_incomplete", operation=operation, error=e.message
            )
            return e.response
