"""Group membership: batch updates and group backends.

``apply_to_groups`` visits the member x group cross product and keeps going
when a pair fails. Every failure is recorded by its message text and one
AggregateError is raised after the last pair. Members are visited in
reverse input order; for each member every group is visited in input order.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from infrastructure.clients.google_workspace.directory import DirectoryClient
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from modules.membership.domain.errors import AggregateError
from modules.membership.domain.models import Member

logger = get_module_logger()

GroupAction = Callable[[Any, str], Optional[OperationResult]]
MemberGroupFn = Callable[[str, str], Optional[OperationResult]]


def member_email(member: Any) -> str:
    """Address used for group membership: the home email of a Member, or
    the string itself."""
    if isinstance(member, Member):
        return member.home_email
    return str(member)


def apply_to_groups(
    members: Sequence[Any], groups: Sequence[str], action: GroupAction
) -> None:
    """Invoke ``action(member, group)`` for every pair.

    The inputs are never mutated.

    Raises:
        AggregateError: After the full cross product, when any pair raised or
            returned a failed OperationResult
    """
    errors: List[str] = []
    for member in list(members)[::-1]:
        for group in groups:
            try:
                result = action(member, group)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(
                    "group_action_failed",
                    member=member_email(member),
                    group=group,
                    error=str(e),
                )
                errors.append(str(e))
                continue
            if isinstance(result, OperationResult) and not result.is_ok:
                logger.warning(
                    "group_action_failed",
                    member=member_email(member),
                    group=group,
                    status=result.status.value,
                    error=result.message,
                )
                errors.append(result.message)

    if errors:
        raise AggregateError(
            f"{len(errors)} group membership operation(s) failed", errors
        )


def add_members_to_groups(
    members: Sequence[Any], groups: Sequence[str], add_fn: MemberGroupFn
) -> None:
    apply_to_groups(members, groups, lambda m, g: add_fn(member_email(m), g))


def remove_members_from_groups(
    members: Sequence[Any], groups: Sequence[str], remove_fn: MemberGroupFn
) -> None:
    apply_to_groups(members, groups, lambda m, g: remove_fn(member_email(m), g))


class GroupBackend(Protocol):
    """Insert and remove member/group pairs."""

    def add(self, member_email: str, group_email: str) -> OperationResult:
        """SUCCESS, or ALREADY_SATISFIED when already a member."""
        ...

    def remove(self, member_email: str, group_email: str) -> OperationResult:
        """SUCCESS, or ALREADY_SATISFIED when not a member."""
        ...


class GoogleGroupBackend:
    """Group membership through the Admin SDK members API.

    Args:
        client: DirectoryClient from the Google Workspace facade
        test_adds: Log adds instead of performing them
        test_removes: Log removes instead of performing them
    """

    def __init__(
        self,
        client: DirectoryClient,
        test_adds: bool = False,
        test_removes: bool = False,
    ) -> None:
        self._client = client
        self.test_adds = test_adds
        self.test_removes = test_removes

    def add(self, member_email: str, group_email: str) -> OperationResult:
        if self.test_adds:
            logger.info("test_group_add", member=member_email, group=group_email)
            return OperationResult.success(message="test mode, add logged only")

        result = self._client.add_member(
            group_email, {"email": member_email, "role": "MEMBER"}
        )
        if result.is_success:
            logger.info("group_member_added", member=member_email, group=group_email)
            return result
        if "member already exists" in result.message.lower():
            logger.info("group_member_exists", member=member_email, group=group_email)
            return OperationResult.already_satisfied(
                f"{member_email} is already a member of {group_email}"
            )
        return result

    def remove(self, member_email: str, group_email: str) -> OperationResult:
        if self.test_removes:
            logger.info("test_group_remove", member=member_email, group=group_email)
            return OperationResult.success(message="test mode, remove logged only")

        result = self._client.remove_member(group_email, member_email)
        if result.is_success:
            logger.info("group_member_removed", member=member_email, group=group_email)
            return result

        message = result.message.lower()
        if "resource not found" in message or result.status == OperationStatus.NOT_FOUND:
            logger.info(
                "group_member_absent",
                member=member_email,
                group=group_email,
                error=result.message,
            )
            return OperationResult.already_satisfied(
                f"{member_email} is not a member of {group_email}"
            )
        if "missing required field" in message:
            return OperationResult.permanent_error(
                f"Removing member {member_email} from group {group_email} - one or "
                "both of those addresses are not valid email addresses.",
                error_code="INVALID_EMAIL",
            )
        return result


class InMemoryGroupBackend:
    """Set-backed GroupBackend.

    Attributes:
        groups: group email -> member emails
        calls: (operation, member_email, group_email) in call order
        failures: (member_email, group_email) -> message; matching calls fail
            with a permanent error
    """

    def __init__(self, groups: Optional[Dict[str, Set[str]]] = None) -> None:
        self.groups: Dict[str, Set[str]] = {
            g: set(m) for g, m in (groups or {}).items()
        }
        self.calls: List[Tuple[str, str, str]] = []
        self.failures: Dict[Tuple[str, str], str] = {}

    def members_of(self, group_email: str) -> Set[str]:
        return set(self.groups.get(group_email, set()))

    def add(self, member_email: str, group_email: str) -> OperationResult:
        self.calls.append(("add", member_email, group_email))
        failure = self.failures.get((member_email, group_email))
        if failure:
            return OperationResult.permanent_error(failure)
        members = self.groups.setdefault(group_email, set())
        if member_email in members:
            return OperationResult.already_satisfied("Member already exists.")
        members.add(member_email)
        return OperationResult.success()

    def remove(self, member_email: str, group_email: str) -> OperationResult:
        self.calls.append(("remove", member_email, group_email))
        failure = self.failures.get((member_email, group_email))
        if failure:
            return OperationResult.permanent_error(failure)
        members = self.groups.get(group_email, set())
        if member_email not in members:
            return OperationResult.already_satisfied("Resource Not Found: memberKey")
        members.discard(member_email)
        return OperationResult.success()
