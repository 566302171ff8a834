"""Google Workspace directory backend (Admin SDK users API)."""

import secrets
import time
from typing import Any, Callable, Dict, List, Optional

from infrastructure.clients.google_workspace.directory import DirectoryClient
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_directory_error
from infrastructure.resilience import RetryMode
from modules.membership.directory.base import Directory
from modules.membership.domain.errors import ValidationError
from modules.membership.domain.models import Member, format_date, parse_date

logger = get_module_logger()

CUSTOM_SCHEMA = "Club_Membership"

# Fields written on update. The org unit and password are left alone.
UPDATABLE_FIELDS = (
    "name",
    "emails",
    "phones",
    "customSchemas",
    "recoveryEmail",
    "recoveryPhone",
    "includeInGlobalAddressList",
)


def member_to_resource(member: Member) -> Dict[str, Any]:
    """Admin SDK user resource for ``member``."""
    resource: Dict[str, Any] = {
        "primaryEmail": member.primary_email,
        "name": {
            "givenName": member.given_name,
            "familyName": member.family_name,
            "fullName": member.full_name,
        },
        "emails": [
            {"address": member.home_email, "type": "home"},
            {"address": member.primary_email, "primary": True},
        ],
        "customSchemas": {
            CUSTOM_SCHEMA: {
                "expires": format_date(member.expires),
                "Join_Date": format_date(member.joined),
                "membershipType": member.membership_type,
            }
        },
        "orgUnitPath": member.org_unit_path,
        "recoveryEmail": member.home_email,
        "includeInGlobalAddressList": member.include_in_global_address_list,
    }
    if member.phone:
        resource["phones"] = [{"value": member.phone, "type": "mobile"}]
        resource["recoveryPhone"] = member.phone
    return resource


def member_from_resource(resource: Dict[str, Any], domain: str = "") -> Member:
    """Member for an Admin SDK user resource.

    Raises:
        ValidationError: If the resource breaks a Member invariant
    """
    name = resource.get("name") or {}
    emails = resource.get("emails") or []
    home_email = next(
        (e.get("address", "") for e in emails if e.get("type") == "home"),
        resource.get("recoveryEmail", ""),
    )
    phones = resource.get("phones") or []
    phone = phones[0].get("value", "") if phones else resource.get("recoveryPhone", "")
    schema = (resource.get("customSchemas") or {}).get(CUSTOM_SCHEMA) or {}

    try:
        joined = parse_date(schema.get("Join_Date"))
        expires = parse_date(schema.get("expires"))
    except ValueError as e:
        raise ValidationError(
            f"Invalid directory record for {resource.get('primaryEmail')!r}", [str(e)]
        ) from e

    return Member(
        primary_email=resource.get("primaryEmail", ""),
        given_name=name.get("givenName", ""),
        family_name=name.get("familyName", ""),
        home_email=home_email,
        phone=phone,
        org_unit_path=resource.get("orgUnitPath", "/"),
        joined=joined,
        expires=expires,
        membership_type=schema.get("membershipType") or "Member",
        domain=domain,
        include_in_global_address_list=resource.get("includeInGlobalAddressList", True),
    )


class GoogleWorkspaceDirectory(Directory):
    """Directory backed by Google Workspace users.

    Every backend failure is classified from its message with
    ``classify_directory_error``.

    Args:
        client: DirectoryClient from the Google Workspace facade
        domain: Directory domain for member addresses
        org_unit_path: Org unit new members are created in and listed from
        **policy: Retry and polling settings, see Directory
    """

    def __init__(
        self,
        client: DirectoryClient,
        domain: str,
        org_unit_path: str = "/members",
        retry_mode: RetryMode = RetryMode.RETRY,
        retry_delay_ms: int = 250,
        retry_max_attempts: int = 5,
        add_poll_attempts: int = 4000,
        delete_poll_attempts: int = 400,
        poll_delay_ms: int = 250,
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
        self._client = client
        self.domain = domain.strip()
        self.org_unit_path = org_unit_path.strip()

    @classmethod
    def from_settings(
        cls, client: DirectoryClient, membership_settings: Any
    ) -> "GoogleWorkspaceDirectory":
        return cls(
            client,
            domain=membership_settings.domain,
            org_unit_path=membership_settings.org_unit_path,
            **cls.policy_kwargs(membership_settings),
        )

    def get_member(self, email_key: str) -> OperationResult:
        result = self._client.get_user(email_key.strip().lower())
        if not result.is_success:
            return classify_directory_error(result)
        return OperationResult.success(
            data=member_from_resource(result.data, self.domain)
        )

    def list_members(self, org_unit_path: Optional[str] = None) -> OperationResult:
        path = org_unit_path or self.org_unit_path
        result = self._client.list_users(
            query=f"orgUnitPath:{path}",
            maxResults=500,
            projection="full",
            viewType="admin_view",
            orderBy="givenName",
        )
        if not result.is_success:
            return classify_directory_error(result)

        members: List[Member] = []
        for resource in result.data or []:
            try:
                members.append(member_from_resource(resource, self.domain))
            except ValidationError as e:
                logger.warning(
                    "directory_record_skipped",
                    email=resource.get("primaryEmail"),
                    errors=e.errors,
                )
        return OperationResult.success(data=members, message=f"{len(members)} members")

    def _insert(self, candidate: Member) -> OperationResult:
        body = member_to_resource(candidate)
        body["orgUnitPath"] = candidate.org_unit_path or self.org_unit_path
        body["password"] = secrets.token_urlsafe(16)
        body["changePasswordAtNextLogin"] = True
        result = self._client.create_user(body)
        if not result.is_success:
            return classify_directory_error(result)
        return OperationResult.success(data=candidate, message="member created")

    def _update(self, member: Member) -> OperationResult:
        resource = member_to_resource(member)
        body = {key: resource[key] for key in UPDATABLE_FIELDS if key in resource}
        result = self._client.update_user(member.primary_email, body)
        if not result.is_success:
            return classify_directory_error(result)
        return OperationResult.success(data=member, message="member updated")

    def _remove(self, member: Member) -> OperationResult:
        result = self._client.delete_user(member.primary_email)
        if not result.is_success:
            return classify_directory_error(result)
        return result
