"""Domain models for the membership lifecycle engine.

Plain dataclasses, validated in ``__post_init__``. Sheet rows are plain dicts
keyed by header name; each model converts to and from that shape with
``from_record`` / ``to_record``.

Key distinctions:
  - Member: the identity record (one row of ActiveMembers, one directory user)
  - Transaction: one payment form submission
  - ActionSpec: the email template and timing for one ActionType
  - ScheduleEntry: a due date for one (member, expiry action) pair
  - ExpiryAction: the payload of a retry queue item
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from modules.membership.domain.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ACTIVE = "Active"
EXPIRED = "Expired"

MEMBER_HEADERS = [
    "Email",
    "First",
    "Last",
    "Phone",
    "Joined",
    "Period",
    "Expires",
    "Renewed On",
    "Status",
    "Directory Email",
    "Generation",
]

SCHEDULE_HEADERS = ["Date", "Email", "Type"]

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%d %b %Y")


def parse_date(value: Any) -> Optional[date]:
    """Parse a sheet or API date value.

    Accepts date and datetime objects, ISO strings (with or without a time
    part) and ``M/D/YYYY`` strings. Empty values give None.

    Raises:
        ValueError: If a non-empty value cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unparseable date: {value!r}")


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def normalize_phone(value: Any) -> str:
    phone = str(value or "").strip()
    if phone and not phone.startswith("+"):
        phone = "+1" + phone
    return phone


def _name_token(value: str) -> str:
    return re.sub(r"\s+", "", value or "").lower()


def directory_address(
    given_name: str, family_name: str, domain: str, generation: int = 0
) -> str:
    """Directory primary email: ``given.family@domain``, with the generation
    appended to the family name once it is above zero."""
    suffix = str(generation) if generation else ""
    return f"{_name_token(given_name)}.{_name_token(family_name)}{suffix}@{domain}"


def _parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    return int(float(value))


@dataclass
class Member:
    """A club identity record.

    Attributes:
        primary_email: Directory key, always lowercase
        given_name: First name
        family_name: Last name
        home_email: Personal address; mail and group membership use it
        phone: Mobile number, ``+1``-prefixed when no country code is given
        org_unit_path: Directory org unit
        joined: Join date
        expires: Expiry date, never before ``joined``
        period: Years bought by the last payment
        renewed_on: Date of the last renewal
        status: ``Active`` or ``Expired``
        membership_type: Value of the Club_Membership custom schema field
        generation: Disambiguation counter used in the primary email
        domain: Directory domain
        include_in_global_address_list: Directory sharing flag
    """

    primary_email: str
    given_name: str = ""
    family_name: str = ""
    home_email: str = ""
    phone: str = ""
    org_unit_path: str = "/"
    joined: Optional[date] = None
    expires: Optional[date] = None
    period: int = 1
    renewed_on: Optional[date] = None
    status: str = ACTIVE
    membership_type: str = "Member"
    generation: int = 0
    domain: str = ""
    include_in_global_address_list: bool = True

    def __post_init__(self) -> None:
        errors: List[str] = []

        self.primary_email = normalize_email(self.primary_email)
        if not EMAIL_PATTERN.match(self.primary_email):
            errors.append(f"Invalid primary email: {self.primary_email!r}")

        self.home_email = normalize_email(self.home_email) or self.primary_email
        self.phone = normalize_phone(self.phone)

        if not self.domain and "@" in self.primary_email:
            self.domain = self.primary_email.split("@", 1)[1]

        if self.joined and self.expires and self.expires < self.joined:
            errors.append(
                f"Expiry date {self.expires.isoformat()} is before join date "
                f"{self.joined.isoformat()}"
            )
        if self.generation < 0:
            errors.append(f"Generation must not be negative: {self.generation}")

        if errors:
            raise ValidationError(
                f"Invalid member record for {self.primary_email!r}", errors
            )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.given_name, self.family_name) if p)

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def copy(self, **changes: Any) -> "Member":
        """Return a new Member built field by field, with ``changes`` applied.

        Raises:
            TypeError: If a change names an unknown field
            ValidationError: If the result breaks a Member invariant
        """
        values: Dict[str, Any] = {
            "primary_email": self.primary_email,
            "given_name": self.given_name,
            "family_name": self.family_name,
            "home_email": self.home_email,
            "phone": self.phone,
            "org_unit_path": self.org_unit_path,
            "joined": self.joined,
            "expires": self.expires,
            "period": self.period,
            "renewed_on": self.renewed_on,
            "status": self.status,
            "membership_type": self.membership_type,
            "generation": self.generation,
            "domain": self.domain,
            "include_in_global_address_list": self.include_in_global_address_list,
        }
        unknown = set(changes) - set(values)
        if unknown:
            raise TypeError(f"Unknown Member fields: {sorted(unknown)}")
        values.update(changes)
        return Member(**values)

    def bump_generation(self) -> "Member":
        """Copy with the generation incremented and the primary email re-derived."""
        generation = self.generation + 1
        return self.copy(
            primary_email=directory_address(
                self.given_name, self.family_name, self.domain, generation
            ),
            generation=generation,
        )

    @classmethod
    def from_transaction(
        cls,
        txn: "Transaction",
        joined: date,
        expires: date,
        period: int = 1,
        domain: Optional[str] = None,
        org_unit_path: str = "/",
    ) -> "Member":
        """New member for a Join.

        With a ``domain`` the primary email is the directory address derived
        from the name; without one the member is keyed by the home email.
        """
        primary_email = (
            directory_address(txn.first, txn.last, domain) if domain else txn.email
        )
        return cls(
            primary_email=primary_email,
            given_name=txn.first,
            family_name=txn.last,
            home_email=txn.email,
            phone=txn.phone,
            org_unit_path=org_unit_path,
            joined=joined,
            expires=expires,
            period=period,
            status=ACTIVE,
            domain=domain or "",
        )

    @classmethod
    def from_record(cls, record: Dict[str, Any], domain: str = "") -> "Member":
        """Build a Member from an ActiveMembers row."""
        home_email = normalize_email(record.get("Email"))
        try:
            joined = parse_date(record.get("Joined"))
            expires = parse_date(record.get("Expires"))
            renewed_on = parse_date(record.get("Renewed On"))
            period = _parse_int(record.get("Period"), 1)
            generation = _parse_int(record.get("Generation"), 0)
        except ValueError as e:
            raise ValidationError(
                f"Invalid member record for {home_email!r}", [str(e)]
            ) from e
        return cls(
            primary_email=normalize_email(record.get("Directory Email")) or home_email,
            given_name=str(record.get("First") or ""),
            family_name=str(record.get("Last") or ""),
            home_email=home_email,
            phone=str(record.get("Phone") or ""),
            joined=joined,
            expires=expires,
            period=period,
            renewed_on=renewed_on,
            status=str(record.get("Status") or ACTIVE),
            generation=generation,
            domain=domain,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "Email": self.home_email,
            "First": self.given_name,
            "Last": self.family_name,
            "Phone": self.phone,
            "Joined": format_date(self.joined),
            "Period": self.period,
            "Expires": format_date(self.expires),
            "Renewed On": format_date(self.renewed_on),
            "Status": self.status,
            "Directory Email": self.primary_email,
            "Generation": self.generation,
        }

    def template_fields(self) -> Dict[str, Any]:
        """Values available to email templates, keyed like the sheet headers."""
        fields = self.to_record()
        fields.update(
            {
                "Joined": self.joined,
                "Expires": self.expires,
                "Renewed On": self.renewed_on,
                "Full Name": self.full_name,
            }
        )
        return fields


@dataclass
class Transaction:
    """A payment form submission.

    Unknown columns are preserved in ``raw`` so the row can be written back
    unchanged apart from ``Processed`` and ``Timestamp``.
    """

    email: str
    first: str = ""
    last: str = ""
    phone: str = ""
    payable_status: str = ""
    payment: str = ""
    directory: str = ""
    timestamp: Any = None
    processed: Any = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)

    @property
    def is_paid(self) -> bool:
        return str(self.payable_status or "").strip().lower().startswith("paid")

    @property
    def is_processed(self) -> bool:
        return bool(self.processed)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Transaction":
        """Build from a Transactions row; form and short headers both work."""

        def pick(*keys: str) -> str:
            for key in keys:
                value = record.get(key)
                if value not in (None, ""):
                    return str(value)
            return ""

        return cls(
            email=pick("Email Address", "Email"),
            first=pick("First Name", "First"),
            last=pick("Last Name", "Last"),
            phone=pick("Phone Number", "Phone"),
            payable_status=pick("Payable Status"),
            payment=pick("Payment"),
            directory=pick("Directory"),
            timestamp=record.get("Timestamp"),
            processed=record.get("Processed") or None,
            raw=dict(record),
        )

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.raw)
        for key, value in (("Processed", self.processed), ("Timestamp", self.timestamp)):
            record[key] = format_date(value) if isinstance(value, date) else value
        return record


class ActionType(Enum):
    """Lifecycle email types. Only the Expiry types carry day offsets."""

    MIGRATE = "Migrate"
    JOIN = "Join"
    RENEW = "Renew"
    EXPIRY1 = "Expiry1"
    EXPIRY2 = "Expiry2"
    EXPIRY3 = "Expiry3"
    EXPIRY4 = "Expiry4"

    @property
    def is_expiry(self) -> bool:
        return self.value.startswith("Expiry")

    @classmethod
    def parse(cls, value: Any) -> "ActionType":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for action_type in cls:
            if action_type.value.lower() == text.lower():
                return action_type
        raise ValidationError(f"Unknown action type: {value!r}")


RichText = Dict[str, str]


@dataclass
class ActionSpec:
    """Email template and timing for one ActionType.

    ``body`` is either a template string or a rich-text ``{"text", "url"}``
    mapping rendered as a link.
    """

    type: ActionType
    subject: str
    body: Union[str, RichText]
    offset: Optional[int] = None
    groups: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.type.is_expiry:
            if self.offset is None:
                errors.append(f"{self.type.value} requires an offset")
            elif isinstance(self.offset, bool) or not isinstance(self.offset, int):
                errors.append(
                    f"{self.type.value} offset must be an integer, got {self.offset!r}"
                )
        elif self.offset is not None:
            errors.append(f"{self.type.value} must not have an offset")

        if isinstance(self.body, dict) and not (
            self.body.get("text") and self.body.get("url")
        ):
            errors.append(f"{self.type.value} rich body needs both text and url")

        if errors:
            raise ValidationError(f"Invalid action spec {self.type.value}", errors)

    @property
    def html_body(self) -> str:
        if isinstance(self.body, dict):
            return f'<a href="{self.body["url"]}">{self.body["text"]}</a>'
        return self.body or ""


@dataclass(frozen=True)
class ScheduleEntry:
    """A due date for firing one expiry ActionSpec against one member."""

    date: date
    email: str
    type: ActionType

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ScheduleEntry":
        entry_date = parse_date(record.get("Date"))
        if entry_date is None:
            raise ValidationError("Schedule entry has no date")
        return cls(
            date=entry_date,
            email=normalize_email(record.get("Email")),
            type=ActionType.parse(record.get("Type")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "Date": format_date(self.date),
            "Email": self.email,
            "Type": self.type.value,
        }


@dataclass
class ExpiryAction:
    """Work for one fired expiry entry, queued until it succeeds.

    Attributes:
        email: Recipient and group member address
        subject: Expanded subject line
        html_body: Expanded body
        groups: Groups to remove the member from
        delete_identity: Delete the directory account after notifying
        directory_email: Directory key, when it differs from ``email``
        action_type: ActionType value, for logs and notifications
    """

    email: str
    subject: str
    html_body: str
    groups: List[str] = field(default_factory=list)
    delete_identity: bool = False
    directory_email: str = ""
    action_type: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "subject": self.subject,
            "htmlBody": self.html_body,
            "groups": list(self.groups),
            "deleteIdentity": self.delete_identity,
            "directoryEmail": self.directory_email,
            "type": self.action_type,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ExpiryAction":
        """Validate and build from a queue item payload.

        Raises:
            ValidationError: If required fields are missing or mistyped
        """
        errors: List[str] = []
        email = normalize_email(payload.get("email"))
        if not EMAIL_PATTERN.match(email):
            errors.append(f"Invalid email: {payload.get('email')!r}")
        subject = payload.get("subject")
        if not isinstance(subject, str) or not subject:
            errors.append("Missing subject")
        html_body = payload.get("htmlBody", "")
        if not isinstance(html_body, str):
            errors.append("htmlBody must be a string")
        groups = payload.get("groups") or []
        if not isinstance(groups, list):
            errors.append("groups must be a list")
        if errors:
            raise ValidationError("Invalid expiry action", errors)
        return cls(
            email=email,
            subject=subject,
            html_body=html_body,
            groups=[str(g) for g in groups],
            delete_identity=bool(payload.get("deleteIdentity", False)),
            directory_email=normalize_email(payload.get("directoryEmail")),
            action_type=str(payload.get("type") or ""),
        )
