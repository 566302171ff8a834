"""Header-based parsing of configuration rows with consolidated alerts.

Invalid rows never stop valid ones from being used. Every failure is
collected as a RowError and all of them go out in one alert email per
context, with the subject ``Data Validation Errors: {context}``.
"""

import html
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from infrastructure.logging import get_module_logger
from modules.membership.domain.errors import ValidationError
from modules.membership.domain.models import ActionSpec, ActionType
from modules.membership.mail import MailSender

logger = get_module_logger()


@dataclass
class RowError:
    """One rejected row.

    Attributes:
        row_number: Sheet row (header is row 1)
        reason: Every failed check, joined
        row: The raw row
        label: Location shown instead of the row number (queue items)
    """

    row_number: int
    reason: str
    row: Dict[str, Any] = field(default_factory=dict)
    label: str = ""

    @property
    def location(self) -> str:
        return self.label or f"Row {self.row_number}"


def _parse_offset(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Offset is not a number: {value!r}") from e
    if not number.is_integer():
        raise ValidationError(f"Offset must be a whole number of days: {value!r}")
    return int(number)


def parse_action_spec(record: Dict[str, Any]) -> ActionSpec:
    """ActionSpec for one ActionSpecs row.

    Raises:
        ValidationError: If the row is incomplete or inconsistent
    """
    action_type = ActionType.parse(record.get("Type"))
    subject = str(record.get("Subject") or "").strip()
    if not subject:
        raise ValidationError(f"{action_type.value} has no Subject")
    body = record.get("Body")
    if not isinstance(body, dict):
        body = "" if body is None else str(body)
    groups = [g.strip() for g in str(record.get("Groups") or "").split(",") if g.strip()]
    return ActionSpec(
        type=action_type,
        subject=subject,
        body=body,
        offset=_parse_offset(record.get("Offset")),
        groups=groups,
    )


def parse_action_specs(
    rows: Sequence[Dict[str, Any]],
) -> Tuple[Dict[ActionType, ActionSpec], List[RowError]]:
    """Parse every ActionSpecs row; the first row for a type wins."""
    specs: Dict[ActionType, ActionSpec] = {}
    errors: List[RowError] = []
    for index, row in enumerate(rows):
        row_number = index + 2
        try:
            spec = parse_action_spec(row)
        except ValidationError as e:
            errors.append(RowError(row_number, "; ".join(e.errors), dict(row)))
            continue
        if spec.type in specs:
            errors.append(
                RowError(row_number, f"Duplicate spec for {spec.type.value}", dict(row))
            )
            continue
        specs[spec.type] = spec

    if errors:
        logger.warning("action_spec_rows_rejected", count=len(errors))
    return specs, errors


def render_validation_alert(context: str, errors: Sequence[RowError]) -> Tuple[str, str]:
    """Subject and HTML body of the consolidated alert."""
    subject = f"Data Validation Errors: {context}"
    items = "".join(
        f"<li>{html.escape(e.location)}: {html.escape(e.reason)}"
        f"<br><code>{html.escape(repr(e.row))}</code></li>"
        for e in errors
    )
    body = (
        f"<h3>{html.escape(subject)}</h3>"
        f"<p>{len(errors)} row(s) were rejected. Valid rows were still processed.</p>"
        f"<ul>{items}</ul>"
    )
    return subject, body


def send_validation_alert(
    mail_sender: MailSender, recipient: str, context: str, errors: Sequence[RowError]
) -> bool:
    """Mail one alert listing every error. Returns True when an alert went out."""
    if not errors:
        return False
    subject, body = render_validation_alert(context, errors)
    result = mail_sender.send(recipient, subject, body)
    if not result.is_ok:
        logger.error(
            "validation_alert_failed",
            context=context,
            recipient=recipient,
            error=result.message,
        )
        return False
    logger.info("validation_alert_sent", context=context, count=len(errors))
    return True
