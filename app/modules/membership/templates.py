"""Placeholder expansion for email subjects and bodies.

``{Key}`` is replaced with the value of ``Key`` from the field mapping.
Date fields render as ``M/D/YYYY``; missing values render as an empty string.
"""

import re
from datetime import date
from typing import Any, Mapping

from modules.membership.domain.models import parse_date

DATE_FIELDS = ("Scheduled On", "Expires", "Joined", "Renewed On")

PLACEHOLDER = re.compile(r"{([^}]+)}")


def format_display_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def expand_template(template: str, fields: Mapping[str, Any]) -> str:
    def replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        value = fields.get(key)
        if key in DATE_FIELDS:
            try:
                parsed = parse_date(value)
            except ValueError:
                return str(value)
            return format_display_date(parsed) if parsed else ""
        if value is None or value == "":
            return ""
        return str(value)

    return PLACEHOLDER.sub(replace, template or "")
