"""Membership lifecycle feature settings."""

from pydantic import Field, field_validator
import structlog

from infrastructure.configuration.base import FeatureSettings

logger = structlog.stdlib.get_logger().bind(component="config.membership")

RETRY_MODES = ("retry", "literal")


class MembershipFeatureSettings(FeatureSettings):
    """Configuration for the membership lifecycle engine.

    Environment Variables:
        MEMBERSHIP_DOMAIN: Club domain for directory accounts (default: sc3.club)
        MEMBERSHIP_ORG_UNIT_PATH: Org unit that holds member accounts
        MEMBERSHIP_GROUPS: Comma-separated group emails every member joins
        MEMBERSHIP_SENDER: From address for lifecycle emails
        MEMBERSHIP_REPLY_TO: Reply-to address (default: membership@{domain})
        MEMBERSHIP_ALERT_EMAIL: Operator address for failure alerts
            (default: membership-automation@{domain})
        VALIDATION_ERROR_EMAIL: Recipient of consolidated validation alerts
        MEMBERSHIP_SEND_REPORTS: Mail a per-run outcome report when a run did
            anything
        MEMBERSHIP_REPORT_EMAIL: Report recipient (default: the alert address)
        MEMBERSHIP_TEST_EMAILS: Log emails instead of sending them
        MEMBERSHIP_TEST_GROUP_ADDS: Log group adds instead of performing them
        MEMBERSHIP_TEST_GROUP_REMOVES: Log group removes instead of performing them
        MEMBERSHIP_PROVISION_DIRECTORY: Create/update directory accounts
        MEMBERSHIP_MAX_GENERATION: Generation bumps tried when a name collides
        MEMBERSHIP_RETRY_ON_ERROR_MODE: 'retry' (loop) or 'literal' (sleep once
            then re-raise)
        MEMBERSHIP_RETRY_ON_ERROR_DELAY_MS: Delay between retry-on-error attempts
        MEMBERSHIP_RETRY_ON_ERROR_MAX_ATTEMPTS: Attempts in 'retry' mode
        MEMBERSHIP_ADD_POLL_ATTEMPTS: Polls while waiting for a new account
        MEMBERSHIP_DELETE_POLL_ATTEMPTS: Polls while waiting for a deletion
        MEMBERSHIP_POLL_DELAY_MS: Delay between polls
        MEMBERSHIP_PAYMENT_CHECK_SHORT_MINUTES: Pending time before 5-minute checks
        MEMBERSHIP_PAYMENT_CHECK_LONG_MINUTES: Pending time before hourly checks
        MEMBERSHIP_EXPIRY_CHECK_TIME: Daily time (HH:MM) of the expiry check
        MEMBERSHIP_SUBMISSION_WATCH_MINUTES: How often an idle poller looks for
            new submissions

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        for group in settings.membership.group_list:
            ...
        ```
    """

    domain: str = Field(default="sc3.club", alias="MEMBERSHIP_DOMAIN")
    org_unit_path: str = Field(default="/members", alias="MEMBERSHIP_ORG_UNIT_PATH")
    groups: str = Field(default="", alias="MEMBERSHIP_GROUPS")
    sender: str = Field(default="", alias="MEMBERSHIP_SENDER")
    reply_to: str = Field(default="", alias="MEMBERSHIP_REPLY_TO")
    alert_email: str = Field(default="", alias="MEMBERSHIP_ALERT_EMAIL")
    validation_error_email: str = Field(
        default="membership_automation@sc3.club", alias="VALIDATION_ERROR_EMAIL"
    )
    send_reports: bool = Field(default=True, alias="MEMBERSHIP_SEND_REPORTS")
    report_email: str = Field(default="", alias="MEMBERSHIP_REPORT_EMAIL")

    test_emails: bool = Field(default=False, alias="MEMBERSHIP_TEST_EMAILS")
    test_group_adds: bool = Field(default=False, alias="MEMBERSHIP_TEST_GROUP_ADDS")
    test_group_removes: bool = Field(
        default=False, alias="MEMBERSHIP_TEST_GROUP_REMOVES"
    )

    provision_directory: bool = Field(
        default=True, alias="MEMBERSHIP_PROVISION_DIRECTORY"
    )
    max_generation: int = Field(default=10, alias="MEMBERSHIP_MAX_GENERATION")

    retry_on_error_mode: str = Field(
        default="retry", alias="MEMBERSHIP_RETRY_ON_ERROR_MODE"
    )
    retry_on_error_delay_ms: int = Field(
        default=250, alias="MEMBERSHIP_RETRY_ON_ERROR_DELAY_MS"
    )
    retry_on_error_max_attempts: int = Field(
        default=5, alias="MEMBERSHIP_RETRY_ON_ERROR_MAX_ATTEMPTS"
    )
    add_poll_attempts: int = Field(default=4000, alias="MEMBERSHIP_ADD_POLL_ATTEMPTS")
    delete_poll_attempts: int = Field(
        default=400, alias="MEMBERSHIP_DELETE_POLL_ATTEMPTS"
    )
    poll_delay_ms: int = Field(default=250, alias="MEMBERSHIP_POLL_DELAY_MS")

    payment_check_short_minutes: int = Field(
        default=5, alias="MEMBERSHIP_PAYMENT_CHECK_SHORT_MINUTES"
    )
    payment_check_long_minutes: int = Field(
        default=15, alias="MEMBERSHIP_PAYMENT_CHECK_LONG_MINUTES"
    )
    expiry_check_time: str = Field(
        default="06:00", alias="MEMBERSHIP_EXPIRY_CHECK_TIME"
    )
    submission_watch_minutes: int = Field(
        default=10, alias="MEMBERSHIP_SUBMISSION_WATCH_MINUTES"
    )

    transactions_sheet: str = Field(
        default="Transactions", alias="MEMBERSHIP_TRANSACTIONS_SHEET"
    )
    members_sheet: str = Field(default="ActiveMembers", alias="MEMBERSHIP_MEMBERS_SHEET")
    schedule_sheet: str = Field(
        default="ExpirySchedule", alias="MEMBERSHIP_SCHEDULE_SHEET"
    )
    action_specs_sheet: str = Field(
        default="ActionSpecs", alias="MEMBERSHIP_ACTION_SPECS_SHEET"
    )
    migration_sheet: str = Field(
        default="CEMembers", alias="MEMBERSHIP_MIGRATION_SHEET"
    )

    @field_validator("retry_on_error_mode")
    @classmethod
    def _validate_retry_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in RETRY_MODES:
            logger.error("invalid_retry_on_error_mode", value=v)
            raise ValueError(
                f"MEMBERSHIP_RETRY_ON_ERROR_MODE must be one of {RETRY_MODES}"
            )
        return mode

    @property
    def group_list(self) -> list[str]:
        """Configured group emails, in declaration order."""
        return [g.strip() for g in self.groups.split(",") if g.strip()]

    @property
    def effective_reply_to(self) -> str:
        return self.reply_to or f"membership@{self.domain}"

    @property
    def effective_alert_email(self) -> str:
        return self.alert_email or f"membership-automation@{self.domain}"

    @property
    def effective_report_email(self) -> str:
        return self.report_email or self.effective_alert_email

    @property
    def effective_sender(self) -> str:
        return self.sender or f"membership@{self.domain}"
