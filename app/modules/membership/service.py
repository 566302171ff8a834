"""Membership lifecycle orchestration.

MembershipService ties the translator, scheduler, directory, group batch,
mail sender and expiry queue together over the membership spreadsheet:

- ``process_transactions``: turn paid form submissions into joins and
  renewals
- ``check_expiries``: fire due reminders through the retryable queue
- ``migrate_members``: bring flagged rows of a legacy member list across
- ``add_members_to_groups`` / ``remove_members_from_groups``: batch group
  updates with partial-failure accumulation

Every run re-reads its sheets; nothing is cached between runs. Member and
schedule changes for one transaction or migration row are committed only
after every step for it succeeded, so a failed row leaves no partial state
behind and is picked up again on the next run.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from infrastructure.configuration.features.membership import (
    MembershipFeatureSettings,
)
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationStatus
from infrastructure.persistence.property_store import PropertyStore
from infrastructure.resilience.retry import RetryConfig, RetryStore
from modules.membership.action_queue import (
    ExpiryActionProcessor,
    ExpiryActionQueue,
    drain_expiry_queue,
)
from modules.membership.directory.base import Directory
from modules.membership.domain.errors import (
    AggregateError,
    AlreadyExistsError,
    ValidationError,
    raise_for_result,
)
from modules.membership.domain.models import (
    ACTIVE,
    EXPIRED,
    ActionSpec,
    ActionType,
    ExpiryAction,
    Member,
    ScheduleEntry,
    Transaction,
    normalize_email,
    normalize_phone,
)
from modules.membership.groups import (
    GroupBackend,
    MemberGroupFn,
    add_members_to_groups,
    remove_members_from_groups,
)
from modules.membership.mail import MailSender, send_or_raise
from modules.membership.notifier import Notifier
from modules.membership.polling import (
    PAYMENT_CHECK_HANDLER,
    PollingBackoffController,
    TriggerScheduler,
)
from modules.membership.scheduler import reschedule, select_due
from modules.membership.tables import Row, TableStore
from modules.membership.templates import expand_template
from modules.membership.transactions import (
    PaidMemberAction,
    add_years,
    calculate_expiration_date,
    classify_actions,
    derive_paid_member_actions,
    has_pending_payments,
)
from modules.membership.validation import parse_action_specs, send_validation_alert

logger = get_module_logger()

FAILURE_ALERT_SUBJECT = "🚨 Membership Expiration Processing Failed"


@dataclass
class MemberRoster:
    """Parsed ActiveMembers rows plus the rows that failed to parse.

    Unparseable rows are written back untouched after the valid ones.
    """

    members: List[Member]
    invalid_rows: List[Row]

    def find_active(self, email: str) -> Optional[Member]:
        key = normalize_email(email)
        for member in self.members:
            if member.is_active and member.home_email == key:
                return member
        return None

    def put(self, member: Member) -> None:
        """Replace the record with the same home email, or append."""
        for index, existing in enumerate(self.members):
            if existing.home_email == member.home_email:
                self.members[index] = member
                return
        self.members.append(member)

    def to_rows(self) -> List[Row]:
        return [m.to_record() for m in self.members] + [dict(r) for r in self.invalid_rows]


class MembershipService:
    """Top-level membership lifecycle operations.

    Args:
        tables: Spreadsheet holding the membership sheets
        group_backend: Group membership backend
        mail_sender: Lifecycle and alert email
        retry_store: Queue for expiry actions
        settings: Membership feature settings
        directory: Identity backend; None disables directory provisioning
        retry_config: Batch size for queue passes
        notifier: Outcome recorder, reset at the start of every run; a fresh
            one is created when omitted
        today: Current date, injectable for tests
    """

    def __init__(
        self,
        tables: TableStore,
        group_backend: GroupBackend,
        mail_sender: MailSender,
        retry_store: RetryStore,
        settings: MembershipFeatureSettings,
        directory: Optional[Directory] = None,
        retry_config: Optional[RetryConfig] = None,
        notifier: Optional[Notifier] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.tables = tables
        self.groups = group_backend
        self.mail = mail_sender
        self.retry_store = retry_store
        self.settings = settings
        self.directory = directory
        self.retry_config = retry_config
        self.notifier = notifier or Notifier()
        self._today = today

    @property
    def provisions_directory(self) -> bool:
        return self.directory is not None and self.settings.provision_directory

    # ------------------------------------------------------------------
    # Sheet access
    # ------------------------------------------------------------------

    def load_members(self) -> MemberRoster:
        roster = MemberRoster(members=[], invalid_rows=[])
        for index, row in enumerate(self.tables.get_data(self.settings.members_sheet)):
            try:
                roster.members.append(Member.from_record(row, self.settings.domain))
            except ValidationError as e:
                logger.warning(
                    "member_row_invalid", row_number=index + 2, errors=e.errors
                )
                roster.invalid_rows.append(row)
        return roster

    def load_schedule(self) -> List[ScheduleEntry]:
        entries: List[ScheduleEntry] = []
        for index, row in enumerate(self.tables.get_data(self.settings.schedule_sheet)):
            try:
                entries.append(ScheduleEntry.from_record(row))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "schedule_row_dropped", row_number=index + 2, error=str(e)
                )
        return entries

    def load_action_specs(self) -> Dict[ActionType, ActionSpec]:
        """Parse ActionSpecs; rejected rows go out in one validation alert."""
        rows = self.tables.get_data(self.settings.action_specs_sheet)
        specs, errors = parse_action_specs(rows)
        send_validation_alert(
            self.mail, self.settings.validation_error_email, "Action Specs", errors
        )
        return specs

    def _save_members(self, roster: MemberRoster) -> None:
        self.tables.set_data(self.settings.members_sheet, roster.to_rows())
        self.tables.dump_values(self.settings.members_sheet)

    def _save_schedule(self, entries: Sequence[ScheduleEntry]) -> None:
        ordered = sorted(entries, key=lambda e: (e.date, e.email, e.type.value))
        self.tables.set_data(
            self.settings.schedule_sheet, [e.to_record() for e in ordered]
        )
        self.tables.dump_values(self.settings.schedule_sheet)

    @staticmethod
    def _expiry_specs(specs: Dict[ActionType, ActionSpec]) -> List[ActionSpec]:
        return [s for s in specs.values() if s.type.is_expiry]

    def _send_lifecycle_email(
        self,
        specs: Dict[ActionType, ActionSpec],
        action_type: ActionType,
        member: Member,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        spec = specs.get(action_type)
        if spec is None:
            logger.warning(
                "action_spec_missing", action_type=action_type.value, email=member.home_email
            )
            return
        fields = member.template_fields()
        fields.update(extra_fields or {})
        send_or_raise(
            self.mail,
            member.home_email,
            expand_template(spec.subject, fields),
            expand_template(spec.html_body, fields),
        )

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def add_members_to_groups(
        self,
        members: Sequence[Any],
        groups: Sequence[str],
        add_fn: Optional[MemberGroupFn] = None,
    ) -> None:
        """Add every member to every group.

        Raises:
            AggregateError: When any pair failed; the rest were still tried
        """
        add_members_to_groups(members, groups, add_fn or self.groups.add)

    def remove_members_from_groups(
        self,
        members: Sequence[Any],
        groups: Sequence[str],
        remove_fn: Optional[MemberGroupFn] = None,
    ) -> None:
        """Remove every member from every group.

        Raises:
            AggregateError: When any pair failed; the rest were still tried
        """
        remove_members_from_groups(members, groups, remove_fn or self.groups.remove)

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def provision(self, candidate: Member) -> Member:
        """Create the directory account, bumping the generation while the
        address is taken by someone else.

        An address already held by the same person (same home email) is left
        over from an earlier attempt at this join; it is refreshed and reused.

        Raises:
            AlreadyExistsError: When every generation up to max_generation
                is taken
            DirectoryError: For any other failure
        """
        if self.directory is None:
            raise ValueError("Directory provisioning is not configured")
        for _ in range(self.settings.max_generation + 1):
            result = self.directory.add_member(candidate, wait=True)
            if result.status == OperationStatus.ALREADY_EXISTS:
                if self._owns_address(candidate):
                    logger.info(
                        "directory_account_reused",
                        email=candidate.primary_email,
                        home_email=candidate.home_email,
                    )
                    self._update_identity(candidate, {})
                    return candidate
                logger.info(
                    "directory_address_taken",
                    email=candidate.primary_email,
                    generation=candidate.generation,
                )
                candidate = candidate.bump_generation()
                continue
            raise_for_result(result, "add_member")
            return candidate
        raise AlreadyExistsError(
            f"add_member: no free directory address for {candidate.full_name} "
            f"after {self.settings.max_generation} generations"
        )

    def _owns_address(self, candidate: Member) -> bool:
        existing = self.directory.get_member(candidate.primary_email)
        if not existing.is_success or existing.data is None:
            return False
        return normalize_email(existing.data.home_email) == candidate.home_email

    def _update_identity(self, member: Member, patch: Dict[str, Any]) -> None:
        if self.directory is None:
            return
        result = self.directory.update_member(member, patch)
        if result.status == OperationStatus.NOT_FOUND:
            logger.warning(
                "directory_member_missing_on_update", email=member.primary_email
            )
            return
        raise_for_result(result, "update_member")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def process_transactions(
        self, raw_transactions: Optional[Sequence[Any]] = None
    ) -> Dict[str, Any]:
        """Apply every paid, unprocessed transaction.

        Args:
            raw_transactions: Transactions or Transactions rows; read from
                the Transactions sheet when omitted (and written back)

        Returns:
            ``applied_actions``: dicts with type, email and period
            ``updated_member_records``: Members joined or renewed
            ``has_pending_payments``: Any unprocessed, unpaid transaction left
            ``errors``: one message per failed transaction
        """
        today = self._today()
        self.notifier.clear()
        from_sheet = raw_transactions is None
        rows = (
            self.tables.get_data(self.settings.transactions_sheet)
            if from_sheet
            else list(raw_transactions or [])
        )
        transactions = [
            r if isinstance(r, Transaction) else Transaction.from_record(r) for r in rows
        ]

        applied: List[Dict[str, Any]] = []
        updated: List[Member] = []
        errors: List[str] = []

        paid = derive_paid_member_actions(transactions)
        if paid:
            roster = self.load_members()
            specs = self.load_action_specs()
            schedule = self.load_schedule()

            for action in paid:
                action_type, _ = classify_actions([action], roster.members)[0]
                try:
                    if action_type == ActionType.RENEW:
                        member, schedule = self._renew(action, roster, specs, schedule, today)
                        self.notifier.renewal_success(member.home_email, member.primary_email)
                    else:
                        member, schedule = self._join(action, roster, specs, schedule, today)
                        self.notifier.join_success(member.home_email, member.primary_email)
                except Exception as e:  # pylint: disable=broad-except
                    message = f"Row {action.index + 2} ({action.email}): {e}"
                    errors.append(message)
                    if action_type == ActionType.RENEW:
                        self.notifier.renewal_failure(action.email, str(e))
                    else:
                        self.notifier.join_failure(action.email, str(e))
                    continue

                txn = transactions[action.index]
                txn.processed = today
                txn.timestamp = today
                roster.put(member)
                updated.append(member)
                applied.append(
                    {
                        "type": action_type.value,
                        "email": action.email,
                        "period": action.period,
                    }
                )

            if applied:
                self._save_members(roster)
                self._save_schedule(schedule)
                if from_sheet:
                    self.tables.set_data(
                        self.settings.transactions_sheet,
                        [t.to_record() for t in transactions],
                    )
                    self.tables.dump_values(self.settings.transactions_sheet)

        pending = has_pending_payments(transactions)
        logger.info(
            "transactions_processed",
            applied=len(applied),
            errors=len(errors),
            has_pending_payments=pending,
        )
        self._report_run("Transactions")
        return {
            "applied_actions": applied,
            "updated_member_records": updated,
            "has_pending_payments": pending,
            "errors": errors,
        }

    def _join(
        self,
        action: PaidMemberAction,
        roster: MemberRoster,
        specs: Dict[ActionType, ActionSpec],
        schedule: List[ScheduleEntry],
        today: date,
    ) -> Tuple[Member, List[ScheduleEntry]]:
        if action.transaction is None:
            raise ValidationError(f"No transaction behind the join for {action.email}")
        self._check_partial_match(action, roster)
        candidate = Member.from_transaction(
            action.transaction,
            joined=today,
            expires=add_years(today, action.period),
            period=action.period,
            domain=self.settings.domain if self.provisions_directory else None,
            org_unit_path=self.settings.org_unit_path,
        )
        if self.provisions_directory:
            candidate = self.provision(candidate)

        self.add_members_to_groups([candidate], self.settings.group_list)
        new_schedule = reschedule(
            schedule, candidate, self._expiry_specs(specs), not_before=today
        )
        self._send_lifecycle_email(specs, ActionType.JOIN, candidate)
        return candidate, new_schedule

    def _renew(
        self,
        action: PaidMemberAction,
        roster: MemberRoster,
        specs: Dict[ActionType, ActionSpec],
        schedule: List[ScheduleEntry],
        today: date,
    ) -> Tuple[Member, List[ScheduleEntry]]:
        current = roster.find_active(action.email)
        if current is None:
            raise ValidationError(f"{action.email} is not an active member")
        patch = {
            "expires": calculate_expiration_date(today, current.expires, action.period),
            "period": action.period,
            "renewed_on": today,
        }
        renewed = current.copy(**patch)
        if self.provisions_directory:
            self._update_identity(current, patch)

        new_schedule = reschedule(
            schedule, renewed, self._expiry_specs(specs), not_before=today
        )
        self._send_lifecycle_email(specs, ActionType.RENEW, renewed)
        return renewed, new_schedule

    def _check_partial_match(self, action: PaidMemberAction, roster: MemberRoster) -> None:
        """Flag a Join whose name or phone matches an active member with a
        different email."""
        for member in roster.members:
            if not member.is_active or member.home_email == action.email:
                continue
            same_name = bool(action.first and action.last) and (
                member.given_name.strip().lower() == action.first.strip().lower()
                and member.family_name.strip().lower() == action.last.strip().lower()
            )
            same_phone = bool(action.phone) and member.phone == normalize_phone(action.phone)
            if same_name or same_phone:
                matched_on = "name" if same_name else "phone"
                self.notifier.partial_match(
                    action.email,
                    f"{matched_on} matches active member {member.home_email}",
                )
                return

    # ------------------------------------------------------------------
    # Expiries
    # ------------------------------------------------------------------

    def check_expiries(self, as_of: Optional[date] = None) -> Dict[str, Any]:
        """Fire the due expiry reminders and drain the expiry queue.

        Returns:
            ``fired_actions``: ExpiryActions completed in this pass
            ``requeued_actions``: ExpiryActions that failed and will retry
            ``dead_lettered``: RetryRecords that exhausted their attempts or
                were malformed
            ``enqueued_actions``: ExpiryActions added from the schedule

        Raises:
            Exception: Any unexpected failure, after alerting the operators
        """
        as_of = as_of or self._today()
        self.notifier.clear()
        try:
            return self._check_expiries(as_of)
        except Exception as e:
            logger.error("expiry_processing_failed", error=str(e), as_of=as_of.isoformat())
            self._alert_failure(e)
            raise

    def _check_expiries(self, as_of: date) -> Dict[str, Any]:
        specs = self.load_action_specs()
        roster = self.load_members()
        schedule = self.load_schedule()
        fired, remaining = select_due(schedule, as_of)

        queue = ExpiryActionQueue(self.retry_store)
        enqueued: List[ExpiryAction] = []
        members_changed = False

        for entry in fired:
            member = roster.find_active(entry.email)
            if member is None:
                logger.info(
                    "expiry_entry_dropped_inactive",
                    email=entry.email,
                    action_type=entry.type.value,
                )
                continue
            spec = specs.get(entry.type)
            if spec is None:
                logger.warning(
                    "expiry_entry_dropped_no_spec",
                    email=entry.email,
                    action_type=entry.type.value,
                )
                continue

            action = self._expiry_action(entry, member, spec)
            queue.enqueue(action)
            enqueued.append(action)
            self.notifier.expiry_notification(member.home_email, entry.type.value)

            if entry.type == ActionType.EXPIRY4:
                roster.put(member.copy(status=EXPIRED))
                remaining = [e for e in remaining if e.email != member.home_email]
                members_changed = True
                self.notifier.expired(member.home_email)

        if fired:
            self._save_schedule(remaining)
        if members_changed:
            self._save_members(roster)

        processor = ExpiryActionProcessor(
            self.mail,
            self.groups,
            self.directory if self.provisions_directory else None,
        )
        report = drain_expiry_queue(self.retry_store, processor, self.retry_config)
        send_validation_alert(
            self.mail,
            self.settings.validation_error_email,
            "Expiry Queue",
            processor.validation_errors,
        )

        logger.info(
            "expiries_checked",
            as_of=as_of.isoformat(),
            enqueued=len(enqueued),
            **report.as_stats(),
        )
        self._report_run("Expiry")
        return {
            "fired_actions": list(processor.completed),
            "requeued_actions": [
                ExpiryAction.from_payload(r.payload) for r in report.retried
            ],
            "dead_lettered": list(report.dead_lettered),
            "enqueued_actions": enqueued,
        }

    def _expiry_action(
        self, entry: ScheduleEntry, member: Member, spec: ActionSpec
    ) -> ExpiryAction:
        fields = member.template_fields()
        fields["Scheduled On"] = entry.date
        is_final = entry.type == ActionType.EXPIRY4
        groups = list(spec.groups)
        if is_final:
            groups += [g for g in self.settings.group_list if g not in groups]
        return ExpiryAction(
            email=member.home_email,
            subject=expand_template(spec.subject, fields),
            html_body=expand_template(spec.html_body, fields),
            groups=groups,
            delete_identity=is_final and self.provisions_directory,
            directory_email=member.primary_email,
            action_type=entry.type.value,
        )

    def _report_run(self, run: str) -> None:
        """Mail this run's outcomes; the notifier is reset when the next run
        starts."""
        if self.settings.send_reports:
            self.notifier.send_report(
                self.mail,
                self.settings.effective_report_email,
                subject=f"Membership {run} Report",
            )

    def _alert_failure(self, error: Exception) -> None:
        body = (
            "<p>Membership expiration processing failed and was stopped.</p>"
            f"<p><b>{type(error).__name__}</b>: {error}</p>"
        )
        result = self.mail.send(
            self.settings.effective_alert_email, FAILURE_ALERT_SUBJECT, body
        )
        if not result.is_ok:
            logger.error("failure_alert_not_sent", error=result.message)

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def migrate_members(self, rows: Optional[Sequence[Row]] = None) -> List[Member]:
        """Migrate the legacy rows flagged ``Migrate Me`` and not yet
        ``Migrated``.

        Active rows become members: they join the groups named by the row's
        truthy ``@`` columns, get expiry entries and the Migrate email. Other
        rows are recorded only. Each migrated row is stamped ``Migrated``.

        Args:
            rows: Legacy rows; read from the migration sheet when omitted
                (and written back)

        Returns:
            The migrated Members

        Raises:
            AggregateError: After every row was tried, when any row failed
        """
        today = self._today()
        self.notifier.clear()
        from_sheet = rows is None
        source = (
            self.tables.get_data(self.settings.migration_sheet)
            if from_sheet
            else list(rows or [])
        )
        roster = self.load_members()
        specs = self.load_action_specs()
        schedule = self.load_schedule()

        migrated: List[Member] = []
        errors: List[str] = []

        for index, row in enumerate(source):
            email = normalize_email(row.get("Email"))
            if not email or roster.find_active(email) is not None:
                continue
            if not row.get("Migrate Me") or row.get("Migrated"):
                continue
            try:
                member, schedule = self._migrate_row(row, specs, schedule, today)
            except Exception as e:  # pylint: disable=broad-except
                errors.append(f"Row {index + 2} ({email}): {e}")
                self.notifier.migration_failure(email, str(e))
                continue
            row["Migrated"] = today.isoformat()
            roster.put(member)
            migrated.append(member)
            self.notifier.migration_success(email, member.status)

        if migrated:
            self._save_members(roster)
            self._save_schedule(schedule)
            if from_sheet:
                self.tables.set_data(self.settings.migration_sheet, list(source))
                self.tables.dump_values(self.settings.migration_sheet)

        logger.info("members_migrated", migrated=len(migrated), errors=len(errors))
        self._report_run("Migration")
        if errors:
            raise AggregateError(f"{len(errors)} member(s) failed to migrate", errors)
        return migrated

    def _migrate_row(
        self,
        row: Row,
        specs: Dict[ActionType, ActionSpec],
        schedule: List[ScheduleEntry],
        today: date,
    ) -> Tuple[Member, List[ScheduleEntry]]:
        member = Member.from_record(row, self.settings.domain)
        if member.status.strip().lower() != ACTIVE.lower():
            return member, schedule

        member = member.copy(status=ACTIVE)
        groups = [key for key, value in row.items() if "@" in key and value]
        self.add_members_to_groups([member], groups)
        new_schedule = reschedule(
            schedule, member, self._expiry_specs(specs), not_before=today
        )
        self._send_lifecycle_email(specs, ActionType.MIGRATE, member)
        return member, new_schedule

    # ------------------------------------------------------------------
    # Payment polling
    # ------------------------------------------------------------------

    def payment_poller(
        self,
        properties: PropertyStore,
        triggers: TriggerScheduler,
        handler: str = PAYMENT_CHECK_HANDLER,
    ) -> PollingBackoffController:
        """Backoff controller that processes transactions on every check."""
        return PollingBackoffController(
            properties,
            triggers,
            pending=lambda: self.process_transactions()["has_pending_payments"],
            watermark=self.tables.last_modified,
            handler=handler,
            short_minutes=self.settings.payment_check_short_minutes,
            long_minutes=self.settings.payment_check_long_minutes,
        )
