"""PostgreSQL-backed repository for the moderation lifecycle."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping, Sequence

import asyncpg

from celestia.moderation.domain.errors import InvalidTransition, NotFound, StaleAccountError, ValidationError
from celestia.moderation.domain.models import (
    Account,
    AccountCommit,
    AccountWarning,
    Appeal,
    AppealStatus,
    AppealType,
    AuditLogEntry,
    ModerationStats,
    ProfileStatus,
    QueueEntry,
    Report,
    ReportStatus,
    Resolution,
)
from celestia.moderation.domain.repository import ModerationRepository

_ACCOUNT_COLUMNS = """
    id, profile_status, suspended_until, suspension_reason, ban_reason, warnings,
    profile_status_reason, profile_status_reason_code, profile_status_fix_instructions,
    suspended_from, profile_status_updated_at, created_at, version
"""
_REPORT_COLUMNS = """
    id, reporter_id, reported_user_id, reason, additional_details, status, resolution,
    resolution_reason, resolved_at, resolved_by, created_at
"""
_QUEUE_COLUMNS = "id, reported_user_id, suspicion_score, indicators, auto_detected, created_at"
_APPEAL_COLUMNS = """
    id, user_id, type, original_reason, appeal_message, status, submitted_at,
    reviewed_by, reviewed_at, review_note, consumed_at
"""


class PostgresModerationRepository(ModerationRepository):
    """Persists lifecycle mutations using asyncpg."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def create_account(self, account: Account) -> Account:
        query = f"""
        INSERT INTO accounts (id, profile_status, warnings, profile_status_updated_at, created_at, version)
        VALUES ($1, $2, $3::jsonb, $4, COALESCE($5, now()), $6)
        ON CONFLICT (id) DO UPDATE SET id = EXCLUDED.id
        RETURNING {_ACCOUNT_COLUMNS}
        """
        record = await self.pool.fetchrow(
            query,
            account.id,
            account.profile_status.value,
            _dump_warnings(account.warnings),
            account.profile_status_updated_at,
            account.created_at,
            account.version,
        )
        if record is None:  # pragma: no cover - RETURNING always yields a row
            raise RuntimeError("failed to create account")
        return _account_from_record(record)

    async def get_account(self, user_id: str) -> Account | None:
        record = await self.pool.fetchrow(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = $1", user_id)
        if record is None:
            return None
        return _account_from_record(record)

    async def list_accounts(self, *, status: ProfileStatus | None = None, limit: int = 50) -> Sequence[Account]:
        query = f"""
        SELECT {_ACCOUNT_COLUMNS}
        FROM accounts
        WHERE ($1::text IS NULL OR profile_status = $1)
        ORDER BY created_at ASC
        LIMIT $2
        """
        records = await self.pool.fetch(query, status.value if status else None, limit)
        return [_account_from_record(record) for record in records]

    async def list_expired_suspensions(self, *, now: datetime, limit: int = 100) -> Sequence[Account]:
        query = f"""
        SELECT {_ACCOUNT_COLUMNS}
        FROM accounts
        WHERE profile_status = 'suspended' AND suspended_until IS NOT NULL AND suspended_until <= $1
        ORDER BY suspended_until ASC
        LIMIT $2
        """
        records = await self.pool.fetch(query, now, limit)
        return [_account_from_record(record) for record in records]

    async def commit_account(self, commit: AccountCommit) -> Account:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                return await self._commit_account(conn, commit)

    async def create_report(self, report: Report) -> Report:
        query = f"""
        INSERT INTO mod_account_report (id, reporter_id, reported_user_id, reason, additional_details, status, created_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING {_REPORT_COLUMNS}
        """
        record = await self.pool.fetchrow(
            query,
            report.id,
            report.reporter_id,
            report.reported_user_id,
            report.reason,
            report.additional_details,
            report.status.value,
            report.timestamp,
        )
        if record is None:  # pragma: no cover - RETURNING always yields a row
            raise RuntimeError("failed to create report")
        return _report_from_record(record)

    async def get_report(self, report_id: str) -> Report | None:
        record = await self.pool.fetchrow(f"SELECT {_REPORT_COLUMNS} FROM mod_account_report WHERE id = $1", report_id)
        if record is None:
            return None
        return _report_from_record(record)

    async def list_reports(self, *, status: ReportStatus | None = None, limit: int = 50) -> Sequence[Report]:
        query = f"""
        SELECT {_REPORT_COLUMNS}
        FROM mod_account_report
        WHERE ($1::text IS NULL OR status = $1)
        ORDER BY created_at DESC
        LIMIT $2
        """
        records = await self.pool.fetch(query, status.value if status else None, limit)
        return [_report_from_record(record) for record in records]

    async def resolve_report(
        self,
        report_id: str,
        *,
        resolution: Resolution,
        resolution_reason: str,
        resolved_at: datetime,
        resolved_by: str | None,
        account_commit: AccountCommit | None = None,
    ) -> tuple[Report, Account | None]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                record = await conn.fetchrow(
                    f"""
                    UPDATE mod_account_report
                    SET status = 'resolved',
                        resolution = $2,
                        resolution_reason = $3,
                        resolved_at = $4,
                        resolved_by = $5
                    WHERE id = $1 AND status = 'pending'
                    RETURNING {_REPORT_COLUMNS}
                    """,
                    report_id,
                    resolution.value,
                    resolution_reason,
                    resolved_at,
                    resolved_by,
                )
                if record is None:
                    exists = await conn.fetchval("SELECT 1 FROM mod_account_report WHERE id = $1", report_id)
                    if exists is None:
                        raise NotFound("report_not_found")
                    raise InvalidTransition("report_already_resolved")
                account = None
                if account_commit is not None:
                    # raising here rolls the report update back with it
                    account = await self._commit_account(conn, account_commit)
        return _report_from_record(record), account

    async def enqueue(self, entry: QueueEntry) -> QueueEntry:
        query = f"""
        INSERT INTO mod_review_queue (id, reported_user_id, suspicion_score, indicators, auto_detected, created_at)
        VALUES ($1, $2, $3, $4::jsonb, $5, $6)
        RETURNING {_QUEUE_COLUMNS}
        """
        record = await self.pool.fetchrow(
            query,
            entry.id,
            entry.reported_user_id,
            entry.suspicion_score,
            json.dumps(list(entry.indicators)),
            entry.auto_detected,
            entry.timestamp,
        )
        if record is None:  # pragma: no cover - RETURNING always yields a row
            raise RuntimeError("failed to enqueue entry")
        return _queue_entry_from_record(record)

    async def get_queue_entry(self, entry_id: str) -> QueueEntry | None:
        record = await self.pool.fetchrow(f"SELECT {_QUEUE_COLUMNS} FROM mod_review_queue WHERE id = $1", entry_id)
        if record is None:
            return None
        return _queue_entry_from_record(record)

    async def remove_queue_entry(self, entry_id: str) -> bool:
        removed = await self.pool.fetchval("DELETE FROM mod_review_queue WHERE id = $1 RETURNING id", entry_id)
        return removed is not None

    async def list_queue(self, *, limit: int = 50) -> Sequence[QueueEntry]:
        query = f"""
        SELECT {_QUEUE_COLUMNS}
        FROM mod_review_queue
        ORDER BY suspicion_score DESC, created_at ASC
        LIMIT $1
        """
        records = await self.pool.fetch(query, limit)
        return [_queue_entry_from_record(record) for record in records]

    async def count_queue_entries(self, user_id: str) -> int:
        count = await self.pool.fetchval("SELECT COUNT(*) FROM mod_review_queue WHERE reported_user_id = $1", user_id)
        return int(count or 0)

    async def create_appeal(self, appeal: Appeal) -> Appeal:
        query = f"""
        INSERT INTO mod_account_appeal (id, user_id, type, original_reason, appeal_message, status, submitted_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING {_APPEAL_COLUMNS}
        """
        try:
            record = await self.pool.fetchrow(
                query,
                appeal.id,
                appeal.user_id,
                appeal.type.value,
                appeal.original_reason,
                appeal.appeal_message,
                appeal.status.value,
                appeal.submitted_at,
            )
        except asyncpg.UniqueViolationError as exc:
            raise ValidationError("appeal_already_pending") from exc
        if record is None:  # pragma: no cover - RETURNING always yields a row
            raise RuntimeError("failed to create appeal")
        return _appeal_from_record(record)

    async def get_appeal(self, appeal_id: str) -> Appeal | None:
        record = await self.pool.fetchrow(f"SELECT {_APPEAL_COLUMNS} FROM mod_account_appeal WHERE id = $1", appeal_id)
        if record is None:
            return None
        return _appeal_from_record(record)

    async def find_pending_appeal(self, user_id: str) -> Appeal | None:
        record = await self.pool.fetchrow(
            f"SELECT {_APPEAL_COLUMNS} FROM mod_account_appeal WHERE user_id = $1 AND status = 'pending'",
            user_id,
        )
        if record is None:
            return None
        return _appeal_from_record(record)

    async def find_approved_appeal(self, user_id: str, appeal_type: AppealType) -> Appeal | None:
        query = f"""
        SELECT {_APPEAL_COLUMNS}
        FROM mod_account_appeal
        WHERE user_id = $1 AND type = $2 AND status = 'approved' AND consumed_at IS NULL
        ORDER BY submitted_at DESC
        LIMIT 1
        """
        record = await self.pool.fetchrow(query, user_id, appeal_type.value)
        if record is None:
            return None
        return _appeal_from_record(record)

    async def review_appeal(
        self,
        appeal_id: str,
        *,
        status: AppealStatus,
        reviewed_by: str | None,
        reviewed_at: datetime,
        review_note: str | None,
    ) -> Appeal:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                record = await conn.fetchrow(
                    f"""
                    UPDATE mod_account_appeal
                    SET status = $2,
                        reviewed_by = $3,
                        reviewed_at = $4,
                        review_note = $5
                    WHERE id = $1 AND status = 'pending'
                    RETURNING {_APPEAL_COLUMNS}
                    """,
                    appeal_id,
                    status.value,
                    reviewed_by,
                    reviewed_at,
                    review_note,
                )
                if record is None:
                    exists = await conn.fetchval("SELECT 1 FROM mod_account_appeal WHERE id = $1", appeal_id)
                    if exists is None:
                        raise NotFound("appeal_not_found")
                    raise InvalidTransition("appeal_already_reviewed")
        return _appeal_from_record(record)

    async def list_appeals(self, *, status: AppealStatus | None = None, limit: int = 50) -> Sequence[Appeal]:
        query = f"""
        SELECT {_APPEAL_COLUMNS}
        FROM mod_account_appeal
        WHERE ($1::text IS NULL OR status = $1)
        ORDER BY submitted_at DESC
        LIMIT $2
        """
        records = await self.pool.fetch(query, status.value if status else None, limit)
        return [_appeal_from_record(record) for record in records]

    async def audit(
        self,
        actor_id: str | None,
        action: str,
        target_type: str,
        target_id: str,
        meta: Mapping[str, Any],
    ) -> AuditLogEntry:
        query = """
        INSERT INTO mod_lifecycle_audit (actor_id, action, target_type, target_id, meta)
        VALUES ($1, $2, $3, $4, $5::jsonb)
        RETURNING actor_id, action, target_type, target_id, meta, created_at
        """
        record = await self.pool.fetchrow(
            query,
            actor_id,
            action,
            target_type,
            target_id,
            json.dumps(dict(meta), default=str),
        )
        if record is None:  # pragma: no cover - RETURNING always yields a row
            raise RuntimeError("failed to write audit entry")
        return _audit_from_record(record)

    async def list_audit(self, *, target_id: str | None = None, limit: int = 50) -> Sequence[AuditLogEntry]:
        query = """
        SELECT actor_id, action, target_type, target_id, meta, created_at
        FROM mod_lifecycle_audit
        WHERE ($1::text IS NULL OR target_id = $1)
        ORDER BY created_at DESC, id DESC
        LIMIT $2
        """
        records = await self.pool.fetch(query, target_id, limit)
        return [_audit_from_record(record) for record in records]

    async def stats(self) -> ModerationStats:
        record = await self.pool.fetchrow(
            """
            SELECT
                (SELECT COUNT(*) FROM mod_account_report)::bigint AS total_reports,
                (SELECT COUNT(*) FROM mod_account_report WHERE status = 'pending')::bigint AS pending_reports,
                (SELECT COUNT(*) FROM mod_account_report WHERE status = 'resolved')::bigint AS resolved_reports,
                (SELECT COUNT(*) FROM mod_review_queue)::bigint AS suspicious_profiles,
                (SELECT COUNT(*) FROM accounts WHERE profile_status = 'pending')::bigint AS pending_accounts,
                (SELECT COUNT(*) FROM mod_account_appeal WHERE status = 'pending')::bigint AS pending_appeals
            """
        )
        if record is None:  # pragma: no cover - aggregate query always yields a row
            return ModerationStats()
        return ModerationStats(
            total_reports=int(record["total_reports"]),
            pending_reports=int(record["pending_reports"]),
            resolved_reports=int(record["resolved_reports"]),
            suspicious_profiles=int(record["suspicious_profiles"]),
            pending_accounts=int(record["pending_accounts"]),
            pending_appeals=int(record["pending_appeals"]),
        )

    async def _commit_account(self, conn: asyncpg.Connection, commit: AccountCommit) -> Account:
        account = commit.account
        record = await conn.fetchrow(
            f"""
            UPDATE accounts
            SET profile_status = $3,
                suspended_until = $4,
                suspension_reason = $5,
                ban_reason = $6,
                warnings = $7::jsonb,
                profile_status_reason = $8,
                profile_status_reason_code = $9,
                profile_status_fix_instructions = $10,
                profile_status_updated_at = $11,
                suspended_from = $12,
                version = $13
            WHERE id = $1 AND version = $2
            RETURNING {_ACCOUNT_COLUMNS}
            """,
            account.id,
            commit.expected_version,
            account.profile_status.value,
            account.suspended_until,
            account.suspension_reason,
            account.ban_reason,
            _dump_warnings(account.warnings),
            account.profile_status_reason,
            account.profile_status_reason_code,
            account.profile_status_fix_instructions,
            account.profile_status_updated_at,
            account.suspended_from.value if account.suspended_from else None,
            account.version,
        )
        if record is None:
            exists = await conn.fetchval("SELECT 1 FROM accounts WHERE id = $1", account.id)
            if exists is None:
                raise NotFound("account_not_found")
            raise StaleAccountError()
        if commit.consume_appeal_id is not None:
            consumed = await conn.fetchval(
                """
                UPDATE mod_account_appeal
                SET consumed_at = COALESCE($2, now())
                WHERE id = $1 AND status = 'approved' AND consumed_at IS NULL
                RETURNING id
                """,
                commit.consume_appeal_id,
                account.profile_status_updated_at,
            )
            if consumed is None:
                # raising here rolls the account update back with it
                raise InvalidTransition("approved_appeal_required")
        if commit.purge_queue:
            await conn.execute("DELETE FROM mod_review_queue WHERE reported_user_id = $1", account.id)
        return _account_from_record(record)


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
    return value


def _dump_warnings(warnings: Sequence[AccountWarning]) -> str:
    return json.dumps([{"reason": w.reason, "timestamp": w.timestamp.isoformat()} for w in warnings])


def _warnings_from_json(value: Any) -> tuple[AccountWarning, ...]:
    items = _load_json(value, [])
    warnings: list[AccountWarning] = []
    for item in items:
        timestamp = item.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        warnings.append(AccountWarning(reason=str(item.get("reason", "")), timestamp=timestamp))
    return tuple(warnings)


def _account_from_record(record: asyncpg.Record) -> Account:
    return Account(
        id=str(record["id"]),
        profile_status=ProfileStatus(str(record["profile_status"])),
        suspended_until=record["suspended_until"],
        suspension_reason=record["suspension_reason"],
        ban_reason=record["ban_reason"],
        warnings=_warnings_from_json(record["warnings"]),
        profile_status_reason=record["profile_status_reason"],
        profile_status_reason_code=record["profile_status_reason_code"],
        profile_status_fix_instructions=record["profile_status_fix_instructions"],
        suspended_from=ProfileStatus(str(record["suspended_from"])) if record["suspended_from"] is not None else None,
        profile_status_updated_at=record["profile_status_updated_at"],
        created_at=record["created_at"],
        version=int(record["version"]),
    )


def _report_from_record(record: asyncpg.Record) -> Report:
    return Report(
        id=str(record["id"]),
        reporter_id=str(record["reporter_id"]),
        reported_user_id=str(record["reported_user_id"]),
        reason=str(record["reason"]),
        additional_details=record["additional_details"],
        timestamp=record["created_at"],
        status=ReportStatus(str(record["status"])),
        resolution=Resolution(str(record["resolution"])) if record["resolution"] is not None else None,
        resolution_reason=record["resolution_reason"],
        resolved_at=record["resolved_at"],
        resolved_by=str(record["resolved_by"]) if record["resolved_by"] is not None else None,
    )


def _queue_entry_from_record(record: asyncpg.Record) -> QueueEntry:
    return QueueEntry(
        id=str(record["id"]),
        reported_user_id=str(record["reported_user_id"]),
        suspicion_score=float(record["suspicion_score"]),
        indicators=[str(item) for item in _load_json(record["indicators"], [])],
        timestamp=record["created_at"],
        auto_detected=bool(record["auto_detected"]),
    )


def _appeal_from_record(record: asyncpg.Record) -> Appeal:
    return Appeal(
        id=str(record["id"]),
        user_id=str(record["user_id"]),
        type=AppealType(str(record["type"])),
        original_reason=str(record["original_reason"] or ""),
        appeal_message=str(record["appeal_message"]),
        submitted_at=record["submitted_at"],
        status=AppealStatus(str(record["status"])),
        reviewed_by=str(record["reviewed_by"]) if record["reviewed_by"] is not None else None,
        reviewed_at=record["reviewed_at"],
        review_note=record["review_note"],
        consumed_at=record["consumed_at"],
    )


def _audit_from_record(record: asyncpg.Record) -> AuditLogEntry:
    return AuditLogEntry(
        actor_id=str(record["actor_id"]) if record["actor_id"] is not None else None,
        action=str(record["action"]),
        target_type=str(record["target_type"]),
        target_id=str(record["target_id"]),
        meta=dict(_load_json(record["meta"], {})),
        created_at=record["created_at"],
    )
