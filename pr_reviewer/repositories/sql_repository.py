# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Data-access layer for teams, users, pull requests and review assignments.

One class implements every repository contract plus the Transactor, over a
single SQLAlchemy engine. Queries are plain SQL through ``text()`` and stay
portable between PostgreSQL (production) and SQLite (tests); the only
dialect-specific pieces are row locks and the per-transaction statement
timeout, both PostgreSQL-only.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import (
    DomainError,
    InternalError,
    NotFoundError,
    PRExistsError,
    PRMergedError,
    TeamExistsError,
    ValidationError,
)
from pr_reviewer.core.logging import get_logger
from pr_reviewer.models.domain import PRStatus, PullRequest, ReviewStat, Team, User
from pr_reviewer.repositories.base import (
    PullRequestRepository,
    StatsRepository,
    TeamRepository,
    Transaction,
    Transactor,
    UserRepository,
)
from pr_reviewer.services.sampling import CandidateSampler

logger = get_logger(__name__)

TEAM_COLS = "team_id, team_name, is_active"
USER_COLS = "u.user_id, u.username, u.team_id, u.is_active, t.team_name"
PR_COLS = "pr_id, pr_name, author_id, status, created_at, merged_at"

_USER_SELECT = f"SELECT {USER_COLS} FROM users u JOIN teams t ON t.team_id = u.team_id"


def _as_datetime(value) -> Optional[datetime]:
    # SQLite hands text() results back as strings
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _row_to_team(row) -> Team:
    return Team(team_id=row[0], team_name=row[1], is_active=bool(row[2]))


def _row_to_user(row) -> User:
    return User(user_id=row[0], username=row[1], team_id=row[2],
                is_active=bool(row[3]), team_name=row[4])


def _row_to_pr(row) -> PullRequest:
    return PullRequest(
        pull_request_id=row[0],
        name=row[1],
        author_id=row[2],
        status=PRStatus(row[3]),
        created_at=_as_datetime(row[4]),
        merged_at=_as_datetime(row[5]),
    )


def _is_unique_violation(exc: IntegrityError) -> bool:
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode is not None:
        return pgcode == "23505"
    return "unique" in str(exc.orig).lower()


class SqlTransaction(Transaction):
    def __init__(self, connection: Connection, deadline: Optional[Deadline] = None) -> None:
        super().__init__(deadline)
        self.connection = connection
        self._trans = connection.begin()

    def finish(self, commit: bool) -> None:
        try:
            if commit:
                self._trans.commit()
            else:
                self._trans.rollback()
        finally:
            self.closed = True
            self.connection.close()


class SqlRepository(Transactor, TeamRepository, UserRepository,
                    PullRequestRepository, StatsRepository):
    def __init__(self, engine: Engine, sampler: Optional[CandidateSampler] = None):
        self._engine = engine
        self._sampler = sampler or CandidateSampler()
        self._is_postgres = engine.dialect.name == "postgresql"

    @property
    def engine(self) -> Engine:
        return self._engine

    # ── Unit of work ───────────────────────────────────────────────────

    def begin(self, deadline: Optional[Deadline] = None) -> SqlTransaction:
        if deadline is not None:
            deadline.check()
        try:
            conn = self._engine.connect()
        except SQLAlchemyError as exc:
            logger.error("Could not open connection: %s", exc)
            raise InternalError("failed to begin transaction") from exc
        try:
            tx = SqlTransaction(conn, deadline)
            remaining = deadline.remaining() if deadline is not None else None
            if self._is_postgres and remaining is not None:
                conn.execute(text(f"SET LOCAL statement_timeout = {max(1, int(remaining * 1000))}"))
        except SQLAlchemyError as exc:
            conn.close()
            logger.error("Could not begin transaction: %s", exc)
            raise InternalError("failed to begin transaction") from exc
        return tx

    def commit(self, tx: SqlTransaction) -> None:
        tx.ensure_usable()
        try:
            tx.finish(commit=True)
        except SQLAlchemyError as exc:
            logger.error("Commit failed: %s", exc)
            raise InternalError("failed to commit transaction") from exc

    def rollback(self, tx: SqlTransaction) -> None:
        if tx.closed:
            return
        tx.finish(commit=False)

    # ── Teams ──────────────────────────────────────────────────────────

    def create_team(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        with self._conn(tx, "create team") as conn:
            try:
                row = conn.execute(
                    text(f"INSERT INTO teams (team_name, is_active) VALUES (:name, :active) "
                         f"RETURNING {TEAM_COLS}"),
                    {"name": team_name, "active": True},
                ).fetchone()
            except IntegrityError as exc:
                raise TeamExistsError(f"team '{team_name}' already exists") from exc
        return _row_to_team(row)

    def get_team_by_name(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        with self._conn(tx, "get team") as conn:
            row = conn.execute(
                text(f"SELECT {TEAM_COLS} FROM teams WHERE team_name = :name"),
                {"name": team_name},
            ).fetchone()
        if not row:
            raise NotFoundError(f"team '{team_name}' not found")
        return _row_to_team(row)

    def get_team_by_id(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        with self._conn(tx, "get team") as conn:
            row = self._fetch_team(conn, team_id)
        if not row:
            raise NotFoundError(f"team with id '{team_id}' not found")
        return _row_to_team(row)

    def rename_team(self, old_name: str, new_name: str,
                    tx: Optional[Transaction] = None) -> Team:
        with self._conn(tx, "rename team") as conn:
            try:
                row = conn.execute(
                    text(f"UPDATE teams SET team_name = :new WHERE team_name = :old "
                         f"RETURNING {TEAM_COLS}"),
                    {"old": old_name, "new": new_name},
                ).fetchone()
            except IntegrityError as exc:
                raise TeamExistsError(f"team '{new_name}' already exists") from exc
        if not row:
            raise NotFoundError(f"team '{old_name}' not found")
        return _row_to_team(row)

    def deactivate_team(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        with self._conn(tx, "deactivate team") as conn:
            result = conn.execute(
                text("UPDATE teams SET is_active = :active WHERE team_id = :id"),
                {"active": False, "id": team_id},
            )
            if result.rowcount == 0:
                raise NotFoundError(f"team with id '{team_id}' not found")
            row = self._fetch_team(conn, team_id)
        return _row_to_team(row)

    # ── Users ──────────────────────────────────────────────────────────

    def create_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        with self._conn(tx, "create user") as conn:
            try:
                conn.execute(
                    text("""
                        INSERT INTO users (user_id, username, team_id, is_active, created_at)
                        VALUES (:id, :username, :team_id, :active, :ts)
                    """).bindparams(bindparam("ts", type_=DateTime(timezone=True))),
                    {"id": user.user_id, "username": user.username, "team_id": user.team_id,
                     "active": user.is_active, "ts": datetime.now(timezone.utc)},
                )
            except IntegrityError as exc:
                if _is_unique_violation(exc):
                    raise ValidationError(
                        f"user '{user.user_id}' or username '{user.username}' already exists"
                    ) from exc
                raise NotFoundError(f"team with id '{user.team_id}' not found") from exc
            row = self._fetch_user(conn, user.user_id)
        return _row_to_user(row)

    def get_user(self, user_id: str, tx: Optional[Transaction] = None) -> User:
        with self._conn(tx, "get user") as conn:
            row = self._fetch_user(conn, user_id)
        if not row:
            raise NotFoundError(f"user '{user_id}' not found")
        return _row_to_user(row)

    def list_users_by_team(self, team_id: int, tx: Optional[Transaction] = None) -> List[User]:
        with self._conn(tx, "list team members") as conn:
            rows = conn.execute(
                text(f"{_USER_SELECT} WHERE u.team_id = :team_id ORDER BY u.username"),
                {"team_id": team_id},
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        with self._conn(tx, "update user") as conn:
            try:
                result = conn.execute(
                    text("""
                        UPDATE users SET username = :username, team_id = :team_id,
                                         is_active = :active
                        WHERE user_id = :id
                    """),
                    {"id": user.user_id, "username": user.username,
                     "team_id": user.team_id, "active": user.is_active},
                )
            except IntegrityError as exc:
                raise ValidationError(f"username '{user.username}' is already taken") from exc
            if result.rowcount == 0:
                raise NotFoundError(f"user '{user.user_id}' not found")
            row = self._fetch_user(conn, user.user_id)
        return _row_to_user(row)

    def set_user_active(self, user_id: str, is_active: bool,
                        tx: Optional[Transaction] = None) -> User:
        return self._update_user_column(user_id, "is_active", is_active, tx)

    def move_user_to_team(self, user_id: str, team_id: int,
                          tx: Optional[Transaction] = None) -> User:
        return self._update_user_column(user_id, "team_id", team_id, tx)

    def deactivate_users_by_team(self, team_id: int,
                                 tx: Optional[Transaction] = None) -> List[str]:
        with self._conn(tx, "deactivate team members") as conn:
            ids = [r[0] for r in conn.execute(
                text("SELECT user_id FROM users WHERE team_id = :team_id AND is_active = :active "
                     "ORDER BY user_id"),
                {"team_id": team_id, "active": True},
            ).fetchall()]
            if ids:
                conn.execute(
                    text("UPDATE users SET is_active = :inactive WHERE user_id IN :ids")
                    .bindparams(bindparam("ids", expanding=True)),
                    {"inactive": False, "ids": ids},
                )
        return ids

    def find_candidates(self, team_id: int, author_id: str, exclude_ids: Sequence[str],
                        limit: int, tx: Optional[Transaction] = None) -> List[User]:
        with self._conn(tx, "find review candidates") as conn:
            rows = conn.execute(
                text(f"""
                    {_USER_SELECT}
                    WHERE u.team_id = :team_id
                      AND u.is_active = :active
                      AND u.user_id != :author_id
                      AND u.user_id NOT IN :exclude
                    ORDER BY u.user_id
                """).bindparams(bindparam("exclude", expanding=True)),
                {"team_id": team_id, "active": True, "author_id": author_id,
                 "exclude": list(exclude_ids)},
            ).fetchall()
        return self._sampler.pick([_row_to_user(r) for r in rows], limit)

    # ── Pull requests ──────────────────────────────────────────────────

    def create_pr(self, pr: PullRequest, tx: Optional[Transaction] = None) -> PullRequest:
        created_at = pr.created_at or datetime.now(timezone.utc)
        with self._conn(tx, "create PR") as conn:
            try:
                conn.execute(
                    text("""
                        INSERT INTO pull_requests (pr_id, pr_name, author_id, status, created_at)
                        VALUES (:id, :name, :author_id, 'OPEN', :ts)
                    """).bindparams(bindparam("ts", type_=DateTime(timezone=True))),
                    {"id": pr.pull_request_id, "name": pr.name,
                     "author_id": pr.author_id, "ts": created_at},
                )
            except IntegrityError as exc:
                if _is_unique_violation(exc):
                    raise PRExistsError(f"PR '{pr.pull_request_id}' already exists") from exc
                raise NotFoundError(f"author '{pr.author_id}' not found") from exc
        return pr.model_copy(update={"status": PRStatus.OPEN, "created_at": created_at,
                                     "merged_at": None, "reviewers": ()})

    def get_pr(self, pr_id: str, tx: Optional[Transaction] = None,
               for_update: bool = False) -> PullRequest:
        sql = f"SELECT {PR_COLS} FROM pull_requests WHERE pr_id = :id"
        if for_update and self._is_postgres:
            sql += " FOR UPDATE"
        with self._conn(tx, "get PR") as conn:
            row = conn.execute(text(sql), {"id": pr_id}).fetchone()
        if not row:
            raise NotFoundError(f"PR '{pr_id}' not found")
        return _row_to_pr(row)

    def merge_pr(self, pr_id: str, merged_at: datetime,
                 tx: Optional[Transaction] = None) -> PullRequest:
        with self._conn(tx, "merge PR") as conn:
            result = conn.execute(
                text("""
                    UPDATE pull_requests SET status = 'MERGED', merged_at = :ts
                    WHERE pr_id = :id AND status = 'OPEN'
                """).bindparams(bindparam("ts", type_=DateTime(timezone=True))),
                {"id": pr_id, "ts": merged_at},
            )
            row = conn.execute(
                text(f"SELECT {PR_COLS} FROM pull_requests WHERE pr_id = :id"), {"id": pr_id},
            ).fetchone()
        if not row:
            raise NotFoundError(f"PR '{pr_id}' not found")
        if result.rowcount == 0:
            raise PRMergedError(f"PR '{pr_id}' is already merged")
        return _row_to_pr(row)

    def list_reviewers(self, pr_id: str, tx: Optional[Transaction] = None) -> List[User]:
        with self._conn(tx, "list reviewers") as conn:
            rows = conn.execute(
                text(f"""
                    {_USER_SELECT}
                    JOIN review_assignments ra ON ra.user_id = u.user_id
                    WHERE ra.pr_id = :pr_id
                    ORDER BY u.user_id
                """),
                {"pr_id": pr_id},
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def remove_reviewer(self, pr_id: str, user_id: str,
                        tx: Optional[Transaction] = None) -> None:
        with self._conn(tx, "remove reviewer") as conn:
            conn.execute(
                text("DELETE FROM review_assignments WHERE pr_id = :pr_id AND user_id = :user_id"),
                {"pr_id": pr_id, "user_id": user_id},
            )

    def add_reviewers(self, pr_id: str, user_ids: Sequence[str],
                      tx: Optional[Transaction] = None) -> None:
        if not user_ids:
            return
        with self._conn(tx, "add reviewers") as conn:
            try:
                conn.execute(
                    text("INSERT INTO review_assignments (pr_id, user_id) VALUES (:pr_id, :user_id)"),
                    [{"pr_id": pr_id, "user_id": uid} for uid in user_ids],
                )
            except IntegrityError as exc:
                raise ValidationError(f"reviewer already assigned to PR '{pr_id}'") from exc

    def list_open_prs_by_reviewer(self, user_id: str,
                                  tx: Optional[Transaction] = None) -> List[PullRequest]:
        return self._prs_by_reviewer(user_id, "AND pr.status = 'OPEN'", tx)

    def list_prs_by_reviewer(self, user_id: str,
                             tx: Optional[Transaction] = None) -> List[PullRequest]:
        return self._prs_by_reviewer(user_id, "", tx)

    def list_open_prs_without_reviewers(self,
                                        tx: Optional[Transaction] = None) -> List[PullRequest]:
        with self._conn(tx, "list unreviewed PRs") as conn:
            rows = conn.execute(text("""
                SELECT pr.pr_id, pr.pr_name, pr.author_id, pr.status, pr.created_at, pr.merged_at
                FROM pull_requests pr
                LEFT JOIN review_assignments ra ON ra.pr_id = pr.pr_id
                WHERE pr.status = 'OPEN' AND ra.pr_id IS NULL
                ORDER BY pr.created_at, pr.pr_id
            """)).fetchall()
        return [_row_to_pr(r) for r in rows]

    # ── Stats ──────────────────────────────────────────────────────────

    def review_stats(self, tx: Optional[Transaction] = None) -> List[ReviewStat]:
        with self._conn(tx, "review stats") as conn:
            rows = conn.execute(text("""
                SELECT user_id, COUNT(*) AS review_count
                FROM review_assignments
                GROUP BY user_id
                ORDER BY review_count DESC, user_id
            """)).fetchall()
        return [ReviewStat(user_id=r[0], review_count=r[1]) for r in rows]

    def count_reviews_for_team(self, team_id: int, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        with self._conn(tx, "count team reviews") as conn:
            return conn.execute(
                text("""
                    SELECT COUNT(pr.pr_id)
                    FROM pull_requests pr
                    JOIN review_assignments ra ON ra.pr_id = pr.pr_id
                    JOIN users u ON u.user_id = ra.user_id
                    WHERE u.team_id = :team_id AND pr.status = :status
                """),
                {"team_id": team_id, "status": status.value},
            ).scalar() or 0

    def count_reviews_for_user(self, user_id: str, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        with self._conn(tx, "count user reviews") as conn:
            return conn.execute(
                text("""
                    SELECT COUNT(pr.pr_id)
                    FROM pull_requests pr
                    JOIN review_assignments ra ON ra.pr_id = pr.pr_id
                    WHERE ra.user_id = :user_id AND pr.status = :status
                """),
                {"user_id": user_id, "status": status.value},
            ).scalar() or 0

    # ── Lifecycle ──────────────────────────────────────────────────────

    def verify_connection(self):
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self):
        self._engine.dispose()

    # ── Private ────────────────────────────────────────────────────────

    @contextmanager
    def _conn(self, tx: Optional[Transaction], action: str) -> Iterator[Connection]:
        """Yield the transaction's connection, or a short-lived autocommitting one."""
        try:
            if tx is not None:
                tx.ensure_usable()
                yield tx.connection
            else:
                with self._engine.begin() as conn:
                    yield conn
        except DomainError:
            raise
        except SQLAlchemyError as exc:
            if tx is not None and tx.deadline is not None:
                # a statement_timeout cancellation surfaces here
                tx.deadline.check()
            logger.error("Storage failure during %s: %s", action, exc)
            raise InternalError(f"storage failure during {action}") from exc

    def _fetch_team(self, conn: Connection, team_id: int):
        return conn.execute(
            text(f"SELECT {TEAM_COLS} FROM teams WHERE team_id = :id"), {"id": team_id},
        ).fetchone()

    def _fetch_user(self, conn: Connection, user_id: str):
        return conn.execute(
            text(f"{_USER_SELECT} WHERE u.user_id = :id"), {"id": user_id},
        ).fetchone()

    def _update_user_column(self, user_id: str, column: str, value,
                            tx: Optional[Transaction]) -> User:
        with self._conn(tx, f"update user {column}") as conn:
            try:
                result = conn.execute(
                    text(f"UPDATE users SET {column} = :value WHERE user_id = :id"),
                    {"value": value, "id": user_id},
                )
            except IntegrityError as exc:
                raise NotFoundError(f"team with id '{value}' not found") from exc
            if result.rowcount == 0:
                raise NotFoundError(f"user '{user_id}' not found")
            row = self._fetch_user(conn, user_id)
        return _row_to_user(row)

    def _prs_by_reviewer(self, user_id: str, status_filter: str,
                         tx: Optional[Transaction]) -> List[PullRequest]:
        with self._conn(tx, "list PRs by reviewer") as conn:
            rows = conn.execute(
                text(f"""
                    SELECT pr.pr_id, pr.pr_name, pr.author_id, pr.status,
                           pr.created_at, pr.merged_at
                    FROM pull_requests pr
                    JOIN review_assignments ra ON ra.pr_id = pr.pr_id
                    WHERE ra.user_id = :user_id {status_filter}
                    ORDER BY pr.pr_id
                """),
                {"user_id": user_id},
            ).fetchall()
        return [_row_to_pr(r) for r in rows]
