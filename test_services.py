# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Assignment engine and lifecycle services — Unit Tests
=====================================================
Run:  pytest test_services.py -v
All tests run against InMemoryRepository with a seeded sampler.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from conftest import members
from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import (
    DeadlineExceededError,
    DomainError,
    InternalError,
    NoCandidateError,
    NotAssignedError,
    NotFoundError,
    PRExistsError,
    PRMergedError,
    TeamExistsError,
    ValidationError,
)
from pr_reviewer.models.domain import MAX_REVIEWERS, PRStatus
from pr_reviewer.services.common import unit_of_work
from pr_reviewer.services.sampling import CandidateSampler


# ═══════════════════════════════════════════════════════════════════════════
# CANDIDATE SAMPLER
# ═══════════════════════════════════════════════════════════════════════════
class TestCandidateSampler:
    def test_same_seed_same_pick(self):
        pool = list("ABCDEFGH")
        assert CandidateSampler(3).pick(pool, 2) == CandidateSampler(3).pick(pool, 2)

    def test_pick_is_subset_without_duplicates(self):
        pool = list("ABCDEFGH")
        chosen = CandidateSampler(1).pick(pool, 3)
        assert len(chosen) == 3
        assert len(set(chosen)) == 3
        assert set(chosen) <= set(pool)

    def test_small_pool_returns_everyone(self):
        assert sorted(CandidateSampler(1).pick(["B", "A"], 5)) == ["A", "B"]

    def test_non_positive_limit_or_empty_pool(self):
        sampler = CandidateSampler(1)
        assert sampler.pick(["A"], 0) == []
        assert sampler.pick(["A"], -1) == []
        assert sampler.pick([], 2) == []


# ═══════════════════════════════════════════════════════════════════════════
# CREATE PR
# ═══════════════════════════════════════════════════════════════════════════
class TestCreatePR:
    @pytest.mark.parametrize("others", [0, 1, 2, 3, 5])
    def test_assigns_min_of_pool_and_cap(self, team_service, pr_service, others):
        ids = ["A"] + [f"U{i}" for i in range(others)]
        team_service.create_team("squad", members(*ids))

        pr = pr_service.create_pr("feature", "A")

        assert len(pr.reviewers) == min(others, MAX_REVIEWERS)
        assert "A" not in pr.reviewer_ids
        assert set(pr.reviewer_ids) <= set(ids[1:])

    def test_backend_squad_scenario(self, team_service, pr_service):
        team_service.create_team("backend-squad", members("A", "B", "C"))

        pr = pr_service.create_pr("Add search", "A", pr_id="pr-1")
        assert pr.status == PRStatus.OPEN
        assert sorted(pr.reviewer_ids) == ["B", "C"]

        merged = pr_service.merge_pr("pr-1")
        assert merged.status == PRStatus.MERGED

        with pytest.raises(PRMergedError):
            pr_service.reassign_reviewer("pr-1", "C")
        assert sorted(pr_service.get_pr("pr-1").reviewer_ids) == ["B", "C"]

    def test_solo_squad_gets_no_reviewers(self, team_service, pr_service):
        team_service.create_team("solo-squad", members("F"))
        pr = pr_service.create_pr("lonely change", "F")
        assert pr.reviewers == ()
        assert pr.is_open

    def test_inactive_members_are_never_picked(self, team_service, pr_service):
        team_service.create_team("squad", [
            {"user_id": "A", "username": "alice"},
            {"user_id": "B", "username": "bob", "is_active": False},
            {"user_id": "C", "username": "carol"},
        ])
        assert pr_service.create_pr("x", "A").reviewer_ids == ["C"]

    def test_reviewers_come_from_authors_team_only(self, team_service, pr_service):
        team_service.create_team("one", members("A", "B"))
        team_service.create_team("two", members("X", "Y", "Z"))
        assert pr_service.create_pr("x", "A").reviewer_ids == ["B"]

    def test_generates_id_when_missing(self, team_service, pr_service):
        team_service.create_team("squad", members("A"))
        pr = pr_service.create_pr("x", "A")
        assert pr.pull_request_id
        assert pr.created_at is not None

    @pytest.mark.parametrize("name,author", [("", "A"), ("  ", "A"), ("x", "")])
    def test_empty_fields_rejected_before_any_write(self, team_service, pr_service, name, author):
        team_service.create_team("squad", members("A"))
        with pytest.raises(ValidationError):
            pr_service.create_pr(name, author)
        assert pr_service.list_open_without_reviewers() == []

    def test_unknown_author(self, pr_service):
        with pytest.raises(NotFoundError):
            pr_service.create_pr("x", "ghost")

    def test_duplicate_id(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        with pytest.raises(PRExistsError):
            pr_service.create_pr("y", "A", pr_id="pr-1")
        assert pr_service.get_pr("pr-1").name == "x"

    def test_failed_reviewer_write_rolls_back_pr(self, repo, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        with patch.object(repo, "add_reviewers", side_effect=InternalError("disk full")):
            with pytest.raises(InternalError):
                pr_service.create_pr("x", "A", pr_id="pr-1")
        with pytest.raises(NotFoundError):
            pr_service.get_pr("pr-1")


# ═══════════════════════════════════════════════════════════════════════════
# MERGE
# ═══════════════════════════════════════════════════════════════════════════
class TestMergePR:
    def test_merge_sets_timestamp_and_keeps_reviewers(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        pr_service.create_pr("x", "A", pr_id="pr-1")

        merged = pr_service.merge_pr("pr-1")

        assert merged.status == PRStatus.MERGED
        assert merged.merged_at is not None
        assert merged.reviewer_ids == ["B"]

    def test_second_merge_fails(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        first = pr_service.merge_pr("pr-1")
        with pytest.raises(PRMergedError):
            pr_service.merge_pr("pr-1")
        assert pr_service.get_pr("pr-1").merged_at == first.merged_at

    def test_merge_unknown(self, pr_service):
        with pytest.raises(NotFoundError):
            pr_service.merge_pr("nope")

    def test_merged_pr_rejects_assignment(self, team_service, user_service, pr_service):
        team_service.create_team("squad", members("A"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        user_service.add_user("bob", "squad", user_id="B")
        pr_service.merge_pr("pr-1")
        with pytest.raises(PRMergedError):
            pr_service.assign_reviewer("pr-1", "B")
        assert pr_service.get_pr("pr-1").reviewers == ()


# ═══════════════════════════════════════════════════════════════════════════
# ASSIGN REVIEWER
# ═══════════════════════════════════════════════════════════════════════════
class TestAssignReviewer:
    @pytest.fixture(autouse=True)
    def solo_pr(self, team_service, user_service, pr_service):
        team_service.create_team("squad", members("A"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        for uid in ("B", "C", "D"):
            user_service.add_user(f"user-{uid}", "squad", user_id=uid)

    def test_assigns_user(self, pr_service):
        pr = pr_service.assign_reviewer("pr-1", "B")
        assert pr.reviewer_ids == ["B"]
        assert pr_service.get_pr("pr-1").reviewer_ids == ["B"]

    def test_already_assigned_is_noop(self, pr_service):
        pr_service.assign_reviewer("pr-1", "B")
        pr = pr_service.assign_reviewer("pr-1", "B")
        assert pr.reviewer_ids == ["B"]

    def test_author_rejected(self, pr_service):
        with pytest.raises(ValidationError):
            pr_service.assign_reviewer("pr-1", "A")

    def test_inactive_user_rejected(self, user_service, pr_service):
        user_service.set_is_active("B", False)
        with pytest.raises(ValidationError):
            pr_service.assign_reviewer("pr-1", "B")

    def test_cap_enforced(self, pr_service):
        pr_service.assign_reviewer("pr-1", "B")
        pr_service.assign_reviewer("pr-1", "C")
        with pytest.raises(ValidationError):
            pr_service.assign_reviewer("pr-1", "D")
        assert sorted(pr_service.get_pr("pr-1").reviewer_ids) == ["B", "C"]

    def test_unknown_user(self, pr_service):
        with pytest.raises(NotFoundError):
            pr_service.assign_reviewer("pr-1", "ghost")

    def test_concurrent_assignments_never_exceed_cap(self, user_service, pr_service):
        for uid in ("E", "F", "G"):
            user_service.add_user(f"user-{uid}", "squad", user_id=uid)
        barrier = threading.Barrier(6)

        def attempt(uid):
            barrier.wait()
            try:
                pr_service.assign_reviewer("pr-1", uid)
                return True
            except ValidationError:
                return False

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(attempt, ["B", "C", "D", "E", "F", "G"]))

        assert results.count(True) == MAX_REVIEWERS
        assert len(pr_service.get_pr("pr-1").reviewers) == MAX_REVIEWERS


# ═══════════════════════════════════════════════════════════════════════════
# REASSIGN
# ═══════════════════════════════════════════════════════════════════════════
class TestReassign:
    def test_replaces_with_remaining_candidate(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B", "C", "D"))
        pr = pr_service.create_pr("x", "A", pr_id="pr-1")
        old = pr.reviewer_ids[0]
        untouched = pr.reviewer_ids[1]
        spare = ({"B", "C", "D"} - set(pr.reviewer_ids)).pop()

        updated, new_id = pr_service.reassign_reviewer("pr-1", old)

        assert new_id == spare
        assert sorted(updated.reviewer_ids) == sorted([untouched, spare])

    def test_not_assigned_leaves_set_unchanged(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B", "C", "D"))
        pr = pr_service.create_pr("x", "A", pr_id="pr-1")
        outsider = ({"B", "C", "D"} - set(pr.reviewer_ids)).pop()

        with pytest.raises(NotAssignedError):
            pr_service.reassign_reviewer("pr-1", outsider)
        assert sorted(pr_service.get_pr("pr-1").reviewer_ids) == sorted(pr.reviewer_ids)

    def test_removed_user_never_chosen_again(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B", "C"))
        pr_service.create_pr("x", "A", pr_id="pr-1")

        with pytest.raises(NoCandidateError) as exc_info:
            pr_service.reassign_reviewer("pr-1", "B")

        assert exc_info.value.pr_id == "pr-1"
        assert exc_info.value.removed_user_id == "B"
        assert pr_service.get_pr("pr-1").reviewer_ids == ["C"]

    def test_no_candidate_after_deactivation(self, team_service, user_service, pr_service):
        team_service.create_team("squad", members("A", "B", "C"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        user_service.set_is_active("B", False)
        assert pr_service.get_pr("pr-1").reviewer_ids == ["C"]

        with pytest.raises(NoCandidateError):
            pr_service.reassign_reviewer("pr-1", "C")
        assert pr_service.get_pr("pr-1").reviewers == ()

    def test_unknown_pr(self, pr_service):
        with pytest.raises(NotFoundError):
            pr_service.reassign_reviewer("nope", "B")


# ═══════════════════════════════════════════════════════════════════════════
# DEACTIVATION CASCADES
# ═══════════════════════════════════════════════════════════════════════════
class TestUserDeactivation:
    def test_removed_from_every_open_pr(self, team_service, pr_service, user_service):
        team_service.create_team("squad", members("A", "B", "C"))
        pr_service.create_pr("one", "A", pr_id="pr-1")
        pr_service.create_pr("two", "A", pr_id="pr-2")
        pr_service.create_pr("three", "A", pr_id="pr-3")
        pr_service.merge_pr("pr-3")

        user = user_service.set_is_active("B", False)

        assert user.is_active is False
        assert pr_service.get_pr("pr-1").reviewer_ids == ["C"]
        assert pr_service.get_pr("pr-2").reviewer_ids == ["C"]
        # merged reviewer sets are frozen
        assert sorted(pr_service.get_pr("pr-3").reviewer_ids) == ["B", "C"]

    def test_emptied_pr_is_topped_up(self, team_service, user_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        user_service.add_user("carol", "squad", user_id="C")
        user_service.add_user("dave", "squad", user_id="D")

        user_service.set_is_active("B", False)

        assert sorted(pr_service.get_pr("pr-1").reviewer_ids) == ["C", "D"]

    def test_no_candidates_leaves_pr_unreviewed(self, team_service, user_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        pr_service.create_pr("x", "A", pr_id="pr-1")

        user_service.set_is_active("B", False)

        assert pr_service.get_pr("pr-1").reviewers == ()
        assert [p.pull_request_id for p in pr_service.list_open_without_reviewers()] == ["pr-1"]

    def test_deactivating_twice_is_noop(self, team_service, user_service):
        team_service.create_team("squad", members("A"))
        user_service.set_is_active("A", False)
        assert user_service.set_is_active("A", False).is_active is False


class TestTeamDeactivation:
    def test_counts_and_member_state(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B", "C"))
        pr_service.create_pr("x", "A", pr_id="pr-1")

        deactivated, reassigned = team_service.deactivate_team("squad")

        assert (deactivated, reassigned) == (3, 0)
        team = team_service.get_team("squad")
        assert team.is_active is False
        assert all(not m.is_active for m in team.members)
        # author's team is inactive: left without reviewers, not an error
        assert pr_service.get_pr("pr-1").reviewers == ()

    def test_reviewer_from_other_team_is_replaced(self, team_service, user_service, pr_service):
        team_service.create_team("core", members("A", "B"))
        team_service.create_team("infra", members("X"))
        pr_service.create_pr("one", "A", pr_id="pr-1")
        pr_service.create_pr("two", "A", pr_id="pr-2")
        user_service.move_user_to_team("B", "infra")
        user_service.add_user("carol", "core", user_id="C")

        deactivated, reassigned = team_service.deactivate_team("infra")

        assert deactivated == 2
        assert reassigned == 2
        assert pr_service.get_pr("pr-1").reviewer_ids == ["C"]
        assert pr_service.get_pr("pr-2").reviewer_ids == ["C"]

    def test_second_deactivation_changes_nothing(self, team_service):
        team_service.create_team("squad", members("A", "B"))
        team_service.deactivate_team("squad")
        assert team_service.deactivate_team("squad") == (0, 0)

    def test_unknown_team(self, team_service):
        with pytest.raises(NotFoundError):
            team_service.deactivate_team("ghosts")


# ═══════════════════════════════════════════════════════════════════════════
# TEAMS & USERS
# ═══════════════════════════════════════════════════════════════════════════
class TestTeamService:
    def test_create_and_get(self, team_service):
        team_service.create_team("squad", [{"username": "alice"}, {"username": "bob"}])
        team = team_service.get_team("squad")
        assert team.is_active
        assert [m.username for m in team.members] == ["alice", "bob"]
        assert all(m.user_id for m in team.members)

    def test_duplicate_name(self, team_service):
        team_service.create_team("squad")
        with pytest.raises(TeamExistsError):
            team_service.create_team("squad")

    def test_duplicate_member_rolls_back_team(self, team_service):
        with pytest.raises(ValidationError):
            team_service.create_team("squad", [
                {"user_id": "A", "username": "alice"},
                {"user_id": "B", "username": "alice"},
            ])
        with pytest.raises(NotFoundError):
            team_service.get_team("squad")

    def test_empty_name(self, team_service):
        with pytest.raises(ValidationError):
            team_service.create_team("")

    def test_rename(self, team_service):
        team_service.create_team("old", members("A"))
        assert team_service.rename_team("old", "new").team_name == "new"
        assert team_service.get_team("new").members[0].team_name == "new"
        with pytest.raises(NotFoundError):
            team_service.get_team("old")

    def test_rename_to_taken_name(self, team_service):
        team_service.create_team("one")
        team_service.create_team("two")
        with pytest.raises(TeamExistsError):
            team_service.rename_team("one", "two")


class TestUserService:
    def test_add_user(self, team_service, user_service):
        team_service.create_team("squad")
        user = user_service.add_user("alice", "squad", user_id="A")
        assert user.team_name == "squad"
        assert user_service.get_user("A").username == "alice"

    def test_add_user_to_inactive_team(self, team_service, user_service):
        team_service.create_team("squad")
        team_service.deactivate_team("squad")
        with pytest.raises(ValidationError):
            user_service.add_user("alice", "squad")

    def test_get_unknown(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.get_user("ghost")

    def test_move_keeps_reviews(self, team_service, user_service, pr_service):
        team_service.create_team("core", members("A", "B"))
        team_service.create_team("infra")
        pr_service.create_pr("x", "A", pr_id="pr-1")

        moved = user_service.move_user_to_team("B", "infra")

        assert moved.team_name == "infra"
        assert pr_service.get_pr("pr-1").reviewer_ids == ["B"]

    def test_move_inactive_user(self, team_service, user_service):
        team_service.create_team("core", members("A"))
        team_service.create_team("infra")
        user_service.set_is_active("A", False)
        with pytest.raises(ValidationError):
            user_service.move_user_to_team("A", "infra")

    def test_move_to_inactive_team(self, team_service, user_service):
        team_service.create_team("core", members("A"))
        team_service.create_team("infra")
        team_service.deactivate_team("infra")
        with pytest.raises(ValidationError):
            user_service.move_user_to_team("A", "infra")

    def test_reactivation_needs_active_team(self, team_service, user_service):
        team_service.create_team("core", members("A"))
        team_service.deactivate_team("core")
        with pytest.raises(ValidationError):
            user_service.set_is_active("A", True)

    def test_reactivate(self, team_service, user_service):
        team_service.create_team("core", members("A"))
        user_service.set_is_active("A", False)
        assert user_service.set_is_active("A", True).is_active is True

    def test_update_renames_and_moves(self, team_service, user_service):
        team_service.create_team("core", members("A"))
        team_service.create_team("infra")
        user = user_service.update_user("A", username="alice", team_name="infra")
        assert (user.username, user.team_name) == ("alice", "infra")

    def test_update_deactivation_cascades(self, team_service, user_service, pr_service):
        team_service.create_team("core", members("A", "B", "C"))
        pr_service.create_pr("x", "A", pr_id="pr-1")
        user_service.update_user("B", is_active=False)
        assert pr_service.get_pr("pr-1").reviewer_ids == ["C"]

    def test_update_username_taken(self, team_service, user_service):
        team_service.create_team("core", members("A", "B"))
        with pytest.raises(ValidationError):
            user_service.update_user("A", username="user-b")


# ═══════════════════════════════════════════════════════════════════════════
# STATS
# ═══════════════════════════════════════════════════════════════════════════
class TestStats:
    def test_counts(self, team_service, pr_service, stats_service):
        team_service.create_team("core", members("A", "B", "C"))
        pr_service.create_pr("one", "A", pr_id="pr-1")
        pr_service.create_pr("two", "A", pr_id="pr-2")
        pr_service.merge_pr("pr-2")

        stats = stats_service.review_stats()

        assert [(s.user_id, s.review_count) for s in stats] == [("B", 2), ("C", 2)]
        assert stats_service.open_review_count_for_team("core") == 2
        assert stats_service.merged_review_count_for_team("core") == 2
        assert stats_service.open_review_count_for_user("B") == 1
        assert stats_service.merged_review_count_for_user("B") == 1

    def test_unknown_keys(self, stats_service):
        with pytest.raises(NotFoundError):
            stats_service.open_review_count_for_team("ghosts")
        with pytest.raises(NotFoundError):
            stats_service.merged_review_count_for_user("ghost")

    def test_reviews_for_user(self, team_service, pr_service):
        team_service.create_team("core", members("A", "B"))
        pr_service.create_pr("one", "A", pr_id="pr-1")
        pr_service.create_pr("two", "A", pr_id="pr-2")
        pr_service.merge_pr("pr-1")
        prs = pr_service.list_reviews_for_user("B")
        assert [(p.pull_request_id, p.status) for p in prs] == [
            ("pr-1", PRStatus.MERGED), ("pr-2", PRStatus.OPEN),
        ]


# ═══════════════════════════════════════════════════════════════════════════
# UNIT OF WORK & DEADLINES
# ═══════════════════════════════════════════════════════════════════════════
class TestUnitOfWork:
    def test_commits_on_success(self):
        transactor = MagicMock()
        with unit_of_work(transactor) as tx:
            assert tx is transactor.begin.return_value
        transactor.commit.assert_called_once_with(tx)
        transactor.rollback.assert_not_called()

    def test_rollback_failure_does_not_mask_error(self):
        transactor = MagicMock()
        transactor.rollback.side_effect = RuntimeError("connection gone")
        with pytest.raises(NotFoundError):
            with unit_of_work(transactor):
                raise NotFoundError("missing")
        transactor.commit.assert_not_called()

    def test_failed_commit_rolls_back(self):
        transactor = MagicMock()
        transactor.commit.side_effect = InternalError("commit failed")
        with pytest.raises(InternalError):
            with unit_of_work(transactor):
                pass
        transactor.rollback.assert_called_once()

    def test_closed_transaction_is_unusable(self, repo):
        tx = repo.begin()
        repo.commit(tx)
        with pytest.raises(InternalError):
            repo.get_team_by_name("x", tx)


class TestDeadline:
    def test_expired_before_begin(self, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        with pytest.raises(DeadlineExceededError):
            pr_service.create_pr("x", "A", pr_id="pr-1", deadline=Deadline(timeout=0))
        with pytest.raises(NotFoundError):
            pr_service.get_pr("pr-1")

    def test_cancel_mid_transaction_rolls_back(self, repo, team_service, pr_service):
        team_service.create_team("squad", members("A", "B"))
        deadline = Deadline()
        original = repo.create_pr

        def create_then_cancel(pr, tx=None):
            created = original(pr, tx)
            deadline.cancel()
            return created

        with patch.object(repo, "create_pr", side_effect=create_then_cancel):
            with pytest.raises(DeadlineExceededError):
                pr_service.create_pr("x", "A", pr_id="pr-1", deadline=deadline)

        with pytest.raises(NotFoundError):
            pr_service.get_pr("pr-1")

    def test_deadline_error_is_domain_error(self):
        err = DeadlineExceededError()
        assert isinstance(err, DomainError)
        assert err.http_status == 504

    def test_remaining_and_cancel(self):
        assert Deadline().remaining() is None
        assert 0 < Deadline(timeout=30).remaining() <= 30

        deadline = Deadline(timeout=30)
        deadline.cancel()
        assert deadline.cancelled
        with pytest.raises(DeadlineExceededError):
            deadline.check()
