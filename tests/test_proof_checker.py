import logging

from business.proof_checker import (
    DECLARED_UNEVALUATED_CRITERIA,
    ELIGIBILITY_CRITERIA,
    evaluate_criteria,
    thread_matches,
)
from models.verification import AccountProfile, InboxThread, ProofFailureReason


def profile(followers=50, following=20):
    return AccountProfile(
        account_id="1",
        username="someone",
        follower_count=followers,
        following_count=following,
    )


def test_criteria_are_evaluated_in_order():
    assert [c.name for c in ELIGIBILITY_CRITERIA] == ["minFollowers", "minFollowing"]
    assert evaluate_criteria(profile(followers=3, following=1)) == [
        "minFollowers",
        "minFollowing",
    ]


def test_criteria_thresholds_are_inclusive():
    assert evaluate_criteria(profile(followers=10, following=5)) == []
    assert evaluate_criteria(profile(followers=9, following=5)) == ["minFollowers"]
    assert evaluate_criteria(profile(followers=10, following=4)) == ["minFollowing"]


def test_account_age_is_declared_but_not_evaluated():
    assert "accountAge" in DECLARED_UNEVALUATED_CRITERIA
    assert "accountAge" not in [c.name for c in ELIGIBILITY_CRITERIA]


def test_thread_match_rules():
    thread = InboxThread(thread_id="t", usernames=["Insta.User"], latest_message_text="AB12CD")
    assert thread_matches(thread, "insta.user", "AB12CD")
    assert not thread_matches(thread, "insta.user", "ab12cd")
    assert not thread_matches(thread, "other.user", "AB12CD")

    padded = InboxThread(thread_id="t", usernames=["insta.user"], latest_message_text=" AB12CD")
    assert not thread_matches(padded, "insta.user", "AB12CD")

    group = InboxThread(
        thread_id="t", usernames=["insta.user", "friend"], latest_message_text="AB12CD"
    )
    assert not thread_matches(group, "insta.user", "AB12CD")

    empty = InboxThread(thread_id="t", usernames=["insta.user"])
    assert not thread_matches(empty, "insta.user", "AB12CD")


def test_success_from_primary_inbox(checker, platform):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "AB12CD")

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.success
    assert outcome.reason is None
    assert not outcome.found_in_pending_inbox
    assert "list_pending_inbox_threads" not in platform.calls


def test_success_from_pending_inbox_accepts_the_thread(checker, platform):
    platform.add_account("insta.user")
    thread = platform.send_message("insta.user", "AB12CD", pending=True)

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.success
    assert outcome.found_in_pending_inbox
    assert platform.accepted_threads == [thread.thread_id]


def test_handle_match_is_case_insensitive(checker, platform):
    platform.add_account("Insta.User")
    platform.send_message("insta.user", "AB12CD")
    assert checker.verify("Insta.User", "AB12CD").success


def test_unknown_account(checker, platform):
    outcome = checker.verify("ghost", "AB12CD")
    assert not outcome.success
    assert outcome.reason == ProofFailureReason.ACCOUNT_NOT_FOUND


def test_too_few_followers_fails_before_any_inbox_scan(checker, platform):
    platform.add_account("insta.user", followers=3)
    platform.send_message("insta.user", "AB12CD")

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.reason == ProofFailureReason.CRITERIA_FAILED
    assert outcome.failed_criteria == ["minFollowers"]
    assert "is_followed_by" not in platform.calls
    assert "list_primary_inbox_threads" not in platform.calls
    assert "list_pending_inbox_threads" not in platform.calls


def test_not_following(checker, platform):
    platform.add_account("insta.user", follows=False)
    platform.send_message("insta.user", "AB12CD")

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.reason == ProofFailureReason.NOT_FOLLOWING
    assert "list_primary_inbox_threads" not in platform.calls


def test_token_is_case_sensitive(checker, platform):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "ab12cd")

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.reason == ProofFailureReason.TOKEN_NOT_FOUND
    assert platform.accepted_threads == []


def test_only_the_latest_message_counts(checker, platform):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "hello there")
    assert checker.verify("insta.user", "AB12CD").reason == ProofFailureReason.TOKEN_NOT_FOUND


def test_platform_errors_become_transient(checker, platform):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "AB12CD")
    platform.fail_on = "list_primary_inbox_threads"

    outcome = checker.verify("insta.user", "AB12CD")

    assert not outcome.success
    assert outcome.reason == ProofFailureReason.TRANSIENT_ERROR


def test_auth_failure_invalidates_session_and_retries_once(checker, platform, sessions):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "AB12CD")
    platform.auth_fail_on = "get_public_profile"

    outcome = checker.verify("insta.user", "AB12CD")

    # Both attempts hit the auth failure
    assert outcome.reason == ProofFailureReason.TRANSIENT_ERROR
    assert sessions.acquired == 2
    assert sessions.invalidated == 2


def test_auth_failure_recovers_after_relogin(checker, platform, sessions):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "AB12CD")
    platform.auth_fail_on = "resolve_account_by_handle"

    original_acquire = sessions.acquire

    def acquire():
        platform_ = original_acquire()
        if sessions.acquired > 1:
            platform_.auth_fail_on = None
        return platform_

    sessions.acquire = acquire

    outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.success
    assert sessions.invalidated == 1


def test_unexpected_platform_exception_becomes_transient(checker, platform, monkeypatch):
    platform.add_account("insta.user")
    platform.send_message("insta.user", "AB12CD")

    def broken_inbox():
        raise AssertionError("unexpected response status")

    monkeypatch.setattr(platform, "list_primary_inbox_threads", broken_inbox)

    outcome = checker.verify("insta.user", "AB12CD")

    assert not outcome.success
    assert outcome.reason == ProofFailureReason.TRANSIENT_ERROR


def test_rejected_pending_approval_is_logged(checker, platform, caplog):
    platform.add_account("insta.user")
    thread = platform.send_message("insta.user", "AB12CD", pending=True)
    platform.accept_result = False

    with caplog.at_level(logging.WARNING, logger="verification_bot"):
        outcome = checker.verify("insta.user", "AB12CD")

    assert outcome.success
    assert outcome.found_in_pending_inbox
    assert platform.accepted_threads == [thread.thread_id]
    assert any(
        "Could not accept the message request from insta.user" in record.getMessage()
        for record in caplog.records
    )
