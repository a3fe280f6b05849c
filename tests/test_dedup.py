import asyncio
import hashlib

import pytest

from be.pipelines.dedup import (
    DuplicateCandidateError,
    DuplicateInFlightError,
    ExclusionLock,
    build_dedup_keys,
    compute_resume_hash,
    duplicate_from_match,
    find_existing_candidate,
)
from be.schemas import CandidateCreate

pytestmark = pytest.mark.unit


def test_resume_hash_is_sha256_hex_of_exact_bytes():
    data = b"%PDF-1.4 hello"
    assert compute_resume_hash(data) == hashlib.sha256(data).hexdigest()
    assert compute_resume_hash(data) != compute_resume_hash(data + b" ")
    assert len(compute_resume_hash(b"")) == 64


def test_dedup_keys_sorted_and_skip_missing():
    keys = build_dedup_keys("a@x.com", None, "abc")
    assert keys == ["email:a@x.com", "hash:abc"]
    assert build_dedup_keys(None, None, None) == []
    assert build_dedup_keys("a@x.com", "+15551234567") == ["email:a@x.com", "phone:+15551234567"]


def test_lock_is_all_or_nothing():
    lock = ExclusionLock()
    lock.try_acquire_all(["email:a@x.com"])

    with pytest.raises(DuplicateInFlightError) as exc_info:
        lock.try_acquire_all(["phone:+1", "email:a@x.com", "hash:h"])

    assert exc_info.value.key == "email:a@x.com"
    assert exc_info.value.match_by == "email"
    # Nothing from the failed attempt stays held
    assert not lock.is_held("phone:+1")
    assert not lock.is_held("hash:h")
    assert lock.held_count == 1


def test_lock_with_no_keys_never_conflicts():
    lock = ExclusionLock()
    with lock.hold([]):
        with lock.hold([]):
            assert lock.held_count == 0


def test_hold_releases_on_error():
    lock = ExclusionLock()

    with pytest.raises(RuntimeError):
        with lock.hold(["hash:h"]):
            assert lock.is_held("hash:h")
            raise RuntimeError("boom")

    assert lock.held_count == 0
    with lock.hold(["hash:h"]):
        pass


def test_in_flight_error_is_a_duplicate_without_candidate():
    error = DuplicateInFlightError("hash:abc")
    assert isinstance(error, DuplicateCandidateError)
    assert error.candidate_id is None
    assert str(error) == "Duplicate candidate is already being processed."


def test_run_exclusive_releases_on_cancellation():
    lock = ExclusionLock()

    async def scenario():
        task = asyncio.create_task(lock.run_exclusive(["email:a@x.com"], lambda: asyncio.sleep(10)))
        await asyncio.sleep(0)
        assert lock.is_held("email:a@x.com")

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return lock.held_count

    assert asyncio.run(scenario()) == 0


def test_concurrent_claims_on_shared_key_admit_one():
    lock = ExclusionLock()
    outcomes = []

    async def attempt(keys):
        try:
            await lock.run_exclusive(keys, lambda: asyncio.sleep(0.01))
        except DuplicateInFlightError:
            outcomes.append("rejected")
        else:
            outcomes.append("ok")

    async def scenario():
        await asyncio.gather(
            attempt(["email:a@x.com", "hash:1"]),
            attempt(["hash:2", "phone:+1"]),
            attempt(["email:a@x.com", "phone:+2"]),
        )

    asyncio.run(scenario())
    assert sorted(outcomes) == ["ok", "ok", "rejected"]
    assert lock.held_count == 0


def test_finder_checks_email_then_phone_then_resume(store):
    async def scenario():
        by_phone = await store.insert(CandidateCreate(phone="+15551234567"))
        by_email = await store.insert(CandidateCreate(email="a@x.com"))
        by_resume = await store.insert(CandidateCreate(resume_url="http://f/r.pdf"))

        both = await find_existing_candidate(
            store, email="A@X.com", phone="+15551234567", resume_url="http://f/r.pdf"
        )
        phone_only = await find_existing_candidate(store, phone="+15551234567", resume_url="http://f/r.pdf")
        resume_only = await find_existing_candidate(store, resume_url="http://f/r.pdf")
        nothing = await find_existing_candidate(store, email="b@x.com")
        return by_phone, by_email, by_resume, both, phone_only, resume_only, nothing

    by_phone, by_email, by_resume, both, phone_only, resume_only, nothing = asyncio.run(scenario())

    assert (both.candidate.id, both.match_by) == (by_email.id, "email")
    assert (phone_only.candidate.id, phone_only.match_by) == (by_phone.id, "phone")
    assert (resume_only.candidate.id, resume_only.match_by) == (by_resume.id, "resume")
    assert nothing is None


def test_duplicate_from_unknown_match_reports_constraint():
    error = duplicate_from_match(None)
    assert error.match_by == "constraint"
    assert error.candidate_id is None
    assert "constraint" in str(error)


def test_in_flight_error_carries_attempt_identity():
    lock = ExclusionLock()
    lock.try_acquire_all(["hash:h"])

    with pytest.raises(DuplicateInFlightError) as exc_info:
        with lock.hold(["hash:h", "phone:+15551234567"], phone="+15551234567", resume_url="http://f/h.pdf"):
            pass

    error = exc_info.value
    assert error.email is None
    assert error.phone == "+15551234567"
    assert error.resume_url == "http://f/h.pdf"
    assert not lock.is_held("phone:+15551234567")
