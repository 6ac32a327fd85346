import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from academy.core.exceptions import (
    AlreadyProcessedError, CapacityExceededError, ConflictError, ForbiddenError,
    NotFoundError, ValidationError,
)
from academy.models import ReassignmentRequest, RequestStatus, Session, Student
from academy.services.capacity_service import CapacityService
from academy.services.reassignment_service import FULL_CAPACITY_REASON, ReassignmentService
from academy.services.registration_service import RegistrationService

from conftest import RecordingNotifier
from factories import registration_input, run_with_retry, seed_course, seed_student, student_user


async def fetch(session_factory, model, id):
    async with session_factory() as session:
        return await session.get(model, id)


async def test_request_defaults_to_current_session_of_that_day(db, academy):
    student = await seed_student(academy)

    request = await ReassignmentService(db).request(
        student_user(student), academy.sat_afternoon.id, reason="  work shift  "
    )

    assert request.status == RequestStatus.PENDING
    assert request.from_session_id == academy.sat_morning.id
    assert request.to_session_id == academy.sat_afternoon.id
    assert request.reason == "work shift"


async def test_request_validates_target(db, academy):
    student = await seed_student(academy)
    other = await seed_course(academy.session_factory, name="Data Science")
    service = ReassignmentService(db)
    user = student_user(student)

    with pytest.raises(ValidationError):
        await service.request(user, academy.sat_morning.id)
    with pytest.raises(ValidationError):
        await service.request(user, other.sat_afternoon.id)
    with pytest.raises(ValidationError) as exc_info:
        await service.request(user, academy.sat_afternoon.id, from_session_id=academy.sun_morning.id)
    assert exc_info.value.message == "Sessions must be on the same day"
    with pytest.raises(NotFoundError):
        await service.request(user, uuid.uuid4())


async def test_request_needs_an_assignment_on_that_day(db, academy):
    student = await seed_student(academy, sunday=None)

    with pytest.raises(ValidationError):
        await ReassignmentService(db).request(student_user(student), academy.sun_afternoon.id)


async def test_only_one_pending_request_at_a_time(db, academy):
    student = await seed_student(academy)
    service = ReassignmentService(db)
    await service.request(student_user(student), academy.sat_afternoon.id)

    with pytest.raises(ConflictError):
        await service.request(student_user(student), academy.sun_afternoon.id)


async def test_request_limit_per_student(db, academy):
    student = await seed_student(academy)
    for _ in range(3):
        db.add(ReassignmentRequest(
            student_id=student.id,
            from_session_id=academy.sat_morning.id,
            to_session_id=academy.sat_afternoon.id,
            status=RequestStatus.DENIED,
        ))
    await db.commit()

    with pytest.raises(ValidationError):
        await ReassignmentService(db).request(student_user(student), academy.sat_afternoon.id)


async def test_request_into_full_session_is_rejected(db, academy):
    student = await seed_student(academy)
    await seed_student(academy, saturday=academy.sat_afternoon)
    await seed_student(academy, saturday=academy.sat_afternoon)

    with pytest.raises(CapacityExceededError):
        await ReassignmentService(db).request(student_user(student), academy.sat_afternoon.id)


async def test_pending_request_holds_a_seat(db, academy):
    student = await seed_student(academy)
    await seed_student(academy, saturday=academy.sat_afternoon)
    await ReassignmentService(db).request(student_user(student), academy.sat_afternoon.id)

    assert await CapacityService(db).is_full(academy.sat_afternoon.id)


async def test_approve_moves_the_student(db, academy):
    student = await seed_student(academy)
    # Target has one seat left; the request itself holds it
    await seed_student(academy, saturday=academy.sat_afternoon)
    notifier = RecordingNotifier()
    service = ReassignmentService(db, notifier)
    request = await service.request(student_user(student), academy.sat_afternoon.id)

    approved = await service.approve(request.id, academy.additional_user)

    assert approved.status == RequestStatus.APPROVED
    assert approved.reviewed_by_id == academy.additional.id
    moved = await fetch(academy.session_factory, Student, student.id)
    assert moved.saturday_session_id == academy.sat_afternoon.id
    assert moved.sunday_session_id == academy.sun_morning.id
    assert await CapacityService(db).available_seats(academy.sat_morning.id) == 2
    assert notifier.sent[0][1] == "reassignment_approved"

    with pytest.raises(AlreadyProcessedError):
        await service.approve(request.id, academy.additional_user)


async def test_approve_denies_when_seat_was_taken(db, academy):
    student = await seed_student(academy)
    await seed_student(academy, saturday=academy.sat_afternoon)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sat_afternoon.id)
    # Seat consumed outside the request flow
    await seed_student(academy, saturday=academy.sat_afternoon)

    with pytest.raises(ConflictError) as exc_info:
        await service.approve(request.id, academy.head_user)
    assert exc_info.value.code == "SEAT_TAKEN"

    stored = await fetch(academy.session_factory, ReassignmentRequest, request.id)
    assert stored.status == RequestStatus.DENIED
    assert stored.denial_reason == FULL_CAPACITY_REASON
    unchanged = await fetch(academy.session_factory, Student, student.id)
    assert unchanged.saturday_session_id == academy.sat_morning.id


async def test_deny_records_reason(db, academy):
    student = await seed_student(academy)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sun_afternoon.id)

    denied = await service.deny(request.id, academy.head_user, reason="Class is being merged")

    assert denied.status == RequestStatus.DENIED
    assert denied.denial_reason == "Class is being merged"
    with pytest.raises(AlreadyProcessedError):
        await service.deny(request.id, academy.head_user)


async def test_review_requires_staff_of_the_students_course(db, academy):
    other = await seed_course(academy.session_factory, name="Data Science")
    student = await seed_student(academy)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sat_afternoon.id)

    with pytest.raises(ForbiddenError):
        await service.approve(request.id, other.head_user)
    with pytest.raises(ForbiddenError):
        await service.deny(request.id, other.head_user)
    with pytest.raises(ForbiddenError):
        await service.approve(request.id, student_user(student))


async def test_cancel_own_pending_request(db, academy):
    student = await seed_student(academy)
    someone_else = await seed_student(academy)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sat_afternoon.id)

    with pytest.raises(NotFoundError):
        await service.cancel(request.id, student_user(someone_else))

    await service.cancel(request.id, student_user(student))
    assert await fetch(academy.session_factory, ReassignmentRequest, request.id) is None

    # The student may ask again after cancelling
    await service.request(student_user(student), academy.sat_afternoon.id)


async def test_cancel_processed_request_fails(db, academy):
    student = await seed_student(academy)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sat_afternoon.id)
    await service.deny(request.id, academy.head_user)

    with pytest.raises(AlreadyProcessedError):
        await service.cancel(request.id, student_user(student))


async def test_options_group_sessions_by_day(db, academy):
    student = await seed_student(academy)
    await seed_student(academy, saturday=academy.sat_afternoon, sunday=academy.sun_afternoon)
    await seed_student(academy, saturday=academy.sat_afternoon, sunday=academy.sun_afternoon)

    options = await ReassignmentService(db).options(student_user(student))

    saturday = {o["id"]: o for o in options["saturday"]}
    assert saturday[academy.sat_morning.id]["is_current"] is True
    assert saturday[academy.sat_morning.id]["available"] == 1
    assert saturday[academy.sat_afternoon.id]["is_full"] is True
    assert saturday[academy.sat_afternoon.id]["available"] == 0
    assert [o["id"] for o in options["sunday"]] == [academy.sun_morning.id, academy.sun_afternoon.id]


async def test_listings(db, academy):
    other = await seed_course(academy.session_factory, name="Data Science")
    student = await seed_student(academy)
    service = ReassignmentService(db)
    request = await service.request(student_user(student), academy.sat_afternoon.id)

    mine = await service.list_for_student(student_user(student))
    assert [r.id for r in mine] == [request.id]

    course_requests = await service.list_for_course(academy.additional_user, status=RequestStatus.PENDING)
    assert [r.id for r in course_requests] == [request.id]
    assert await service.list_for_course(other.head_user) == []
    assert await service.list_for_course(academy.head_user, status=RequestStatus.APPROVED) == []


# ----------------------------------------------------------------------
# concurrency
# ----------------------------------------------------------------------

async def outcomes(*calls):
    results = await asyncio.gather(*calls, return_exceptions=True)
    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    return successes, failures


async def test_simultaneous_requests_for_the_last_seat(session_factory, academy):
    await seed_student(academy, saturday=academy.sat_afternoon)
    first = await seed_student(academy)
    second = await seed_student(academy)

    def request_for(student):
        return lambda session: ReassignmentService(session).request(student_user(student), academy.sat_afternoon.id)

    successes, failures = await outcomes(
        run_with_retry(session_factory, request_for(first)),
        run_with_retry(session_factory, request_for(second)),
    )

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], CapacityExceededError)
    async with session_factory() as session:
        pending = await session.scalar(
            select(func.count(ReassignmentRequest.id)).where(ReassignmentRequest.status == RequestStatus.PENDING)
        )
        available = await CapacityService(session).available_seats(academy.sat_afternoon.id)
    assert pending == 1
    assert available == 0


async def test_request_and_registration_race_for_the_last_seat(session_factory, academy):
    await seed_student(academy, saturday=academy.sat_afternoon)
    student = await seed_student(academy)

    successes, failures = await outcomes(
        run_with_retry(
            session_factory,
            lambda session: ReassignmentService(session).request(student_user(student), academy.sat_afternoon.id),
        ),
        run_with_retry(
            session_factory,
            lambda session: RegistrationService(session).submit(
                registration_input(academy, saturday=academy.sat_afternoon, sunday=academy.sun_afternoon)
            ),
        ),
    )

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], CapacityExceededError)
    async with session_factory() as session:
        target = await session.get(Session, academy.sat_afternoon.id)
        usage = await CapacityService(session).seat_usage(target)
    assert usage.taken == usage.capacity == 2
    assert usage.pending_registrations + usage.pending_reassignments == 1


async def test_simultaneous_approvals_fill_the_last_seats_exactly(db, session_factory, academy):
    first = await seed_student(academy)
    second = await seed_student(academy)
    service = ReassignmentService(db)
    first_request = await service.request(student_user(first), academy.sat_afternoon.id)
    second_request = await service.request(student_user(second), academy.sat_afternoon.id)
    # Both seats are now held; a third student cannot ask for one
    third = await seed_student(academy)
    with pytest.raises(CapacityExceededError):
        await service.request(student_user(third), academy.sat_afternoon.id)

    def approve(request_id, staff):
        return lambda session: ReassignmentService(session).approve(request_id, staff)

    results = await asyncio.gather(
        run_with_retry(session_factory, approve(first_request.id, academy.head_user)),
        run_with_retry(session_factory, approve(second_request.id, academy.additional_user)),
    )

    assert [r.status for r in results] == [RequestStatus.APPROVED, RequestStatus.APPROVED]
    async with session_factory() as session:
        target = await session.get(Session, academy.sat_afternoon.id)
        usage = await CapacityService(session).seat_usage(target)
        moved = (await session.execute(
            select(Student.id).where(Student.saturday_session_id == academy.sat_afternoon.id)
        )).scalars().all()
    assert usage.approved == 2
    assert usage.pending_reassignments == 0
    assert usage.available == 0
    assert sorted(moved, key=str) == sorted([first.id, second.id], key=str)
