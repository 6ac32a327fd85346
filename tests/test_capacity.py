import uuid

import pytest
from sqlalchemy import update

from academy.core.exceptions import CapacityExceededError, NotFoundError
from academy.models import ReassignmentRequest, RequestStatus, Student
from academy.services.capacity_service import CapacityService, SeatUsage
from academy.services.registration_service import RegistrationService

from factories import registration_input, seed_student


async def test_seat_usage_counts_students_registrations_and_reassignments(db, academy):
    student = await seed_student(academy, saturday=academy.sat_afternoon)
    await RegistrationService(db).submit(registration_input(academy))
    db.add(ReassignmentRequest(
        student_id=student.id,
        from_session_id=academy.sat_afternoon.id,
        to_session_id=academy.sat_morning.id,
        status=RequestStatus.PENDING,
    ))
    await seed_student(academy)
    await db.commit()

    usage = await CapacityService(db).seat_usage(academy.sat_morning)

    assert usage.approved == 1
    assert usage.pending_registrations == 1
    assert usage.pending_reassignments == 1
    assert usage.available == -1
    assert usage.display_available == 0
    assert usage.is_full


async def test_approved_counts_follow_the_day_pointer(db, academy):
    # Saturday afternoon, Sunday morning
    await seed_student(academy, saturday=academy.sat_afternoon)
    service = CapacityService(db)

    assert await service.available_seats(academy.sat_morning.id) == 2
    assert await service.available_seats(academy.sat_afternoon.id) == 1
    assert await service.available_seats(academy.sun_morning.id) == 1
    assert await service.available_seats(academy.sun_afternoon.id) == 2


async def test_soft_deleted_students_hold_no_seat(db, academy):
    student = await seed_student(academy)
    await db.execute(update(Student).where(Student.id == student.id).values(is_deleted=True))
    await db.commit()

    assert await CapacityService(db).available_seats(academy.sat_morning.id) == 2


async def test_excluded_reassignment_is_not_counted(db, academy):
    student = await seed_student(academy, saturday=academy.sat_afternoon)
    request = ReassignmentRequest(
        student_id=student.id,
        from_session_id=academy.sat_afternoon.id,
        to_session_id=academy.sat_morning.id,
        status=RequestStatus.PENDING,
    )
    db.add(request)
    await db.commit()

    service = CapacityService(db)
    assert await service.available_seats(academy.sat_morning.id) == 1
    assert await service.available_seats(academy.sat_morning.id, exclude_reassignment_id=request.id) == 2


async def test_ensure_seat_rejects_a_full_session(db, academy):
    await seed_student(academy)
    await seed_student(academy)
    service = CapacityService(db)

    assert await service.is_full(academy.sat_morning.id)
    with pytest.raises(CapacityExceededError) as exc_info:
        await service.ensure_seat(academy.sat_morning)
    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "CAPACITY_EXCEEDED"

    usage = await service.ensure_seat(academy.sat_afternoon)
    assert usage.available == 2


async def test_lock_sessions_reports_unknown_ids(db, academy):
    service = CapacityService(db)
    locked = await service.lock_sessions([academy.sun_morning.id, academy.sat_morning.id])
    assert set(locked) == {academy.sun_morning.id, academy.sat_morning.id}

    with pytest.raises(NotFoundError):
        await service.lock_sessions([academy.sat_morning.id, uuid.uuid4()])


def test_display_value_is_clamped_but_check_value_is_signed():
    usage = SeatUsage(capacity=1, approved=2, pending_registrations=0, pending_reassignments=0)
    assert usage.available == -1
    assert usage.display_available == 0
    assert usage.is_full
