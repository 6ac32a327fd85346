"""create enrollment and attendance tables

Revision ID: 4f2a9c1d7e10
Revises:
Create Date: 2026-10-19 09:12:40.215733

"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f2a9c1d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

course_status = sa.Enum('ACTIVE', 'INACTIVE', 'COMPLETED', name='coursestatus')
teacher_role = sa.Enum('HEAD', 'ADDITIONAL', name='teacherrole')
week_day = sa.Enum('SATURDAY', 'SUNDAY', name='weekday')
registration_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'EXPIRED', name='registrationstatus')
attendance_status = sa.Enum('PRESENT', 'ABSENT', 'WRONG_SESSION', name='attendancestatus')
request_status = sa.Enum('PENDING', 'APPROVED', 'DENIED', name='requeststatus')


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def _base_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])
    op.create_index(f'ix_{table}_is_deleted', table, ['is_deleted'])


def upgrade() -> None:
    op.create_table(
        'courses',
        *_base_columns(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('status', course_status, nullable=False),
        sa.Column('head_teacher_id', _uuid(), nullable=True),
        sa.Column('end_date', sa.Date()),
        sa.UniqueConstraint('head_teacher_id', name='uq_courses_head_teacher_id'),
    )
    _base_indexes('courses')
    op.create_index('ix_courses_status', 'courses', ['status'])

    op.create_table(
        'teachers',
        *_base_columns(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('course_id', _uuid(), sa.ForeignKey('courses.id'), nullable=True),
        sa.Column('role', teacher_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    _base_indexes('teachers')
    op.create_index('ix_teachers_email', 'teachers', ['email'], unique=True)
    op.create_index('ix_teachers_course_id', 'teachers', ['course_id'])
    op.create_index(
        'uq_teachers_one_head_per_course', 'teachers', ['course_id'],
        unique=True,
        postgresql_where=sa.text("role = 'HEAD'"),
    )
    op.create_foreign_key(
        'fk_courses_head_teacher_id', 'courses', 'teachers', ['head_teacher_id'], ['id']
    )

    op.create_table(
        'classes',
        *_base_columns(),
        sa.Column('course_id', _uuid(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
    )
    _base_indexes('classes')
    op.create_index('ix_classes_course_id', 'classes', ['course_id'])

    op.create_table(
        'sessions',
        *_base_columns(),
        sa.Column('class_id', _uuid(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('day', week_day, nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
    )
    _base_indexes('sessions')
    op.create_index('ix_sessions_class_id', 'sessions', ['class_id'])
    op.create_index('ix_sessions_day', 'sessions', ['day'])

    op.create_table(
        'student_registrations',
        *_base_columns(),
        sa.Column('surname', sa.String(100), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100)),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(30)),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('course_id', _uuid(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('saturday_session_id', _uuid(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('sunday_session_id', _uuid(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('payment_receipt_url', sa.String(500), nullable=False),
        sa.Column('payment_receipt_no', sa.String(100), nullable=False),
        sa.Column('portrait_photo_url', sa.String(500)),
        sa.Column('status', registration_status, nullable=False),
        sa.Column('reviewed_by_id', _uuid(), sa.ForeignKey('teachers.id')),
        sa.Column('reviewed_at', sa.DateTime(timezone=True)),
        sa.Column('rejection_reason', sa.Text()),
    )
    _base_indexes('student_registrations')
    op.create_index('ix_student_registrations_email', 'student_registrations', ['email'], unique=True)
    op.create_index('ix_student_registrations_course_id', 'student_registrations', ['course_id'])
    op.create_index('ix_student_registrations_status', 'student_registrations', ['status'])
    op.create_index('ix_student_registrations_saturday_session_id', 'student_registrations', ['saturday_session_id'])
    op.create_index('ix_student_registrations_sunday_session_id', 'student_registrations', ['sunday_session_id'])

    op.create_table(
        'students',
        *_base_columns(),
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('student_number', sa.String(20), nullable=False),
        sa.Column('surname', sa.String(100), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100)),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(30)),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('class_id', _uuid(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('saturday_session_id', _uuid(), sa.ForeignKey('sessions.id')),
        sa.Column('sunday_session_id', _uuid(), sa.ForeignKey('sessions.id')),
        sa.Column('photo_url', sa.String(500)),
        sa.Column('photo_uploaded_at', sa.DateTime(timezone=True)),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
    )
    _base_indexes('students')
    op.create_index('ix_students_uuid', 'students', ['uuid'], unique=True)
    op.create_index('ix_students_student_number', 'students', ['student_number'], unique=True)
    op.create_index('ix_students_email', 'students', ['email'], unique=True)
    op.create_index('ix_students_class_id', 'students', ['class_id'])
    op.create_index('ix_students_saturday_session_id', 'students', ['saturday_session_id'])
    op.create_index('ix_students_sunday_session_id', 'students', ['sunday_session_id'])

    sequences = op.create_table(
        'student_number_sequences',
        *_base_columns(),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
    )
    _base_indexes('student_number_sequences')
    op.bulk_insert(sequences, [{'id': uuid.uuid4(), 'name': 'student_number', 'last_value': 0, 'is_deleted': False}])

    op.create_table(
        'attendances',
        *_base_columns(),
        sa.Column('student_id', _uuid(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('session_id', _uuid(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('scan_time', sa.DateTime(timezone=True)),
        sa.Column('marked_by_id', _uuid(), sa.ForeignKey('teachers.id')),
        sa.UniqueConstraint('student_id', 'session_id', 'date', name='uq_attendance_student_session_date'),
    )
    _base_indexes('attendances')
    op.create_index('ix_attendances_student_id', 'attendances', ['student_id'])
    op.create_index('ix_attendances_session_id', 'attendances', ['session_id'])
    op.create_index('ix_attendances_date', 'attendances', ['date'])

    op.create_table(
        'reassignment_requests',
        *_base_columns(),
        sa.Column('student_id', _uuid(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('from_session_id', _uuid(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('to_session_id', _uuid(), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('status', request_status, nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('reviewed_by_id', _uuid(), sa.ForeignKey('teachers.id')),
        sa.Column('reviewed_at', sa.DateTime(timezone=True)),
        sa.Column('denial_reason', sa.Text()),
    )
    _base_indexes('reassignment_requests')
    op.create_index('ix_reassignment_requests_student_id', 'reassignment_requests', ['student_id'])
    op.create_index('ix_reassignment_requests_to_session_id', 'reassignment_requests', ['to_session_id'])
    op.create_index('ix_reassignment_requests_status', 'reassignment_requests', ['status'])


def downgrade() -> None:
    op.drop_table('reassignment_requests')
    op.drop_table('attendances')
    op.drop_table('student_number_sequences')
    op.drop_table('students')
    op.drop_table('student_registrations')
    op.drop_table('sessions')
    op.drop_table('classes')
    op.drop_constraint('fk_courses_head_teacher_id', 'courses', type_='foreignkey')
    op.drop_table('teachers')
    op.drop_table('courses')

    for enum_type in (request_status, attendance_status, registration_status, week_day, teacher_role, course_status):
        enum_type.drop(op.get_bind(), checkfirst=True)
