"""create scheduling tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


room_kind_enum = sa.Enum("classroom", "examroom", name="room_kind")
booking_kind_enum = sa.Enum("class_session", "exam_sitting", name="booking_kind")
teaching_mode_enum = sa.Enum("physical", "online", name="teaching_mode")
failure_category_enum = sa.Enum("capacity", "conflict", "no_date", name="failure_category")
failure_status_enum = sa.Enum("pending", "resolved", name="failure_status")


def upgrade() -> None:
    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("kind", room_kind_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)
    op.create_index("ix_rooms_kind", "rooms", ["kind"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("day", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.UniqueConstraint("day", "start_time", "end_time", name="uq_time_slots_window"),
    )
    op.create_index("ix_time_slots_day", "time_slots", ["day"])

    op.create_table(
        "units",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("credit_hours", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_units_code", "units", ["code"], unique=True)

    op.create_table(
        "lecturers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
    )
    op.create_index("ix_lecturers_code", "lecturers", ["code"], unique=True)

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_code", sa.String(length=50), nullable=False),
        sa.Column("unit_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=True),
        sa.Column("semester_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="enrolled"),
        sa.UniqueConstraint("student_code", "unit_id", "semester_id", name="uq_enrollments_student_unit_semester"),
    )
    op.create_index("ix_enrollments_student_code", "enrollments", ["student_code"])
    op.create_index("ix_enrollments_unit_id", "enrollments", ["unit_id"])
    op.create_index("ix_enrollments_class_id", "enrollments", ["class_id"])
    op.create_index("ix_enrollments_group_id", "enrollments", ["group_id"])
    op.create_index("ix_enrollments_semester_id", "enrollments", ["semester_id"])

    op.create_table(
        "unit_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("unit_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=True),
        sa.Column("semester_id", sa.String(length=36), nullable=False),
        sa.Column("lecturer_code", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_unit_assignments_unit_id", "unit_assignments", ["unit_id"])
    op.create_index("ix_unit_assignments_class_id", "unit_assignments", ["class_id"])
    op.create_index("ix_unit_assignments_semester_id", "unit_assignments", ["semester_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("kind", booking_kind_enum, nullable=False),
        sa.Column("unit_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=True),
        sa.Column("cohort_class_ids", sa.JSON(), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=True),
        sa.Column("semester_id", sa.String(length=36), nullable=True),
        sa.Column("program_id", sa.String(length=36), nullable=True),
        sa.Column("school_id", sa.String(length=36), nullable=True),
        sa.Column("day", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("venue", sa.String(length=100), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("teaching_mode", teaching_mode_enum, nullable=True),
        sa.Column("headcount", sa.Integer(), nullable=False),
        sa.Column("lecturer", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bookings_unit_id", "bookings", ["unit_id"])
    op.create_index("ix_bookings_class_id", "bookings", ["class_id"])
    op.create_index("ix_bookings_group_id", "bookings", ["group_id"])
    op.create_index("ix_bookings_semester_id", "bookings", ["semester_id"])
    op.create_index("ix_bookings_lecturer", "bookings", ["lecturer"])
    op.create_index("ix_bookings_kind_day", "bookings", ["kind", "day"])
    op.create_index("ix_bookings_kind_date", "bookings", ["kind", "date"])
    op.create_index("ix_bookings_venue_day", "bookings", ["venue", "day"])

    op.create_table(
        "scheduling_failures",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("semester_id", sa.String(length=36), nullable=True),
        sa.Column("program_id", sa.String(length=36), nullable=True),
        sa.Column("unit_id", sa.String(length=36), nullable=False),
        sa.Column("unit_code", sa.String(length=50), nullable=False),
        sa.Column("class_ids", sa.JSON(), nullable=False),
        sa.Column("headcount", sa.Integer(), nullable=False),
        sa.Column("lecturer", sa.String(length=100), nullable=True),
        sa.Column("attempted_dates", sa.JSON(), nullable=False),
        sa.Column("category", failure_category_enum, nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("status", failure_status_enum, nullable=False, server_default="pending"),
        sa.Column("resolution_note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scheduling_failures_batch_id", "scheduling_failures", ["batch_id"])
    op.create_index("ix_scheduling_failures_semester_id", "scheduling_failures", ["semester_id"])
    op.create_index("ix_scheduling_failures_status", "scheduling_failures", ["status"])


def downgrade() -> None:
    op.drop_table("scheduling_failures")
    op.drop_table("bookings")
    op.drop_table("unit_assignments")
    op.drop_table("enrollments")
    op.drop_table("lecturers")
    op.drop_table("units")
    op.drop_table("time_slots")
    op.drop_table("rooms")
    bind = op.get_bind()
    for enum in (failure_status_enum, failure_category_enum, teaching_mode_enum, booking_kind_enum, room_kind_enum):
        enum.drop(bind, checkfirst=True)
