"""Initial schema: accounts, events, teams, registrations, payments,
class memberships, contact messages and gallery.

Archive tables are not part of this migration; the retention jobs create
them on first use.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("PARTICIPANT", "COACH", "ADMIN", name="userrole")
registration_type = sa.Enum("INDIVIDUAL", "TEAM", name="registrationtype")
registration_status = sa.Enum(
    "PENDING", "CONFIRMED", "FAILED", "CANCELLED", name="registrationstatus"
)
payment_status = sa.Enum("PENDING", "SUCCESS", "FAILED", name="paymentstatus")
membership_status = sa.Enum("PENDING", "SUCCESS", "FAILED", name="membershipstatus")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("title", sa.String(255), nullable=False, index=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("start_date", sa.Date, nullable=False, index=True),
        sa.Column("start_time", sa.Time, nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("age_group", sa.String(50), nullable=True),
        sa.Column("is_team_event", sa.Boolean, nullable=False),
        sa.Column("price_per_person", sa.Numeric(10, 2), nullable=True),
        sa.Column("price_per_team", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_team_size", sa.Integer, nullable=True),
        sa.Column("live", sa.Boolean, nullable=False, index=True),
        sa.Column("hashtags", sa.JSON, nullable=True),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("is_featured", sa.Boolean, nullable=False),
        sa.Column("rules_and_guidelines", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_event_live_start", "events", ["live", "start_date"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("captain_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False, index=True),
        sa.Column("members", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "user_details",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False, index=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("age_group", sa.String(50), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("skate_category", sa.String(100), nullable=True),
        sa.Column("event_category", sa.String(100), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("coach_name", sa.String(255), nullable=True),
        sa.Column("club_name", sa.String(255), nullable=True),
        sa.Column("aadhaar_number", sa.String(20), nullable=True),
        sa.Column("aadhaar_image", sa.String(512), nullable=True),
        sa.Column("aadhaar_image_public_id", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False, index=True),
        sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id"), nullable=True, index=True),
        sa.Column("registration_type", registration_type, nullable=False),
        sa.Column("status", registration_status, nullable=False, index=True),
        sa.Column(
            "user_details_id", sa.Integer, sa.ForeignKey("user_details.id"), nullable=True
        ),
        sa.Column("active_individual_key", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("active_individual_key", name="uq_registration_active_individual"),
    )
    op.create_index("idx_registration_user_event", "registrations", ["user_id", "event_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column(
            "registration_id",
            sa.Integer,
            sa.ForeignKey("registrations.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("razorpay_order_id", sa.String(100), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(100), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True
        ),
        sa.UniqueConstraint(
            "registration_id", "razorpay_payment_id", "status", name="uq_payment_attempt"
        ),
    )
    op.create_index("idx_payment_status_created", "payments", ["status", "created_at"])

    op.create_table(
        "class_registrations",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("razorpay_order_id", sa.String(100), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(100), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", membership_status, nullable=False, index=True),
        sa.Column("issue_date", sa.Date, nullable=True),
        sa.Column("end_date", sa.Date, nullable=True, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "contact_messages",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True
        ),
    )

    op.create_table(
        "gallery",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(512), nullable=False),
        sa.Column("event_name", sa.String(255), nullable=True, index=True),
        sa.Column("image_location", sa.String(255), nullable=True),
        sa.Column("date", sa.Date, nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("gallery")
    op.drop_table("contact_messages")
    op.drop_table("class_registrations")
    op.drop_index("idx_payment_status_created", table_name="payments")
    op.drop_table("payments")
    op.drop_index("idx_registration_user_event", table_name="registrations")
    op.drop_table("registrations")
    op.drop_table("user_details")
    op.drop_table("teams")
    op.drop_index("idx_event_live_start", table_name="events")
    op.drop_table("events")
    op.drop_table("users")
