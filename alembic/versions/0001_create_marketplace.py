from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "merchant_profiles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("skill_category", sa.String(), nullable=False),
        sa.Column("years_experience", sa.Integer(), nullable=False),
        sa.Column("about", sa.String(500), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("previous_work_images", sa.JSON(), nullable=False),
        sa.Column("profile_picture", sa.String(), nullable=False),
        sa.Column("availability", sa.String(), nullable=False),
        sa.Column("cnic", sa.String(), nullable=True),
        sa.Column("certifications", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_merchant_profiles_user_id", "merchant_profiles", ["user_id"], unique=True)
    op.create_index("ix_merchant_profiles_skill_category", "merchant_profiles", ["skill_category"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("merchant_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("service_type", sa.String(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"], unique=False)
    op.create_index("ix_bookings_merchant_id", "bookings", ["merchant_id"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)

    op.create_table(
        "service_requests",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("service_type", sa.String(), nullable=False),
        sa.Column("issue", sa.Text(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("selected_merchant_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("offer_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("booking_id", sa.String(), sa.ForeignKey("bookings.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_service_requests_customer_id", "service_requests", ["customer_id"], unique=False)
    op.create_index("ix_service_requests_service_type", "service_requests", ["service_type"], unique=False)
    op.create_index("ix_service_requests_status", "service_requests", ["status"], unique=False)
    op.create_index("ix_service_requests_booking_id", "service_requests", ["booking_id"], unique=False)

    op.create_table(
        "service_request_offers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("service_request_id", sa.String(), sa.ForeignKey("service_requests.id"), nullable=False),
        sa.Column("merchant_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("negotiable", sa.Boolean(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("service_request_id", "merchant_id", name="uq_offer_request_merchant"),
    )
    op.create_index("ix_service_request_offers_service_request_id", "service_request_offers", ["service_request_id"], unique=False)
    op.create_index("ix_service_request_offers_merchant_id", "service_request_offers", ["merchant_id"], unique=False)

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.String(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("sender_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("receiver_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_booking_id", "messages", ["booking_id"], unique=False)
    op.create_index("ix_messages_receiver_id", "messages", ["receiver_id"], unique=False)
    op.create_index("ix_messages_read", "messages", ["read"], unique=False)


def downgrade():
    op.drop_table("messages")
    op.drop_table("service_request_offers")
    op.drop_table("service_requests")
    op.drop_table("bookings")
    op.drop_table("merchant_profiles")
    op.drop_table("users")
