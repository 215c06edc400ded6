import datetime

import databases
import sqlalchemy
from formforge.config import config

metadata = sqlalchemy.MetaData()


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


user_table = sqlalchemy.Table(
    "user",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("email", sqlalchemy.String, unique=True, nullable=False),
    sqlalchemy.Column("username", sqlalchemy.String, nullable=True),
    sqlalchemy.Column("password_hash", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
)

# One row per version. group_id ties the versions of one form together and the
# slug is shared by the whole group, so neither is unique on its own.
form_table = sqlalchemy.Table(
    "form",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("group_id", sqlalchemy.String(36), nullable=False),
    sqlalchemy.Column("slug", sqlalchemy.String(100), nullable=False),
    sqlalchemy.Column("owner_id", sqlalchemy.ForeignKey("user.id"), nullable=False),
    sqlalchemy.Column("title", sqlalchemy.String(255), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text),
    sqlalchemy.Column("settings", sqlalchemy.JSON),
    sqlalchemy.Column("status", sqlalchemy.String(20), nullable=False, default="DRAFT"),
    sqlalchemy.Column("version", sqlalchemy.Integer, nullable=False, default=1),
    sqlalchemy.Column("is_deleted", sqlalchemy.Boolean, nullable=False, default=False),
    sqlalchemy.Column("published_at", sqlalchemy.DateTime, nullable=True),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, default=sqlalchemy.func.now(), onupdate=sqlalchemy.func.now()),
    sqlalchemy.UniqueConstraint("group_id", "version", name="uq_form_group_version"),
    sqlalchemy.Index("ix_form_slug_status", "slug", "status"),
    sqlalchemy.Index("ix_form_owner_status", "owner_id", "status", "is_deleted"),
)

# At most one live version per group and per slug.
sqlalchemy.Index(
    "uq_form_group_published",
    form_table.c.group_id,
    unique=True,
    sqlite_where=form_table.c.status == "PUBLISHED",
    postgresql_where=form_table.c.status == "PUBLISHED",
)
sqlalchemy.Index(
    "uq_form_slug_published",
    form_table.c.slug,
    unique=True,
    sqlite_where=form_table.c.status == "PUBLISHED",
    postgresql_where=form_table.c.status == "PUBLISHED",
)

formfield_table = sqlalchemy.Table(
    "form_field",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False),
    sqlalchemy.Column("field_key", sqlalchemy.String(100), nullable=False),
    sqlalchemy.Column("field_type", sqlalchemy.String(50), nullable=False),
    sqlalchemy.Column("label", sqlalchemy.String(255), nullable=False),
    sqlalchemy.Column("placeholder", sqlalchemy.String(255)),
    sqlalchemy.Column("help_text", sqlalchemy.Text),
    sqlalchemy.Column("is_required", sqlalchemy.Boolean, nullable=False, default=False),
    sqlalchemy.Column("display_order", sqlalchemy.Integer, nullable=False),
    sqlalchemy.Column("validation_rules", sqlalchemy.JSON),
    sqlalchemy.Column("field_config", sqlalchemy.JSON),
    sqlalchemy.Column("default_value", sqlalchemy.String(500)),
    sqlalchemy.Column("is_deleted", sqlalchemy.Boolean, nullable=False, default=False),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, default=sqlalchemy.func.now(), onupdate=sqlalchemy.func.now()),
    sqlalchemy.Index("ix_form_field_form_order", "form_id", "display_order"),
)

sqlalchemy.Index(
    "uq_form_field_active_key",
    formfield_table.c.form_id,
    formfield_table.c.field_key,
    unique=True,
    sqlite_where=formfield_table.c.is_deleted == sqlalchemy.false(),
    postgresql_where=formfield_table.c.is_deleted == sqlalchemy.false(),
)

formresponse_table = sqlalchemy.Table(
    "form_response",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False),
    sqlalchemy.Column("respondent_id", sqlalchemy.ForeignKey("user.id"), nullable=True),
    sqlalchemy.Column("submission_ip", sqlalchemy.String(45)),
    sqlalchemy.Column("status", sqlalchemy.String(20), nullable=False, default="COMPLETED"),
    sqlalchemy.Column("form_version", sqlalchemy.Integer, nullable=False),
    sqlalchemy.Column("response_json", sqlalchemy.Text, nullable=False),  # {field_key: value, ...}
    sqlalchemy.Column("form_schema_snapshot", sqlalchemy.Text, nullable=False),  # [{field_key, field_type, ...}, ...]
    sqlalchemy.Column("submitted_at", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
    sqlalchemy.Index("ix_form_response_form_submitted", "form_id", "submitted_at"),
)

_single_slot = " + ".join(
    f"(CASE WHEN {column} IS NOT NULL THEN 1 ELSE 0 END)"
    for column in ("value_text", "value_number", "value_date", "value_boolean")
)

fieldvalue_table = sqlalchemy.Table(
    "field_value",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column(
        "response_id",
        sqlalchemy.ForeignKey("form_response.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sqlalchemy.Column("field_id", sqlalchemy.ForeignKey("form_field.id"), nullable=False),
    sqlalchemy.Column("value_text", sqlalchemy.Text),
    sqlalchemy.Column("value_number", sqlalchemy.Float),
    sqlalchemy.Column("value_date", sqlalchemy.DateTime),
    sqlalchemy.Column("value_boolean", sqlalchemy.Boolean),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
    sqlalchemy.UniqueConstraint("response_id", "field_id", name="uq_field_value_response_field"),
    sqlalchemy.CheckConstraint(f"{_single_slot} = 1", name="ck_field_value_single_slot"),
    sqlalchemy.Index("ix_field_value_field_text", "field_id", "value_text"),
    sqlalchemy.Index("ix_field_value_field_number", "field_id", "value_number"),
    sqlalchemy.Index("ix_field_value_field_date", "field_id", "value_date"),
    sqlalchemy.Index("ix_field_value_field_boolean", "field_id", "value_boolean"),
)


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = sqlalchemy.create_engine(config.DATABASE_URL, connect_args=connect_args)

metadata.create_all(engine)
database = databases.Database(
    config.DATABASE_URL, force_rollback=config.DB_FORCE_ROLL_BACK
)
