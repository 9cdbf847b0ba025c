"""Fold legacy team routing columns into query_records.visible_to"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from app.services.query_scoping import legacy_visible_to

# revision identifiers, used by Alembic.
revision = "0002_visible_to_backfill"
down_revision = "0001_query_workflow_schema"
branch_labels = None
depends_on = None

_records = sa.table(
    "query_records",
    sa.column("id", postgresql.UUID(as_uuid=True)),
    sa.column("marked_for_team", sa.String()),
    sa.column("team", sa.String()),
    sa.column("send_to_sales", sa.Boolean()),
    sa.column("send_to_credit", sa.Boolean()),
    sa.column("visible_to", postgresql.JSONB()),
)


def upgrade() -> None:
    bind = op.get_bind()
    rows = bind.execute(
        sa.select(
            _records.c.id,
            _records.c.marked_for_team,
            _records.c.team,
            _records.c.send_to_sales,
            _records.c.send_to_credit,
        )
    ).fetchall()
    for row in rows:
        visible = legacy_visible_to(row.marked_for_team, row.team, bool(row.send_to_sales), bool(row.send_to_credit))
        bind.execute(_records.update().where(_records.c.id == row.id).values(visible_to=visible))

    op.alter_column(
        "query_records",
        "visible_to",
        nullable=False,
        server_default=sa.text("'[]'::jsonb"),
    )
    op.create_index(
        "ix_query_records_visible_to",
        "query_records",
        ["visible_to"],
        postgresql_using="gin",
    )
    op.drop_column("query_records", "send_to_credit")
    op.drop_column("query_records", "send_to_sales")
    op.drop_column("query_records", "team")


def downgrade() -> None:
    op.add_column("query_records", sa.Column("team", sa.String(length=32), nullable=True))
    op.add_column(
        "query_records",
        sa.Column("send_to_sales", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.add_column(
        "query_records",
        sa.Column("send_to_credit", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.execute(
        "UPDATE query_records SET "
        "send_to_sales = visible_to @> '[\"sales\"]'::jsonb, "
        "send_to_credit = visible_to @> '[\"credit\"]'::jsonb"
    )
    op.drop_index("ix_query_records_visible_to", table_name="query_records")
    op.alter_column("query_records", "visible_to", nullable=True, server_default=None)
