"""add password reset columns

Revision ID: c41f09b2d7e5
Revises: ab7ddd444281
Create Date: 2026-10-18 10:03:27.881402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c41f09b2d7e5'
down_revision: Union[str, None] = 'ab7ddd444281'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("password_reset_token", sa.String(length=64), nullable=True))
        batch_op.add_column(sa.Column("password_reset_expires", sa.DateTime(), nullable=True))
        batch_op.create_index("ix_users_password_reset_token", ["password_reset_token"])


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_index("ix_users_password_reset_token")
        batch_op.drop_column("password_reset_expires")
        batch_op.drop_column("password_reset_token")
