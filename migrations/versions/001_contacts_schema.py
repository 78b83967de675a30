"""Contacts schema: users, profiles, contacts, overlays, messages and read views.

Revision ID: 001_contacts_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


revision = "001_contacts_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "001_contacts_schema.sql"
    sql = sql_path.read_text(encoding="utf-8")
    conn = op.get_bind()
    conn.exec_driver_sql(sql)


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(
        """
        DROP VIEW IF EXISTS v_user_contact_stats;
        DROP VIEW IF EXISTS v_deleted_contacts;
        DROP VIEW IF EXISTS v_active_contacts;
        DROP TABLE IF EXISTS contact_messages;
        DROP TABLE IF EXISTS contacts_users;
        DROP TABLE IF EXISTS contacts;
        DROP TABLE IF EXISTS profiles;
        DROP TABLE IF EXISTS users;
        """
    )
