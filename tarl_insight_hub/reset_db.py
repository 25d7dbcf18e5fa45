#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
reset_db.py: drop and rebuild the TaRL Insight Hub PostgreSQL database.
Recreates the database, creates all tables and seeds the default admin,
page catalog and permission matrices.
"""

import os
import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

# ───────────── Configuration ───────────── #
DB_NAME = os.getenv("POSTGRES_DB", "tarl_insight_hub")
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASS = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_PORT", "5432")


def drop_and_create_db():
    print(f"Dropping and recreating database '{DB_NAME}'…")

    conn = psycopg2.connect(
        dbname="postgres",
        user=DB_USER,
        password=DB_PASS,
        host=DB_HOST,
        port=DB_PORT,
    )
    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
    cur = conn.cursor()

    cur.execute(
        """
        SELECT pg_terminate_backend(pid)
        FROM pg_stat_activity
        WHERE datname = %s AND pid <> pg_backend_pid();
        """,
        (DB_NAME,),
    )
    cur.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(DB_NAME)))
    cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(DB_NAME)))

    cur.close()
    conn.close()
    print("Database recreated.")


def create_schema_and_seed():
    from insight_hub import create_app, db
    from insight_hub.seeds import (
        ensure_default_admin,
        seed_action_permissions,
        seed_page_grants,
        seed_pages,
    )
    from insight_hub.store import PermissionStore

    app = create_app()
    with app.app_context():
        db.create_all()
        ensure_default_admin(app)
        store = PermissionStore(db.session, app.config.get("EXTRA_PERMISSION_ACTIONS", ()))
        pages = seed_pages(store)
        grants = seed_page_grants(store)
        actions = seed_action_permissions(store)
        print(f"Seeded {pages} pages, {grants} page grants, {actions} action permissions.")


def main():
    print("Starting full database reset for TaRL Insight Hub…")
    drop_and_create_db()
    create_schema_and_seed()
    print("Database is clean and ready.")


if __name__ == "__main__":
    main()
