#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""
import os
import sys

import dj_database_url
import psycopg
from dotenv import load_dotenv
from psycopg import sql

BOOTSTRAP_COMMANDS = {"migrate", "runserver"}


def create_database_if_missing() -> None:
    """
    Create the PostgreSQL database named in DATABASE_URL when the server
    does not have it yet. SQLite and unset URLs are left alone.
    """
    url = os.environ.get("DATABASE_URL", "")
    if not url or url.startswith("sqlite"):
        return
    config = dj_database_url.parse(url)
    if "postgresql" not in (config.get("ENGINE") or "") or not config.get("NAME"):
        return

    params = {
        "host": config.get("HOST"),
        "port": config.get("PORT"),
        "user": config.get("USER"),
        "password": config.get("PASSWORD"),
        "dbname": os.environ.get("PG_MAINTENANCE_DB", "postgres"),
    }
    try:
        with psycopg.connect(autocommit=True, **{k: v for k, v in params.items() if v}) as conn:
            exists = conn.execute(
                "SELECT 1 FROM pg_database WHERE datname = %s", (config["NAME"],)
            ).fetchone()
            if not exists:
                conn.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(config["NAME"])))
                print(f"Database '{config['NAME']}' created.")
    except psycopg.Error as exc:
        print(f"Warning: could not check database '{config['NAME']}': {exc}", file=sys.stderr)


def main():
    load_dotenv()
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")
    if len(sys.argv) > 1 and sys.argv[1] in BOOTSTRAP_COMMANDS:
        create_database_if_missing()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
