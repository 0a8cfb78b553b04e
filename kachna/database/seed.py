"""
kachna.database.seed — Well-known Roles Seeder
===============================================

Idempotent — only inserts roles that don't already exist.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from kachna.constants import ALL_ROLES
from kachna.database.models import Role

logger = logging.getLogger(__name__)


def seed_roles(engine: Engine) -> None:
    """Insert every role from :data:`ALL_ROLES` that is missing."""
    session = Session(engine)
    inserted = 0
    try:
        existing = set(session.scalars(select(Role.name)).all())
        for name in ALL_ROLES:
            if name not in existing:
                session.add(Role(name=name))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d roles.", inserted)
