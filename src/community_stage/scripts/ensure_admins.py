"""Audit communities for the at-least-one-admin rule.

Exit code:
  0 = every community has an ADMIN membership
  1 = at least one community has none

Typical usage:
  python -m community_stage.scripts.ensure_admins --url sqlite:///./community.db
"""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from community_stage.core.settings import settings
from community_stage.models import Community, CommunityMember, Role


@dataclass(frozen=True)
class Orphan:
    """A community without any ADMIN membership."""

    community_id: int
    name: str
    member_count: int


def find_orphaned_communities(db: Session) -> list[Orphan]:
    """Return every community whose membership set holds no ADMIN."""
    admin_count = (
        select(func.count(CommunityMember.id))
        .where(
            CommunityMember.community_id == Community.id,
            CommunityMember.role == Role.ADMIN,
        )
        .scalar_subquery()
    )
    member_count = (
        select(func.count(CommunityMember.id))
        .where(CommunityMember.community_id == Community.id)
        .scalar_subquery()
    )
    rows = db.execute(
        select(Community.id, Community.name, member_count)
        .where(admin_count == 0)
        .order_by(Community.id)
    ).all()
    return [Orphan(community_id=row[0], name=row[1], member_count=row[2]) for row in rows]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Report communities that have no admin")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args(argv)

    engine = create_engine(args.url or settings.database_url_sync)
    try:
        with Session(engine) as db:
            orphans = find_orphaned_communities(db)
    finally:
        engine.dispose()

    if not orphans:
        print("[ensure_admins] every community has an admin")
        return 0
    for orphan in orphans:
        print(
            f"[ensure_admins] community {orphan.community_id} ({orphan.name!r}) "
            f"has no admin among {orphan.member_count} members",
            file=sys.stderr,
        )
    return 1


if __name__ == "__main__":
    sys.exit(main())
