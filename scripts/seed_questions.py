"""Load questions from a JSON file into the pool.

Usage:
    python scripts/seed_questions.py questions.json [--replace]
        [--admin-email admin@example.com] [--admin-name "System Admin"]

The file holds a list of question objects, e.g.
    {"competency": "Grammar", "level": "A1", "step": 1,
     "prompt": "...", "options": ["a", "b", "c"],
     "correct_answer": {"kind": "index", "index": 0}}
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, ".")
from certpath.config import get_settings
from certpath.database import async_session_maker, close_db, init_db
from certpath.logging_config import configure_logging
from certpath.seeding import ServiceAccount, ensure_service_account, seed_questions


async def main(args: argparse.Namespace) -> int:
    items = json.loads(Path(args.file).read_text(encoding="utf-8"))
    if not isinstance(items, list):
        print("Seed file must contain a JSON list of questions")
        return 1

    await init_db()
    try:
        async with async_session_maker() as session:
            admin = await ensure_service_account(
                session,
                ServiceAccount(email=args.admin_email, full_name=args.admin_name),
            )
            questions = await seed_questions(session, items, created_by=admin, replace_existing=args.replace)
            await session.commit()
    finally:
        await close_db()

    by_level = {}
    for q in questions:
        by_level[q.level] = by_level.get(q.level, 0) + 1
    print(f"Seeded {len(questions)} question(s)")
    for level in sorted(by_level):
        print(f"  {level}: {by_level[level]}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the question pool from a JSON file")
    parser.add_argument("file")
    parser.add_argument("--replace", action="store_true", help="deactivate existing questions first")
    parser.add_argument("--admin-email", default="admin@certpath.local")
    parser.add_argument("--admin-name", default="System Admin")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(log_level=settings.log_level, environment=settings.environment, debug=settings.debug)
    sys.exit(asyncio.run(main(args)))
