"""
CLI commands for post lifecycle management.

Usage:
    python -m post_lifecycle.cli.lifecycle status
    python -m post_lifecycle.cli.lifecycle destroy-stubs --dry-run
    python -m post_lifecycle.cli.lifecycle destroy-old-hidden --batch-size 100
    python -m post_lifecycle.cli.lifecycle destroy 1234 --actor 7
    python -m post_lifecycle.cli.lifecycle recover 1234 --actor 7
"""

import argparse
import sys

from dotenv import load_dotenv

load_dotenv()


def get_db_session():
    """Get a database session."""
    from post_lifecycle.database import SessionLocal

    return SessionLocal()


def _config():
    from post_lifecycle.config import LifecycleConfig

    return LifecycleConfig.from_settings()


def _print_sweep(result):
    print(f"Examined: {result.posts_examined}")
    print(f"Destroyed: {result.posts_destroyed}")
    print(f"Skipped: {result.posts_skipped}")
    print(f"Failed: {result.posts_failed}")

    if result.related_records:
        print("\nRelated records touched:")
        for table, count in result.related_records.items():
            print(f"  {table}: {count}")

    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  - {error}")


def cmd_status(args):
    """Show what the next sweeps would pick up."""
    from post_lifecycle.services.clock import SystemClock
    from post_lifecycle.services.lifecycle.aggregates import flagged_post_count
    from post_lifecycle.services.lifecycle.retention_policy import count_pending

    config = _config()
    db = get_db_session()
    try:
        counts = count_pending(db, SystemClock().now(), config.stub_retention_window)

        print("\n=== Post Lifecycle Status ===\n")
        print(f"Stub retention window: {config.stub_retention_hours} hours")
        print(f"Hidden post threshold: {config.hidden_post_threshold.days} days")
        print(f"\nStubs: {counts['stubs_total']} ({counts['stubs_pending']} due)")
        print(f"Hidden posts: {counts['hidden_total']} ({counts['hidden_pending']} due)")
        print(f"Posts with open flags: {flagged_post_count(db)}")
        print()
    finally:
        db.close()


def cmd_destroy_stubs(args):
    """Destroy author-deleted stubs past the retention window."""
    from post_lifecycle.services.lifecycle import PostDestroyer

    db = get_db_session()
    try:
        print(f"\n{'DRY RUN - ' if args.dry_run else ''}Destroying stubs...\n")
        result = PostDestroyer.destroy_stubs(db, config=_config(), batch_size=args.batch_size, dry_run=args.dry_run)
        _print_sweep(result)
        if not result.success:
            sys.exit(1)
    finally:
        db.close()


def cmd_destroy_old_hidden(args):
    """Destroy posts hidden for 30 days or more."""
    from post_lifecycle.services.lifecycle import PostDestroyer

    db = get_db_session()
    try:
        print(f"\n{'DRY RUN - ' if args.dry_run else ''}Destroying old hidden posts...\n")
        result = PostDestroyer.destroy_old_hidden_posts(
            db, config=_config(), batch_size=args.batch_size, dry_run=args.dry_run
        )
        _print_sweep(result)
        if not result.success:
            sys.exit(1)
    finally:
        db.close()


def _run_single(args, operation: str):
    from post_lifecycle.models import User
    from post_lifecycle.services.lifecycle import LifecycleError, PostDestroyer

    db = get_db_session()
    try:
        actor = db.get(User, args.actor)
        if actor is None:
            print(f"Error: User {args.actor} not found")
            sys.exit(1)

        try:
            destroyer = PostDestroyer.for_post_id(db, actor, args.post_id, config=_config())
            result = getattr(destroyer, operation)(context=args.reason)
        except LifecycleError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(f"Post {result.post_id}: {result.transition.value}")
        for table, count in result.related_records.items():
            print(f"  {table}: {count}")
    finally:
        db.close()


def cmd_destroy(args):
    """Destroy a single post as the given user."""
    _run_single(args, "destroy")


def cmd_recover(args):
    """Recover a single post as the given user."""
    _run_single(args, "recover")


def main(argv=None):
    from post_lifecycle.config import get_settings
    from post_lifecycle.logging_config import configure_logging

    parser = argparse.ArgumentParser(
        description="Post Lifecycle Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check what is due
  python -m post_lifecycle.cli.lifecycle status

  # Preview which stubs would be destroyed
  python -m post_lifecycle.cli.lifecycle destroy-stubs --dry-run

  # Remove a post as moderator 7
  python -m post_lifecycle.cli.lifecycle destroy 1234 --actor 7 --reason "spam"
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show pending sweep counts")
    status_parser.set_defaults(func=cmd_status)

    stubs_parser = subparsers.add_parser("destroy-stubs", help="Destroy expired author-deleted stubs")
    stubs_parser.add_argument("--batch-size", type=int, default=None, help="Max posts to handle")
    stubs_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't destroy")
    stubs_parser.set_defaults(func=cmd_destroy_stubs)

    hidden_parser = subparsers.add_parser("destroy-old-hidden", help="Destroy posts hidden for 30+ days")
    hidden_parser.add_argument("--batch-size", type=int, default=None, help="Max posts to handle")
    hidden_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't destroy")
    hidden_parser.set_defaults(func=cmd_destroy_old_hidden)

    for name, func, help_text in (
        ("destroy", cmd_destroy, "Destroy one post"),
        ("recover", cmd_recover, "Recover one post"),
    ):
        single_parser = subparsers.add_parser(name, help=help_text)
        single_parser.add_argument("post_id", type=int, help="Post id")
        single_parser.add_argument("--actor", type=int, required=True, help="Id of the acting user")
        single_parser.add_argument("--reason", default=None, help="Recorded in the audit log")
        single_parser.set_defaults(func=func)

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

    args.func(args)


if __name__ == "__main__":
    main()
