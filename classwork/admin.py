"""
Admin helpers for Classwork.

Usage:
    python3 -m classwork.admin set-teacher teacher@example.com
    python3 -m classwork.admin unset-teacher teacher@example.com
    python3 -m classwork.admin download-submissions ./export [--class 7B]
"""
import os
import logging

from classwork.auth import TEACHER_CLAIM
from classwork.errors import StoreError

logger = logging.getLogger(__name__)

_supabase = None


def _get_supabase():
    """Get or create Supabase admin client for user metadata access."""
    global _supabase
    if _supabase is None:
        from supabase import create_client
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_KEY")
        if not url or not key:
            raise StoreError("Supabase credentials not configured")
        _supabase = create_client(url, key)
    return _supabase


def find_user_id(email, client=None, per_page=200):
    """Look a user up by email through the admin API. Returns None if absent."""
    client = client or _get_supabase()
    page = 1
    while True:
        users = client.auth.admin.list_users(page=page, per_page=per_page)
        for user in users:
            if (user.email or '').lower() == email.lower():
                return user.id
        if len(users) < per_page:
            return None
        page += 1


def set_teacher_claim(email, value=True, client=None):
    """Grant (or revoke) the teacher claim in the user's app_metadata."""
    client = client or _get_supabase()
    user_id = find_user_id(email, client)
    if user_id is None:
        raise StoreError(f"No user with email {email}")
    client.auth.admin.update_user_by_id(user_id, {"app_metadata": {TEACHER_CLAIM: bool(value)}})
    logger.info("Set %s=%s for %s (%s)", TEACHER_CLAIM, bool(value), email, user_id)
    return user_id


if __name__ == "__main__":
    import argparse
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(message)s')

    parser = argparse.ArgumentParser(description="Classwork admin tasks")
    sub = parser.add_subparsers(dest="command")
    for name, help_text in (("set-teacher", "Grant the teacher claim"),
                            ("unset-teacher", "Revoke the teacher claim")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("email")
    download = sub.add_parser("download-submissions", help="Copy all final submissions into a folder")
    download.add_argument("target")
    download.add_argument("--class", dest="class_name", default=None)

    args = parser.parse_args()

    if args.command in ("set-teacher", "unset-teacher"):
        uid = set_teacher_claim(args.email, value=args.command == "set-teacher")
        print(f"Updated {TEACHER_CLAIM} for: {uid}")
    elif args.command == "download-submissions":
        from classwork.config import config
        from classwork.services.legacy import LegacySubmissionClient, download_submissions
        counts = download_submissions(LegacySubmissionClient(config.submit_url), config.teacher_key,
                                      args.target, args.class_name)
        print(f"Written: {counts['written']}, unchanged: {counts['skipped']}")
    else:
        parser.print_help()
