#!/usr/bin/env python3
"""
Vacation workflow demo: seed users, walk requests through the approval chain,
and print history plus audit trace for each one.

Seeds six user profiles (one not yet approved), submits two vacation requests, approves the first
through HR, PM and Manager, denies the second at PM review, then validates
the audit hash chain.

Usage:
    python3 scripts/demo_workflow.py                     # fresh SQLite file
    python3 scripts/demo_workflow.py --db-url sqlite:///demo.db
    python3 scripts/demo_workflow.py --json              # JSON trace output
"""

import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite:///vacation_demo.db"

W = 72


def hline(char: str = "=") -> str:
    return char * W


def banner(title: str) -> None:
    print()
    print(hline())
    print(f"  {title}")
    print(hline())


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def short_id(uid) -> str:
    return str(uid)[:8] + "..."


def seed_users(engine) -> None:
    from vacation_kernel.domain.vacation import Role, UserProfile

    directory = engine.directory
    for profile in (
        UserProfile("u-anna", "Anna Berger", "anna@example.com", Role.EMPLOYEE),
        UserProfile("u-ben", "Ben Okafor", "ben@example.com", Role.EMPLOYEE),
        UserProfile("u-hana", "Hana Weiss", "hana@example.com", Role.HR),
        UserProfile("u-paul", "Paul Mendes", "paul@example.com", Role.PM),
        UserProfile("u-mara", "Mara Lind", "mara@example.com", Role.MANAGER),
        UserProfile("u-new", "Nina Neu", "nina@example.com", Role.EMPLOYEE, is_approved=False),
    ):
        directory.upsert_profile(profile)


def print_request(engine, request, output_json: bool) -> None:
    from vacation_engines import calendar_days, status_label

    print()
    field("Request", short_id(request.id))
    field("Employee", f"{request.employee_name} ({request.employee_id})")
    field("Dates", f"{request.start_date} .. {request.end_date} "
                   f"({calendar_days(request.start_date, request.end_date)} days)")
    field("Replacement", request.replacement_user_name or request.replacement_user_id)
    field("Status", f"{request.status.value} -- {status_label(request.status)}")
    print()
    print("    History:")
    for entry in engine.history(request.id):
        print(f"      {entry.render()}")

    trace = engine.trace(request.id)
    print()
    print("    Audit trace:")
    for e in trace.entries:
        if output_json:
            print("      " + json.dumps({
                "seq": e.seq,
                "action": e.action.value,
                "actor_id": e.actor_id,
                "occurred_at": e.occurred_at.isoformat(),
                "payload": e.payload,
                "hash": e.hash,
            }, sort_keys=True))
        else:
            print(f"      #{e.seq:<3} {e.action.value:<24} by {e.actor_id:<8} {e.hash[:12]}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Walk vacation requests through the HR -> PM -> Manager chain.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url", type=str, default=DB_URL,
        help=f"Database URL (default: {DB_URL})",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Output audit trace entries as JSON",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Show structured kernel logs on stderr",
    )
    args = parser.parse_args()

    from vacation_config import WorkflowSettings
    from vacation_kernel.domain.vacation import NewVacationRequest, Role
    from vacation_kernel.exceptions import VacationKernelError
    from vacation_services import build_workflow_engine

    if not args.verbose:
        logging.disable(logging.CRITICAL)

    try:
        engine = build_workflow_engine(WorkflowSettings(database_url=args.db_url))
    except VacationKernelError as exc:
        print(f"  ERROR: Cannot initialize storage: {exc}", file=sys.stderr)
        return 1

    banner("VACATION APPROVAL WORKFLOW -- DEMO")
    seed_users(engine)
    today = engine.clock.today()

    candidates = engine.replacement_candidates("u-anna")
    field("Replacement candidates for Anna", ", ".join(p.display_name for p in candidates))

    approved = engine.submit(NewVacationRequest(
        employee_id="u-anna",
        employee_name="",
        employee_role=Role.EMPLOYEE,
        start_date=today + timedelta(days=14),
        end_date=today + timedelta(days=21),
        reason="Family trip",
        replacement_user_id="u-ben",
    ))
    denied = engine.submit(NewVacationRequest(
        employee_id="u-ben",
        employee_name="",
        employee_role=Role.EMPLOYEE,
        start_date=today + timedelta(days=16),
        end_date=today + timedelta(days=18),
        reason="Moving house",
        replacement_user_id="u-anna",
    ))

    try:
        engine.act(approved.id, Role.HR, "approve", actor_id="u-hana")
        engine.act(approved.id, Role.PM, "approve", "Covered by Ben", actor_id="u-paul")
        engine.act(approved.id, Role.MANAGER, "approve", actor_id="u-mara")

        engine.act(denied.id, Role.HR, "approve", actor_id="u-hana")
        engine.act(denied.id, Role.PM, "deny", "Overlaps with Anna's leave", actor_id="u-paul")
    except VacationKernelError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    banner("REQUESTS")
    for request in engine.list():
        print_request(engine, request, args.json)

    banner("SUMMARY")
    stats = engine.stats()
    field("Total", stats.total)
    field("Pending", stats.pending)
    field("Approved", stats.approved)
    field("Denied", stats.denied)
    field("Leave days on calendar", len(engine.leave_days()))
    field("Audit chain valid", engine.store.validate_audit_chain())
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
