# rentflow/cli/__main__.py
from __future__ import annotations

import argparse

from ..db import init_db
from ..logging_config import configure_logging
from ..services.verification_scheduler import run_automation_tick, run_verification_tick
from .seed_demo import seed_demo


def main() -> None:
    p = argparse.ArgumentParser(prog="rentflow")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("seed-demo", help="create demo users and an offer inside its move-in window")
    s.add_argument("--tenant-email", default="tenant@demo.local")
    s.add_argument("--landlord-email", default="landlord@demo.local")
    s.add_argument("--admin-email", default="admin@demo.local")
    s.add_argument("--moved-in-hours-ago", type=float, default=2.0)

    t = sub.add_parser("run-tick", help="run one move-in scheduler tick and exit")
    t.add_argument("--automation", action="store_true", help="also run the issue automation pass")

    sub.add_parser("init-db", help="create tables")

    args = p.parse_args()
    configure_logging()

    if args.command == "init-db":
        init_db()
        print({"ok": True})
    elif args.command == "seed-demo":
        out = seed_demo(
            tenant_email=args.tenant_email,
            landlord_email=args.landlord_email,
            admin_email=args.admin_email,
            moved_in_hours_ago=args.moved_in_hours_ago,
        )
        print(
            {
                "ok": True,
                "tenant_email": out.tenant_email,
                "landlord_email": out.landlord_email,
                "admin_email": out.admin_email,
                "offer_id": out.offer_id,
                "property_id": out.property_id,
            }
        )
    elif args.command == "run-tick":
        result = {"tick": run_verification_tick()}
        if args.automation:
            result["automation"] = run_automation_tick()
        print({"ok": True, **result})


if __name__ == "__main__":
    main()
