#!/usr/bin/env python3
"""Run the coastal risk pipeline end to end against in-memory demo data.

Usage:
    # Deterministic run (no LLM):
    COASTGUARD_LLM_ENABLED=false python3 scripts/run_pipeline.py

    # Simulated SMS text and a custom forecast window:
    COASTGUARD_ALERTS_SIMULATION=true python3 scripts/run_pipeline.py --hours 6

    # Stop before alert dispatch:
    python3 scripts/run_pipeline.py --no-dispatch

Data created:
    - 1 parcel with site factors (no imagery unless --before/--after given)
    - 2 users (English with email, Hindi without) subscribed to the parcel
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from coastguard.app import build_services
from coastguard.core.config import Settings
from coastguard.core.types import UserRole
from coastguard.llm.health import check_llm_health
from coastguard.pipeline.models import PipelineOptions
from coastguard.records.models import ParcelRecord, Subscription, User


def seed(services, args: argparse.Namespace) -> ParcelRecord:
    parcel = services.parcels.save(ParcelRecord(
        parcel_name=args.parcel,
        village_name=args.village,
        area_total=args.area,
        before_img_url=args.before,
        after_img_url=args.after,
        rain=args.rain,
        tide=args.tide,
        exposure=args.exposure,
        elev_score=70,
        dist_score=60,
        land_cover_score=50,
    ))
    demo_users = [
        User(user_id="demo-fisher", name="Ravi", email="ravi@example.org",
             language="en", role=UserRole.FISHER),
        User(user_id="demo-ngo", name="Meera", language="hi", role=UserRole.NGO),
    ]
    for user in demo_users:
        services.users.save(user)
        services.subscriptions.save(Subscription(
            user_id=user.user_id, parcel_id=parcel.id, location=parcel.location,
        ))
    return parcel


def section(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


async def run(args: argparse.Namespace) -> int:
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = build_services(settings)
    try:
        if settings.llm.enabled:
            health = await check_llm_health(settings.llm)
            state = "up" if health.healthy else "down, using templates and heuristics"
            print(f"LLM {health.service}: {state}")

        parcel = seed(services, args)

        section(f"Pipeline for {parcel.parcel_name} ({parcel.id[:8]}...)")
        result = await services.orchestrator.run_pipeline(
            parcel.id,
            PipelineOptions(time_window_hrs=args.hours, dispatch_alerts=not args.no_dispatch),
        )
        for name, stage in result.stages.items():
            line = f"  Stage {name.number} {name.value:<14} {stage.status.value}"
            print(f"{line}  {stage.error}" if stage.error else line)
        print(f"\n  Success: {result.success} ({result.successful_stages}/4 stages)")

        if result.risk_event is None:
            print(f"  No risk event: {result.failure_reason}")
            return 1

        assessment = result.risk_event.assessment
        print(f"  Risk: {assessment.risk_score}/100 {assessment.band} ({assessment.why})")
        print(f"  SMS: {assessment.messages.sms_short}")
        print(f"  Dashboard: {assessment.messages.dashboard}")

        section("Inbox")
        for user_id in ("demo-fisher", "demo-ngo"):
            alerts = services.inbox.get_user_alerts(user_id)
            print(f"  {user_id}: {len(alerts)} alert(s)")
            for alert in alerts:
                print(f"    [{alert.language}] {alert.sms_short}")
        sent = services.notifications.list_for_user("demo-fisher")
        print(f"\n  Escalation emails: {len(sent)}")
        return 0
    finally:
        await services.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the coastal risk pipeline on a demo parcel"
    )
    parser.add_argument("--parcel", default="Plot-7", help="Parcel name (default: Plot-7)")
    parser.add_argument("--village", default="Kandla", help="Village name (default: Kandla)")
    parser.add_argument("--area", type=float, default=100.0, help="Area in hectares")
    parser.add_argument("--rain", type=float, default=0.8, help="Rain signal in [0, 1]")
    parser.add_argument("--tide", type=float, default=0.5, help="Tide signal in [0, 1]")
    parser.add_argument("--exposure", type=float, default=70.0, help="Exposure in [0, 100]")
    parser.add_argument("--before", help="Before image path (relative to the uploads dir)")
    parser.add_argument("--after", help="After image path (relative to the uploads dir)")
    parser.add_argument("--hours", type=float, default=12.0, help="Forecast window in hours")
    parser.add_argument(
        "--no-dispatch",
        action="store_true",
        help="Do not generate user alerts",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
