#!/usr/bin/env python3
"""
Quick CLI runner for the Social Listening Signal Engine.

Usage:
    python run.py                    # Demo with mock data
    python run.py --mode api         # Start FastAPI server
    python run.py --mode schedule    # Run the periodic jobs until Ctrl+C
    python run.py --mode demo        # Demo run over an in-memory database
"""

import sys
import os
import argparse
import logging
import threading

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


def demo(workspace_id: str = "demo-workspace"):
    """Seed synthetic mentions, run every job once, and print what came out."""
    from agents.mock_data import MockMentionGenerator
    from db.database import init_db, make_engine, make_session_factory
    from notifications.dispatcher import LogAlertDispatcher
    from utils.engine import build_engine
    from utils.scheduler import run_once
    from utils.timing import utcnow

    db_engine = make_engine("sqlite:///:memory:")
    init_db(db_engine)
    engine = build_engine(make_session_factory(db_engine), dispatcher=LogAlertDispatcher())

    now = utcnow()
    generator = MockMentionGenerator(seed=7)
    seeded = engine.mentions.add_many(
        generator.background(workspace_id, now, count=250)
        + generator.trending(workspace_id, now, topic="launch", current=40, previous=5)
        + generator.crisis_burst(workspace_id, now, count=60)
    )

    print("\n" + "="*70)
    print("  📡 SOCIAL LISTENING SIGNAL ENGINE — DEMO RUN")
    print("="*70 + "\n")
    print(f"🌱 Seeded {seeded} mentions for '{workspace_id}'\n")

    results = run_once(engine)
    for kind, runs in results.items():
        for r in runs:
            print(f"  {kind:<10} {r}")

    trends = results["trends"][0].data if results["trends"] and results["trends"][0].success else None
    if trends:
        print("\n" + "─"*70)
        print(f"  📈 TOP TRENDS ({trends.summary.total} total, {trends.summary.viral} viral)")
        print("─"*70)
        for t in trends.trends[:8]:
            print(f"   {t.term:<20} {t.status.value:<9} growth {t.growth_rate:>8.1f}%  "
                  f"virality {t.virality_score:5.1f}  vol {t.current_volume}")

    clusters = results["clusters"][0].data if results["clusters"] and results["clusters"][0].success else []
    if clusters:
        print("\n" + "─"*70)
        print("  💬 CONVERSATION CLUSTERS")
        print("─"*70)
        for c in clusters[:5]:
            print(f"   {c.name:<40} size {c.size:>3}  cohesion {c.cohesion_score:.2f}  "
                  f"diversity {c.diversity_score:.2f}")

    viral = engine.viral_detector.detect_viral_content(workspace_id)
    print(f"\n🔥 {len(viral)} viral mentions at the default threshold")

    crisis_run = results["crisis"][0] if results["crisis"] else None
    if crisis_run and crisis_run.success and crisis_run.data.crisis_detected:
        crisis = crisis_run.data.crisis
        print("\n" + "─"*70)
        print("  🚨 CRISIS")
        print("─"*70)
        print(f"   {crisis.title}")
        print(f"   Score {crisis.crisis_score}/100 | {crisis.mention_volume} mentions | "
              f"sentiment {crisis.sentiment_score:.2f} | volume {crisis.volume_change:+.0f}%")
        for entry in engine.crisis_manager.get_crisis(crisis.id).timeline:
            print(f"   · {entry.event}: {entry.description}")

    print("\n" + "="*70)
    print("  ✅ Demo complete!")
    print("  🔌 Start API:       uvicorn api.main:app --reload --port 8000")
    print("  🗓️  Start scheduler: python run.py --mode schedule")
    print("="*70 + "\n")


def start_api():
    import uvicorn
    from config.settings import settings
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )


def start_scheduler():
    from utils.engine import build_engine
    from utils.scheduler import ScheduleDriver

    driver = ScheduleDriver(build_engine())
    stop = threading.Event()
    try:
        driver.run_forever(stop)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping scheduler...")
        stop.set()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Social Listening Signal Engine")
    parser.add_argument(
        "--mode",
        choices=["demo", "api", "schedule"],
        default="demo",
        help="Run mode: demo | api | schedule",
    )
    args = parser.parse_args()

    if args.mode == "demo":
        demo()
    elif args.mode == "api":
        start_api()
    elif args.mode == "schedule":
        start_scheduler()
