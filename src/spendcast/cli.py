"""CLI entry point for spendcast.

Provides commands for the forecasting engine:
  - generate: Fit and store a new forecast for a user
  - list / show: Inspect stored forecasts
  - summary: Dashboard roll-up of current forecasts
  - track-accuracy: Record realized spend against past predictions
  - alerts: Forecasts with unacknowledged high or critical alerts
  - acknowledge: Mark a forecast alert as seen
  - cron: Scheduled jobs (accuracy tracking for every user)
  - migrate: Run database migrations
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from datetime import date

from spendcast.config import load_config
from spendcast.learning.accuracy import tracking_cutoff
from spendcast.models.forecast import Algorithm, PeriodType
from spendcast.registry.db import Database
from spendcast.registry.queries import Registry
from spendcast.service import ForecastService


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_json(obj) -> None:
    print(json.dumps(asdict(obj), indent=2, default=str))


def _connect() -> tuple[Database, ForecastService]:
    config = load_config()
    db = Database(config.db_dsn)
    db.connect()
    return db, ForecastService.from_registry(Registry(db), config)


def cmd_generate(args: argparse.Namespace) -> None:
    """Generate and store a forecast."""
    db, service = _connect()
    try:
        request = {"period_type": args.period, "algorithm": args.algorithm, "category": args.category}
        if args.confidence is not None:
            request["confidence_level"] = args.confidence
        forecast = service.generate_forecast(args.user, request)
        _print_json(forecast)
    finally:
        db.close()


def cmd_list(args: argparse.Namespace) -> None:
    """List a user's active forecasts."""
    db, service = _connect()
    try:
        forecasts = service.get_user_forecasts(args.user, category=args.category, period_type=args.period)
        if not forecasts:
            print("No active forecasts.")
            return
        for f in forecasts:
            agg = f.aggregate_forecast
            print(
                f"  #{f.id:<6} {f.forecast_period.period_type.value:9s} "
                f"{f.forecast_period.start_date} -> {f.forecast_period.end_date}  "
                f"{(f.category or 'all'):15s} total={agg.total_predicted:10.2f} "
                f"trend={agg.trend.value} {f.days_remaining()}d left"
            )
    finally:
        db.close()


def cmd_show(args: argparse.Namespace) -> None:
    """Show one forecast."""
    db, service = _connect()
    try:
        _print_json(service.get_forecast_by_id(args.forecast_id, args.user))
    finally:
        db.close()


def cmd_summary(args: argparse.Namespace) -> None:
    """Dashboard summary for a user."""
    db, service = _connect()
    try:
        _print_json(service.get_forecast_summary(args.user))
    finally:
        db.close()


def cmd_track_accuracy(args: argparse.Namespace) -> None:
    """Record actual spend against a user's past predictions."""
    db, service = _connect()
    try:
        _print_json(service.update_forecast_accuracy(args.user))
    finally:
        db.close()


def cmd_alerts(args: argparse.Namespace) -> None:
    """List forecasts with unacknowledged high or critical alerts."""
    db, service = _connect()
    try:
        forecasts = service.get_unacknowledged_alerts(args.user)
        if not forecasts:
            print("No unacknowledged alerts.")
            return
        for f in forecasts:
            for alert in f.unacknowledged_alerts:
                print(f"  #{f.id:<6} {alert.id}  {alert.severity.value:8s} {alert.message}")
    finally:
        db.close()


def cmd_acknowledge(args: argparse.Namespace) -> None:
    """Acknowledge a forecast alert."""
    db, service = _connect()
    try:
        service.acknowledge_alert(args.forecast_id, args.user, args.alert_id)
        print(f"Alert {args.alert_id} acknowledged.")
    finally:
        db.close()


def cmd_cron(args: argparse.Namespace) -> None:
    """Run a scheduled job."""
    config = load_config()
    db = Database(config.db_dsn)
    db.connect()
    registry = Registry(db)
    service = ForecastService.from_registry(registry, config)
    job = args.job

    try:
        if job == "track-accuracy":
            users = registry.get_users_with_trackable_forecasts(tracking_cutoff(date.today()))
            recorded = 0
            failed = 0
            for user_id in users:
                try:
                    recorded += service.update_forecast_accuracy(user_id).entries_recorded
                except Exception:
                    failed += 1
                    logging.exception("Accuracy tracking failed for user %s", user_id)
            msg = f"Accuracy tracking: {recorded} entries recorded for {len(users)} users ({failed} failed)"
            logging.info(msg)
            print(msg)
        else:
            print(f"Unknown cron job: {job}")
    finally:
        db.close()


def cmd_migrate(args: argparse.Namespace) -> None:
    """Run database migrations."""
    config = load_config()
    db = Database(config.db_dsn)
    db.connect()
    try:
        applied = db.run_migrations()
    finally:
        db.close()
    print(f"Migrations complete ({len(applied)} applied).")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="spendcast",
        description="Predictive budgeting: spending forecasts, budget checks and accuracy tracking",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subs = parser.add_subparsers(dest="command", required=True)

    # generate
    p_generate = subs.add_parser("generate", help="Generate a forecast for a user")
    p_generate.add_argument("user", help="User id")
    p_generate.add_argument("--period", choices=[p.value for p in PeriodType], default="monthly")
    p_generate.add_argument("--algorithm", choices=[a.value for a in Algorithm], default="moving_average")
    p_generate.add_argument("--category", default=None, help="Limit to one spending category")
    p_generate.add_argument("--confidence", type=float, default=None, help="Confidence level (80-99)")

    # list
    p_list = subs.add_parser("list", help="List active forecasts")
    p_list.add_argument("user", help="User id")
    p_list.add_argument("--category", default=None)
    p_list.add_argument("--period", choices=[p.value for p in PeriodType], default=None)

    # show
    p_show = subs.add_parser("show", help="Show one forecast")
    p_show.add_argument("user", help="User id")
    p_show.add_argument("forecast_id", type=int)

    # summary
    p_summary = subs.add_parser("summary", help="Dashboard summary of current forecasts")
    p_summary.add_argument("user", help="User id")

    # track-accuracy
    p_track = subs.add_parser("track-accuracy", help="Track realized spend for a user")
    p_track.add_argument("user", help="User id")

    # alerts
    p_alerts = subs.add_parser("alerts", help="List unacknowledged high or critical alerts")
    p_alerts.add_argument("user", help="User id")

    # acknowledge
    p_ack = subs.add_parser("acknowledge", help="Acknowledge a forecast alert")
    p_ack.add_argument("user", help="User id")
    p_ack.add_argument("forecast_id", type=int)
    p_ack.add_argument("alert_id")

    # cron
    p_cron = subs.add_parser("cron", help="Run a scheduled job")
    p_cron.add_argument("job", choices=["track-accuracy"], help="Cron job to run")

    # migrate
    subs.add_parser("migrate", help="Run database migrations")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    commands = {
        "generate": cmd_generate,
        "list": cmd_list,
        "show": cmd_show,
        "summary": cmd_summary,
        "track-accuracy": cmd_track_accuracy,
        "alerts": cmd_alerts,
        "acknowledge": cmd_acknowledge,
        "cron": cmd_cron,
        "migrate": cmd_migrate,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
