#!/usr/bin/env python3
"""One-off: log in to Garmin Connect, print recent activities and the weekly stats we would store.
Usage: GARMIN_USERNAME=you@example.com GARMIN_PASSWORD=secret python scripts/debug_garmin_api.py"""
import json
import os

from garminconnect import Garmin

from app.services.garmin_provider import parse_garmin_activity
from app.services.stats_calculator import calculate_weekly_stats, format_pace

USERNAME = os.environ.get("GARMIN_USERNAME", "")
PASSWORD = os.environ.get("GARMIN_PASSWORD", "")
PAGE_SIZE = int(os.environ.get("PAGE_SIZE", "20"))


def main():
    if not USERNAME or not PASSWORD:
        print("Set GARMIN_USERNAME and GARMIN_PASSWORD in environment")
        return
    client = Garmin(email=USERNAME, password=PASSWORD, return_on_mfa=True)
    result = client.login()
    if isinstance(result, tuple) and result and result[0] == "needs_mfa":
        print("Account requires MFA; not supported")
        return
    print("Logged in as:", client.display_name)
    print()

    print(f"=== get_activities(0, {PAGE_SIZE}) ===")
    items = client.get_activities(0, PAGE_SIZE)
    print("Count:", len(items))
    if items:
        print("Keys in first item:", sorted(items[0].keys()))
        print(json.dumps(items[:2], indent=2, default=str))
    print()

    activities = [parse_garmin_activity(item) for item in items]
    print("=== parsed ===")
    for a in activities:
        print(a.start_time, a.activity_type, round(a.distance_m / 1000, 2), "km", round(a.duration_sec / 60), "min")
    print()

    print("=== weekly stats ===")
    for week in calculate_weekly_stats(activities):
        pace = format_pace(week.avg_pace_min_km) if week.avg_pace_min_km else "-"
        print(week.week_start, f"{week.total_distance_km} km", f"{week.total_runs} runs", pace, f"{week.total_time_minutes} min")


if __name__ == "__main__":
    main()
