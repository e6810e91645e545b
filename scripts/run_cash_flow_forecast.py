from __future__ import annotations

import argparse
import json
import os
import sys

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Project monthly cash flow for a fiscal year and print it as JSON."
    )
    parser.add_argument(
        "--env-file",
        default=os.path.join(PROJECT_ROOT, ".env"),
        help="Path to .env file.",
    )
    parser.add_argument("--fiscal-year", type=int, default=None, help="Fiscal year to project.")
    parser.add_argument("--months", type=int, default=None, help="Forecast horizon in months.")
    parser.add_argument("--company-id", default=None, help="Restrict the forecast to one company.")
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Print the annual revenue schedule instead of the forecast.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    load_env_file(os.path.abspath(args.env_file))

    from src.api.dependencies import get_cash_flow_service
    from src.core.config import get_settings
    from src.core.logging import configure_logging

    configure_logging(get_settings().log_level)
    service = get_cash_flow_service()
    if args.schedule:
        result = service.get_revenue_schedule(
            fiscal_year=args.fiscal_year, company_id=args.company_id
        )
    else:
        result = service.get_forecast(
            fiscal_year=args.fiscal_year,
            horizon_months=args.months,
            company_id=args.company_id,
        )
    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
