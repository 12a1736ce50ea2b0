#!/usr/bin/env python3
"""
CLI for running property valuations.

Usage:
    python -m reporting.cli sample
    python -m reporting.cli evaluate --address <address> --area <sqm> --age <years> --purpose <purpose>

Examples:
    # Value the built-in Tokyo example
    python -m reporting.cli sample

    # Value a specific property, JSON output
    python -m reporting.cli evaluate --address 東京都新宿区西新宿1-1-1 \\
        --area 70 --age 10 --purpose sale --json
"""

import argparse
import json
import logging
import sys
from dataclasses import replace

from core.comp_engine.errors import InvalidValuationRequestError
from core.comp_engine.models import ValuationRequest, ValuationResult
from core.comp_engine.valuation import ValuationOrchestrator
from utils.config import Config
from utils.formatting import format_currency, format_man_yen, format_percent, format_price_range

SAMPLE_REQUEST = {
    "address": "東京都新宿区西新宿1-1-1",
    "area_sqm": 70,
    "age_years": 10,
    "purpose": "sale",
    "property_use": "residential",
}


def format_result_text(request: ValuationRequest, result: ValuationResult) -> str:
    """Render a valuation result as a plain-text summary."""
    lines = [
        f"Address:          {request.address}",
        f"Floor area:       {request.area_sqm:g} ㎡",
        f"Building age:     {request.age_years} years",
        f"Purpose:          {request.purpose.value}",
        "",
        f"Price range:      {format_price_range(result.price_range_low, result.price_range_high)}",
        f"Estimated price:  {format_man_yen(result.estimated_price)}",
        f"Confidence:       {result.confidence_label.value} ({result.sample_count} comparables)",
        f"Market trend:     {result.market_trend.value}",
        f"Price trend:      {result.price_trend.value}",
        f"Investment value: {result.investment_value.value}",
        f"Data:             {result.data_origin.value} / {result.data_quality.value}"
        f" (region {result.region_code})",
    ]

    if result.statistics is not None:
        lines.append(
            f"Dispersion:       CV {format_percent(result.statistics.coefficient_of_variation)}"
            f" ({result.statistics.filtered_sample_count} after outlier removal)"
        )

    if result.insights:
        lines.append("")
        lines.append("Insights:")
        lines.extend(f"  - {insight}" for insight in result.insights)

    if result.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"  - {text}" for text in result.recommendations)

    if result.comparables:
        lines.append("")
        lines.append("Comparables:")
        for comp in result.comparables:
            lines.append(
                f"  {comp.address}  {comp.area_sqm:g}㎡  {comp.age_years}y  "
                f"{format_currency(comp.price)} -> {format_currency(comp.corrected_price)}"
            )

    return "\n".join(lines)


def build_orchestrator(seed=None) -> ValuationOrchestrator:
    config = Config.load()
    if seed is not None:
        config = replace(config, valuation_seed=seed)
    return ValuationOrchestrator.from_config(config)


def run_valuation(data: dict, seed=None, as_json: bool = False) -> int:
    try:
        request = ValuationRequest.from_dict(data)
    except InvalidValuationRequestError as e:
        print("Error: Invalid valuation request:", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    result = build_orchestrator(seed).evaluate(request)

    if as_json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_result_text(request, result))
    return 0


def cmd_sample(args):
    """Value the built-in Tokyo example."""
    return run_valuation(SAMPLE_REQUEST, seed=args.seed, as_json=args.json)


def cmd_evaluate(args):
    """Value the property described by the command-line options."""
    data = {
        "address": args.address,
        "area_sqm": args.area,
        "age_years": args.age,
        "purpose": args.purpose,
        "property_use": args.use,
        "search_radius_km_override": args.radius,
        "lookback_months_override": args.lookback,
    }
    return run_valuation(data, seed=args.seed, as_json=args.json)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Comparable-Sales Valuation Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m reporting.cli sample
    python -m reporting.cli evaluate --address 東京都新宿区西新宿1-1-1 --area 70 --age 10 --purpose sale

Environment:
    REINFOLIB_API_KEY enables live transaction data; without it,
    synthetic comparables are used.
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Sample command
    sample_parser = subparsers.add_parser(
        "sample",
        help="Value a built-in Tokyo example",
    )
    sample_parser.add_argument("--seed", help="Seed for reproducible output")
    sample_parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    sample_parser.set_defaults(func=cmd_sample)

    # Evaluate command
    eval_parser = subparsers.add_parser(
        "evaluate",
        help="Value a property",
    )
    eval_parser.add_argument("--address", required=True, help="Property address")
    eval_parser.add_argument("--area", required=True, help="Floor area in square metres")
    eval_parser.add_argument("--age", required=True, help="Building age in years")
    eval_parser.add_argument("--purpose", required=True, help="sale, purchase or rental")
    eval_parser.add_argument("--use", help="residential, commercial, office or warehouse")
    eval_parser.add_argument("--radius", help="Search radius override (km)")
    eval_parser.add_argument("--lookback", help="Lookback window override (months)")
    eval_parser.add_argument("--seed", help="Seed for reproducible output")
    eval_parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    eval_parser.set_defaults(func=cmd_evaluate)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    config = Config.load()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
