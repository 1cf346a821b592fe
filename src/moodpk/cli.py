# src/moodpk/cli.py
import argparse
import csv
import logging
from typing import List, Optional

from .config import configure_logging, get_config
from .dosing import repeated_doses
from .pharmacokinetics import calculate_steady_state_metrics, generate_dual_concentration_curves
from .types import EffectParams, Medication, MS_PER_HOUR

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    engine = get_config().engine
    parser = argparse.ArgumentParser(description="moodpk - plasma and effect-site concentration curves")
    parser.add_argument("--name", default="medication", help="Medication name")
    parser.add_argument("--drug-class", default="", help="Drug class, e.g. SSRI or Stimulant")
    parser.add_argument("--half-life", type=float, required=True, help="Elimination half-life (h)")
    parser.add_argument("--vd", type=float, required=True, help="Volume of distribution (L/kg)")
    parser.add_argument("--f", type=float, default=1.0, help="Bioavailability (0-1]")
    parser.add_argument("--ka", type=float, help="Absorption rate (1/h); class default if omitted")
    parser.add_argument("--ke0", type=float, help="Effect-site equilibration rate (1/h)")
    parser.add_argument("--effect-lag", type=float, help="Effect lag (h)")
    parser.add_argument("--dose", type=float, required=True, help="Dose amount (mg)")
    parser.add_argument("--every", type=float, default=24.0, help="Dosing interval (h)")
    parser.add_argument("--n", type=int, default=1, help="Number of doses")
    parser.add_argument("--hours", type=float, default=72.0, help="Simulated span from the first dose (h)")
    parser.add_argument("--points", type=int, default=engine.curve_points, help="Curve intervals")
    parser.add_argument("--weight", type=float, default=engine.default_body_weight_kg, help="Body weight (kg)")
    parser.add_argument("--csv", type=str, default="concentration.csv", help="Output CSV path")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> None:
    config = get_config()
    configure_logging(config.logging)
    parser = build_parser()
    args = parser.parse_args(argv)

    effect = None
    if args.ke0 is not None or args.effect_lag is not None:
        effect = EffectParams(ke0=args.ke0, effect_lag=args.effect_lag)
    medication = Medication(
        id=args.name,
        name=args.name,
        drug_class=args.drug_class,
        half_life=args.half_life,
        volume_of_distribution=args.vd,
        bioavailability=args.f,
        absorption_rate=args.ka,
        effect=effect,
    )
    try:
        doses = repeated_doses(medication.id, args.dose, args.every, args.n)
    except ValueError as exc:
        parser.error(str(exc))

    end = args.hours * MS_PER_HOUR
    curve = generate_dual_concentration_curves(medication, doses, 0.0, end, args.points, args.weight)

    with open(args.csv, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["time_h", "plasma_ng_per_mL", "effect_ng_per_mL"])
        for sample in curve:
            writer.writerow([sample.time / MS_PER_HOUR, sample.plasma, sample.effect])
    logger.info("Wrote %d samples to %s", len(curve), args.csv)

    if args.n > 1:
        ss = calculate_steady_state_metrics(medication, doses, args.weight, reference_time=end)
        logger.info(
            "Steady state: Css_avg=%.2f ng/mL, range %.2f-%.2f, tau=%.1fh, R=%.2f, reached=%s",
            ss.css_avg, ss.cmin_ss, ss.cmax_ss, ss.tau, ss.accumulation_factor, ss.at_steady_state,
        )


if __name__ == "__main__":
    run_cli()
