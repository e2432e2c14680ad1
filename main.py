"""
DecoModels - Dive Decompression Simulator

Runs one decompression model (or all of them) through a generated dive
profile and prints the decompression plan at the end of the bottom phase.

Usage:
    python main.py                              # Bühlmann, 30 m / 30 min on air
    python main.py --depth 40 --time 25         # Quick square profile override
    python main.py --model all --fO2 0.32       # Compare every model on EAN32
    python main.py --profile multilevel --plot  # Multilevel profile with plots
"""

import argparse
import logging

import matplotlib.pyplot as plt
from matplotlib import colormaps
import numpy as np

from decomodels.comparator import ModelComparator, ModelSummary
from decomodels.config import DEFAULT_CONFIG_PATH, MODEL_REGISTRY, create_model, load_config
from decomodels.profile import DiveProfile, ProfileGenerator, ProfileRun, run_profile


# --- USER CONFIGURATION ---
# Edit these values to plan your dive, or override via CLI arguments.

DIVE_CONFIG = {
    "model": "buhlmann",            # registry name or "all"
    "profile_type": "square",       # "square", "multilevel" or "sawtooth"
    "depth_m": 30,                  # Depth for square/sawtooth profiles (meters)
    "bottom_time_min": 30,          # Bottom time (minutes)
    "fO2": 0.21,                    # Breathing gas O2 fraction (Air = 0.21)
    "fHe": 0.0,                     # Breathing gas He fraction

    # Multilevel profile: list of (depth_m, duration_min), deepest first
    "multilevel_levels": [
        (30, 10),
        (20, 10),
        (10, 10),
    ],

    # Sawtooth profile settings
    "sawtooth_min_depth_m": 10,
    "sawtooth_oscillations": 3,
}


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def build_profile(config: dict, planning: dict) -> DiveProfile:
    """Build a DiveProfile from user configuration."""
    gen = ProfileGenerator(
        descent_rate=planning["descent_rate"],
        ascent_rate=planning["ascent_rate"],
        sampling_interval=planning["sampling_interval"],
    )
    gas = {"fO2": config["fO2"], "fHe": config["fHe"]}
    profile_type = config["profile_type"]

    if profile_type == "square":
        return gen.generate_square(config["depth_m"], config["bottom_time_min"], **gas)
    elif profile_type == "multilevel":
        return gen.generate_multilevel(config["multilevel_levels"], **gas)
    elif profile_type == "sawtooth":
        return gen.generate_sawtooth(
            max_depth=config["depth_m"],
            min_depth=config["sawtooth_min_depth_m"],
            total_time=config["bottom_time_min"],
            oscillations=config["sawtooth_oscillations"],
            **gas,
        )
    raise ValueError(
        f"Unknown profile type: {profile_type}. "
        "Use 'square', 'multilevel', or 'sawtooth'."
    )


def print_dive_plan(profile: DiveProfile, config: dict) -> None:
    """Print dive plan summary before simulation."""
    print("--- DIVE PLAN ---")
    print(f"Profile: {profile.name}")
    print(f"Max depth: {profile.max_depth:.0f}m")
    print(f"Bottom time: {profile.bottom_time:.0f} min")
    print(f"Gas mix: {config['fO2'] * 100:.0f}% O2, {config['fHe'] * 100:.0f}% He")


def print_summary(summary: ModelSummary) -> None:
    """Print one model's decompression plan."""
    print(f"\n--- {summary.model_name} ---")
    print(f"Ceiling: {summary.ceiling:.1f}m")
    print(f"DCS risk: {summary.dcs_risk:.1f}%")
    if summary.can_ascend_directly:
        print("No decompression stops required.")
    else:
        for stop in summary.stops:
            print(f"  Stop {stop.depth:>4.0f}m  {stop.time:>4.0f} min")
    print(f"Time to surface: {summary.tts:.1f} min")


def print_report(report: dict) -> None:
    print("\n--- COMPARISON ---")
    print(f"Most conservative:  {report['most_conservative']}")
    print(f"Least conservative: {report['least_conservative']}")
    print(f"TTS range: {report['tts_min']:.1f} - {report['tts_max']:.1f} min")
    print(f"Models requiring deco: {len(report['deco_required'])}/{report['models']}")


def plot_run(profile: DiveProfile, run: ProfileRun) -> None:
    """Depth/ceiling history and per-compartment nitrogen loading."""
    _fig, (ax_depth, ax_load) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax_depth.plot(run.times, run.depths, "b-", linewidth=2, label="Depth")
    ax_depth.plot(run.times, run.ceilings, "r--", linewidth=1.5, label="Ceiling")
    ax_depth.set_ylabel("Depth (m)")
    ax_depth.set_title(f"{run.model_name}: {profile.name}")
    ax_depth.invert_yaxis()
    ax_depth.legend(loc="lower right")
    ax_depth.grid(True, alpha=0.3)

    num_compartments = run.nitrogen_loadings.shape[1]
    colors = colormaps["viridis"](np.linspace(0, 1, num_compartments))
    for c_idx in range(num_compartments):
        ax_load.plot(
            run.times, run.nitrogen_loadings[:, c_idx],
            color=colors[c_idx], linewidth=1, label=f"C{c_idx + 1}",
        )
    ax_load.set_xlabel("Time (min)")
    ax_load.set_ylabel("ppN2 (bar)")
    ax_load.legend(loc="upper right", fontsize=7, ncol=4)
    ax_load.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for quick overrides."""
    parser = argparse.ArgumentParser(
        description="DecoModels - Dive Decompression Simulator",
    )
    parser.add_argument(
        "--model", choices=list(MODEL_REGISTRY) + ["all"],
        help="Model to run (default: buhlmann)",
    )
    parser.add_argument("--depth", type=float, help="Dive depth in meters")
    parser.add_argument("--time", type=float, help="Bottom time in minutes")
    parser.add_argument("--fO2", type=float, help="O2 fraction (e.g. 0.32 for EAN32)")
    parser.add_argument("--fHe", type=float, help="He fraction (e.g. 0.35 for Tx21/35)")
    parser.add_argument(
        "--profile", choices=["square", "multilevel", "sawtooth"],
        help="Profile type",
    )
    parser.add_argument(
        "--config", type=str, default=DEFAULT_CONFIG_PATH,
        help="Path to model config YAML (default: config.yaml)",
    )
    parser.add_argument("--plot", action="store_true", help="Show plots")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(args.verbose)

    # Apply CLI overrides to config
    config = DIVE_CONFIG.copy()
    overrides = {
        "model": args.model,
        "depth_m": args.depth,
        "bottom_time_min": args.time,
        "fO2": args.fO2,
        "fHe": args.fHe,
        "profile_type": args.profile,
    }
    config.update({k: v for k, v in overrides.items() if v is not None})

    planning = load_config(args.config)["planning"]
    profile = build_profile(config, planning)
    print_dive_plan(profile, config)

    names = list(MODEL_REGISTRY) if config["model"] == "all" else [config["model"]]
    models = [create_model(name, args.config) for name in names]
    comparator = ModelComparator(models, ascent_rate=planning["ascent_rate"])

    summaries = comparator.compare_profile(profile)
    for summary in summaries:
        print_summary(summary)

    if len(summaries) > 1:
        print_report(comparator.generate_report(summaries))

    if args.plot:
        if len(models) == 1:
            models[0].reset_to_surface()
            plot_run(profile, run_profile(models[0], profile))
        else:
            comparator.plot_comparison(summaries)
            plt.show()


if __name__ == "__main__":
    main()
