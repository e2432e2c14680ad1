"""
Model comparator.

Runs several decompression models over the same dive profile and summarizes
where they agree and disagree on ceiling, stops, time-to-surface and risk.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np

from .kernel import DEFAULT_ASCENT_RATE, DecompressionModel
from .profile import DiveProfile, run_profile
from .state import DecompressionStop

logger = logging.getLogger(__name__)


@dataclass
class ModelSummary:
    """Plan of one model at the end of a profile's bottom portion."""

    model_name: str
    profile_name: str
    ceiling: float
    stops: List[DecompressionStop] = field(default_factory=list)
    tts: float = 0.0
    dcs_risk: float = 0.0
    can_ascend_directly: bool = True

    @property
    def requires_deco(self) -> bool:
        return not self.can_ascend_directly

    @property
    def total_stop_time(self) -> float:
        return sum(stop.time for stop in self.stops)

    @property
    def first_stop_depth(self) -> float:
        return self.stops[0].depth if self.stops else 0.0


class ModelComparator:
    """
    Compare decompression models on dive profiles.

    Every model is reset to the surface before a profile is run, so one
    comparator can be reused across profiles.
    """

    def __init__(self, models: List[DecompressionModel], ascent_rate: float = DEFAULT_ASCENT_RATE):
        """
        Args:
            models: Model instances to compare
            ascent_rate: Ascent rate for TTS in m/min
        """
        self.models = list(models)
        self.ascent_rate = ascent_rate

    def summarize(self, model: DecompressionModel, profile_name: str = "current") -> ModelSummary:
        """Plan a decompression from the model's current state."""
        return ModelSummary(
            model_name=model.get_model_name(),
            profile_name=profile_name,
            ceiling=model.calculate_ceiling(),
            stops=model.calculate_consolidated_decompression_stops(),
            tts=model.calculate_tts(self.ascent_rate),
            dcs_risk=model.calculate_dcs_risk(),
            can_ascend_directly=model.can_ascend_directly(),
        )

    def compare_profile(self, profile: DiveProfile) -> List[ModelSummary]:
        """
        Run the bottom portion of a profile through every model.

        Args:
            profile: DiveProfile to analyze

        Returns:
            One ModelSummary per model that completed, in model order
        """
        bottom = profile.bottom_portion()
        summaries = []
        for model in self.models:
            model.reset_to_surface()
            try:
                run_profile(model, bottom)
                summaries.append(self.summarize(model, profile.name))
            except Exception as e:
                logger.error(f"{model.get_model_name()} failed for {profile.name}: {e}")
        return summaries

    def compare_batch(self, profiles: List[DiveProfile]) -> Dict[str, List[ModelSummary]]:
        """Compare every model on every profile, keyed by profile name."""
        results = {}
        for i, profile in enumerate(profiles):
            results[profile.name] = self.compare_profile(profile)
            logger.info(f"Compared {i + 1}/{len(profiles)} profiles")
        return results

    def generate_report(self, summaries: List[ModelSummary]) -> Dict:
        """
        Summary statistics across the models' plans for one profile.

        Conservatism is ranked by TTS, then ceiling, then risk.

        Args:
            summaries: Output of compare_profile

        Returns:
            Dictionary with summary statistics
        """
        if not summaries:
            return {"error": "No model summaries"}

        ranked = sorted(summaries, key=lambda s: (s.tts, s.ceiling, s.dcs_risk))
        tts = np.array([s.tts for s in summaries])
        risks = np.array([s.dcs_risk for s in summaries])
        ceilings = np.array([s.ceiling for s in summaries])

        return {
            "profile": summaries[0].profile_name,
            "models": len(summaries),
            "most_conservative": ranked[-1].model_name,
            "least_conservative": ranked[0].model_name,
            "tts_min": float(tts.min()),
            "tts_max": float(tts.max()),
            "tts_mean": float(tts.mean()),
            "risk_mean": float(risks.mean()),
            "ceiling_max": float(ceilings.max()),
            "deco_required": [s.model_name for s in summaries if s.requires_deco],
            "direct_ascent": [s.model_name for s in summaries if not s.requires_deco],
            "deco_agreement": len({s.requires_deco for s in summaries}) == 1,
        }

    def plot_comparison(
        self, summaries: List[ModelSummary], save_path: Optional[str] = None
    ) -> plt.Figure:
        """
        Bar charts of TTS, ceiling and risk per model.

        Args:
            summaries: Output of compare_profile
            save_path: Path to save figure (optional)

        Returns:
            matplotlib Figure object
        """
        names = [s.model_name for s in summaries]
        positions = np.arange(len(names))
        panels = [
            ("TTS (min)", [s.tts for s in summaries]),
            ("Ceiling (m)", [s.ceiling for s in summaries]),
            ("DCS risk (%)", [s.dcs_risk for s in summaries]),
        ]

        fig, axes = plt.subplots(1, len(panels), figsize=(18, 6))
        for ax, (label, values) in zip(axes, panels):
            ax.bar(positions, values, color="steelblue")
            ax.set_xticks(positions)
            ax.set_xticklabels(names, rotation=45, ha="right", fontsize=8)
            ax.set_ylabel(label)
            ax.grid(True, axis="y", alpha=0.3)

        if summaries:
            fig.suptitle(f"Model comparison: {summaries[0].profile_name}")
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches="tight")

        return fig
