"""
Multi-model dive decompression simulator.

Modules:
    - state: Gas mixes, dive state, tissue compartments and stops
    - kernel: Shared simulation kernel (stepping, stops, TTS, root finding)
    - buhlmann_constants: ZH-L16C tables and gradient factor calculations
    - buhlmann: Bühlmann ZH-L16C with gradient factors
    - vpmb: Varying Permeability Model (VPM-B)
    - rgbm: Folded Reduced Gradient Bubble Model
    - hills: Hills-style thermodynamic model
    - linear_exponential: Linear-exponential kinetics shared by NMRI98 and Thalmann
    - nmri98: NMRI98 linear-exponential model with oxygen tracking
    - thalmann: Thalmann VVal-18 style model
    - bvm: BVM(3) three-compartment bubble volume model
    - tbdm: Tissue-bubble diffusion model
    - profile: Dive profile generation and profile-driven simulation
    - comparator: Run several models on one profile and compare plans
    - config: YAML configuration and model construction
"""

from .state import AIR, DecompressionStop, DiveState, GasMix, TissueCompartment
from .errors import InvalidParameterError
from .kernel import DecompressionModel, consolidate_stops
from .buhlmann_constants import GF_DEFAULT, GradientFactors
from .buhlmann import BuhlmannModel
from .vpmb import VpmbModel
from .rgbm import RgbmFoldedModel
from .hills import HillsModel
from .nmri98 import Nmri98Model
from .thalmann import ThalmannModel
from .bvm import BvmModel
from .tbdm import TbdmModel
from .profile import DiveProfile, ProfileGenerator, ProfileRun, run_profile
from .comparator import ModelComparator, ModelSummary
from .config import MODEL_REGISTRY, create_model, load_config

__all__ = [
    "AIR",
    "DecompressionStop",
    "DiveState",
    "GasMix",
    "TissueCompartment",
    "InvalidParameterError",
    "DecompressionModel",
    "consolidate_stops",
    "GF_DEFAULT",
    "GradientFactors",
    "BuhlmannModel",
    "VpmbModel",
    "RgbmFoldedModel",
    "HillsModel",
    "Nmri98Model",
    "ThalmannModel",
    "BvmModel",
    "TbdmModel",
    "DiveProfile",
    "ProfileGenerator",
    "ProfileRun",
    "run_profile",
    "ModelComparator",
    "ModelSummary",
    "MODEL_REGISTRY",
    "create_model",
    "load_config",
]
