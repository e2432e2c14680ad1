"""
YAML configuration and model construction.

config.yaml holds one section per model (constructor keyword arguments) and a
``planning`` section with profile and ascent defaults. Sections in the file
are merged over the built-in defaults key by key.
"""

import copy
import logging
import os
from typing import Dict, Optional

import yaml

from .buhlmann import BuhlmannModel
from .bvm import BvmModel
from .errors import InvalidParameterError
from .hills import HillsModel
from .kernel import DecompressionModel
from .nmri98 import Nmri98Model
from .rgbm import RgbmFoldedModel
from .tbdm import TbdmModel
from .thalmann import ThalmannModel
from .vpmb import VpmbModel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")

MODEL_REGISTRY = {
    "buhlmann": BuhlmannModel,
    "vpmb": VpmbModel,
    "rgbm": RgbmFoldedModel,
    "hills": HillsModel,
    "nmri98": Nmri98Model,
    "thalmann": ThalmannModel,
    "bvm": BvmModel,
    "tbdm": TbdmModel,
}

DEFAULT_CONFIG = {
    "planning": {
        "ascent_rate": 9.0,
        "descent_rate": 18.0,
        "sampling_interval": 1.0,
    },
    "buhlmann": {"gf_low": 30.0, "gf_high": 85.0},
    "vpmb": {"conservatism": 3},
    "rgbm": {"conservatism": 2, "enable_repetitive_penalty": True},
    "hills": {
        "conservatism_factor": 1.0,
        "core_temperature": 37.0,
        "metabolic_rate": 1.2,
        "perfusion_multiplier": 1.0,
    },
    "nmri98": {
        "conservatism": 3,
        "max_dcs_risk": 2.0,
        "safety_factor": 1.2,
        "enable_oxygen_tracking": True,
    },
    "thalmann": {
        "max_dcs_risk": 3.5,
        "safety_factor": 1.0,
        "gradient_factor_low": 0.30,
        "gradient_factor_high": 0.85,
    },
    "bvm": {"conservatism": 3, "max_dcs_risk": 5.0},
    "tbdm": {
        "conservatism_factor": 1.0,
        "body_temperature": 37.0,
        "metabolic_bubble_rate": 0.001,
        "surface_tension_parameter": 0.0728,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Built-in defaults merged with a YAML file.

    Args:
        config_path: Path to a YAML file; None or a missing file gives defaults

    Returns:
        Dict of sections, each a dict of settings
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not config_path:
        return config
    if not os.path.exists(config_path):
        logger.debug(f"Config file {config_path} not found, using defaults")
        return config

    with open(config_path, "r") as file:
        loaded = yaml.safe_load(file) or {}
    if not isinstance(loaded, dict):
        raise InvalidParameterError(f"Config file {config_path} must contain a mapping")

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    logger.debug(f"Loaded config from {config_path}")
    return config


def create_model(name: str, config_path: Optional[str] = None, **overrides) -> DecompressionModel:
    """
    Build a model from its config section.

    Args:
        name: Registry key (buhlmann, vpmb, rgbm, hills, nmri98, thalmann, bvm, tbdm)
        config_path: Optional YAML file merged over the defaults
        **overrides: Constructor arguments that win over the config

    Returns:
        A freshly constructed model at surface equilibrium
    """
    key = name.lower()
    if key not in MODEL_REGISTRY:
        raise InvalidParameterError(
            f"Unknown model: {name}. Choose from {', '.join(MODEL_REGISTRY)}"
        )

    settings = dict(load_config(config_path).get(key) or {})
    settings.update(overrides)
    try:
        return MODEL_REGISTRY[key](**settings)
    except TypeError as e:
        raise InvalidParameterError(f"Invalid settings for {key}: {e}") from e


def create_all_models(config_path: Optional[str] = None) -> Dict[str, DecompressionModel]:
    """One instance of every registered model, keyed by registry name."""
    return {key: create_model(key, config_path) for key in MODEL_REGISTRY}
