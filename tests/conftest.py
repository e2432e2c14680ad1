"""Shared fixtures for the decompression model tests."""

import pytest

from decomodels import (
    AIR,
    BuhlmannModel,
    BvmModel,
    HillsModel,
    Nmri98Model,
    RgbmFoldedModel,
    TbdmModel,
    ThalmannModel,
    VpmbModel,
)

MODEL_CLASSES = [
    BuhlmannModel,
    VpmbModel,
    RgbmFoldedModel,
    HillsModel,
    Nmri98Model,
    ThalmannModel,
    BvmModel,
    TbdmModel,
]


def _dive(model, depth, minutes, gas_mix=AIR, step=1.0):
    """Hold ``depth`` for ``minutes`` in ``step``-minute updates, advancing the clock."""
    state = model.get_dive_state()
    model.update_dive_state(depth=depth, gas_mix=gas_mix)
    elapsed = 0.0
    while elapsed < minutes - 1e-9:
        dt = min(step, minutes - elapsed)
        model.update_tissue_loadings(dt)
        elapsed += dt
        model.update_dive_state(time=state.time + elapsed)
    return model


@pytest.fixture
def dive():
    return _dive


@pytest.fixture(params=MODEL_CLASSES, ids=lambda cls: cls.__name__)
def any_model(request):
    """A freshly constructed instance of every model variant."""
    return request.param()
