"""Reusable building blocks of the Lindemann binaural model."""

from torch_lindemann.common.filterbanks import (
    audfiltbw,
    fc2erb,
    erb2fc,
    erbspacebw,
    GammatoneFilterbank,
)
from torch_lindemann.common.ihc import IHCEnvelope
from torch_lindemann.common.binaural import (
    InvalidParameter,
    DelayLine,
    IntegrationWindow,
    BinauralCorrelation,
    bincorr,
    delay_axis,
    frame_axis,
    lateralization_centroid,
)
from torch_lindemann.common.signals import gaindb, itdildsin

__all__ = ["audfiltbw",
           "fc2erb",
           "erb2fc",
           "erbspacebw",
           "GammatoneFilterbank",
           "IHCEnvelope",
           "InvalidParameter",
           "DelayLine",
           "IntegrationWindow",
           "BinauralCorrelation",
           "bincorr",
           "delay_axis",
           "frame_axis",
           "lateralization_centroid",
           "gaindb",
           "itdildsin",
           ]
