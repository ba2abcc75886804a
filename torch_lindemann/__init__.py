"""
torch_lindemann: PyTorch Binaural Cross-Correlation Model
=========================================================

A PyTorch implementation of the Lindemann (1986) binaural model from the
Auditory Modeling Toolbox (AMT): a running interaural cross-correlation on a
delay line with contralateral inhibition and monaural sensitivity, plus the
peripheral stages that feed it.

**Key Features:**
    - Batched, device-agnostic processing (CUDA, MPS, CPU)
    - Frequency channels processed in parallel
    - Modular architecture with reusable components
    - Alignment with the AMT MATLAB/Octave implementation

**Quick Start:**

    >>> import torch
    >>> import torch_lindemann
    >>>
    >>> # Complete model: waveform -> binaural activity map
    >>> model = torch_lindemann.Lindemann1986(fs=16000, T_int=10)
    >>> sig = torch_lindemann.itdildsin(500.0, 0.3, 0.0, 16000, duration=0.2)
    >>> cc = model(sig)
    >>> lateral = torch_lindemann.lateralization_centroid(cc)
    >>>
    >>> # Or the correlator alone on an already banded signal (T, F, 2)
    >>> corr = torch_lindemann.BinauralCorrelation(fs=16000, c_s=0.3)
    >>> cc = corr(torch.rand(1600, 4, 2))

**Package Structure:**

    torch_lindemann/
    ├── models/             # Complete end-to-end models
    │   └── Lindemann1986           - Binaural lateralization model
    │
    └── common/             # Reusable building blocks
        ├── binaural.py             - Delay-line cross-correlation
        ├── filterbanks.py          - Gammatone filterbank, ERB scale
        ├── ihc.py                  - Inner hair cell envelope
        └── signals.py              - ITD/ILD test stimuli

**Author:**
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

**License:**
    GNU General Public License v3.0 or later (GPLv3+)

**Citations:**
    If you use this package in your research, please cite:

    - W. Lindemann, "Extension of a binaural cross-correlation model by
      contralateral inhibition. I. Simulation of lateralization for stationary
      signals," J. Acoust. Soc. Am., 80(6), 1608-1622, 1986.
    - Majdak, P., Hollomey, C., & Baumgartner, R. (2022). "AMT 1.x: A toolbox for
      reproducible research in auditory modeling." Acta Acustica, 6, 19.

**References:**
    - MATLAB Auditory Modeling Toolbox: http://amtoolbox.org/

**Version History:**
    - 0.1.0: Initial release
"""

# ============================================================================
# Package Metadata
# ============================================================================

__version__ = "0.1.0"
__author__ = "Stefano Giacomelli"
__email__ = "stefano.giacomelli@graduate.univaq.it"
__license__ = "GPL-3.0-or-later"
__description__ = "PyTorch implementation of the Lindemann (1986) binaural cross-correlation model"

# ============================================================================
# Public API - End-to-End Models
# ============================================================================

from torch_lindemann.models.lindemann1986 import Lindemann1986

# ============================================================================
# Public API - Common Building Blocks
# ============================================================================

# --- Filterbanks & Frequency Processing ---
from torch_lindemann.common.filterbanks import (
    audfiltbw,                          # Auditory filter bandwidth
    fc2erb,                             # Center frequency to ERB
    erb2fc,                             # ERB to center frequency
    erbspacebw,                         # ERB-spaced center frequencies
    GammatoneFilterbank,                # Gammatone auditory filterbank
)

# --- Inner Hair Cell Processing ---
from torch_lindemann.common.ihc import (
    IHCEnvelope,                        # Half-wave rectification + low-pass
)

# --- Binaural Processing ---
from torch_lindemann.common.binaural import (
    InvalidParameter,                   # Correlator input validation error
    DelayLine,                          # One direction of the delay line
    IntegrationWindow,                  # Integration window cursor
    BinauralCorrelation,                # Delay-line cross-correlation module
    bincorr,                            # Functional interface
    delay_axis,                         # Delay positions (samples / ms)
    frame_axis,                         # Frame end times (s)
    lateralization_centroid,            # Centroid along the delay axis
)

# --- Stimuli ---
from torch_lindemann.common.signals import (
    gaindb,                             # dB gain
    itdildsin,                          # Sinusoid with ITD and ILD
)

# ============================================================================
# Package-Level Exports
# ============================================================================

__all__ = [
    # Complete models
    "Lindemann1986",

    # Filterbanks
    "audfiltbw",
    "fc2erb",
    "erb2fc",
    "erbspacebw",
    "GammatoneFilterbank",

    # Inner hair cell
    "IHCEnvelope",

    # Binaural processing
    "InvalidParameter",
    "DelayLine",
    "IntegrationWindow",
    "BinauralCorrelation",
    "bincorr",
    "delay_axis",
    "frame_axis",
    "lateralization_centroid",

    # Stimuli
    "gaindb",
    "itdildsin",
]

# ============================================================================
# Convenience: Group components by category for easier discovery
# ============================================================================

filterbanks = {
    'GammatoneFilterbank': GammatoneFilterbank,
}

ihc = {
    'IHCEnvelope': IHCEnvelope,
}

binaural = {
    'BinauralCorrelation': BinauralCorrelation,
}
