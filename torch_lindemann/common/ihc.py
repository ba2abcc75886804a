"""
Inner Hair Cell Envelope
========================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the classical inner hair cell (IHC) stage of binaural
models: half-wave rectification followed by low-pass filtering, which turns
basilar membrane motion into a non-negative drive for the binaural processor.
The ``lindemann`` preset reproduces the 800 Hz first-order low-pass used in
front of the Lindemann (1986) delay line.

References
----------
.. [1] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acustica*, vol. 6,
       p. 19, 2022, doi: 10.1051/aacus/2022011.
"""

from typing import Optional

import torch
import torch.nn as nn
from scipy.signal import butter

_PRESET_CUTOFFS = {
    'lindemann': 800.0,
    'dau1996': 1000.0,
}


class IHCEnvelope(nn.Module):
    r"""
    Inner hair cell envelope extraction.

    1. **Half-wave rectification**: :math:`x_{\text{rect}}(t) = \max(x(t), 0)`
    2. **Butterworth low-pass filtering**: :math:`y(t) = \text{IIR}(x_{\text{rect}}(t), b, a)`

    The output is non-negative, as required by the contralateral inhibition of
    :class:`BinauralCorrelation`.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    cutoff : float, optional
        Cutoff frequency of the low-pass filter in Hz. If ``None``, uses the
        preset value. Default: ``None``.

    order : int, optional
        Order of the Butterworth filter. Default: 1.

    method : {'lindemann', 'dau1996'}, optional
        Preset: ``'lindemann'`` (800 Hz) or ``'dau1996'`` (1000 Hz).
        Default: ``'lindemann'``.

    dtype : torch.dtype, optional
        Data type for internal computations. Default: ``torch.float32``.

    Shape
    -----
    - Input: :math:`(B, F, T)` or :math:`(F, T)`
    - Output: Same shape as input.

    Examples
    --------
    >>> import torch
    >>> ihc = IHCEnvelope(fs=16000, method='lindemann')
    >>> y = ihc(torch.randn(2, 4, 1600))
    >>> bool((y >= 0).all())
    True

    References
    ----------
    .. [1] W. Lindemann, "Extension of a binaural cross-correlation model by
           contralateral inhibition. I. Simulation of lateralization for stationary
           signals," *J. Acoust. Soc. Am.*, vol. 80, no. 6, pp. 1608-1622, 1986.
    """

    def __init__(self,
                 fs: float,
                 cutoff: Optional[float] = None,
                 order: int = 1,
                 method: str = 'lindemann',
                 dtype: torch.dtype = torch.float32):
        super().__init__()

        if method not in _PRESET_CUTOFFS:
            raise ValueError(f"Unknown method: {method}. Choose from: {', '.join(_PRESET_CUTOFFS)}")

        self.fs = fs
        self.method = method
        self.order = order
        self.dtype = dtype
        self.cutoff = cutoff if cutoff is not None else _PRESET_CUTOFFS[method]

        if not 0 < self.cutoff < fs / 2:
            raise ValueError(f"cutoff must lie in (0, fs/2), got {self.cutoff} Hz at fs={fs} Hz")

        b, a = butter(order, self.cutoff / (fs / 2), btype='low', analog=False)
        self.register_buffer('b', torch.tensor(b / a[0], dtype=dtype))
        self.register_buffer('a', torch.tensor(a / a[0], dtype=dtype))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Half-wave rectify and low-pass filter the input.

        Parameters
        ----------
        x : torch.Tensor
            Filterbank output, shape :math:`(B, F, T)` or :math:`(F, T)`.

        Returns
        -------
        torch.Tensor
            Envelope, same shape as input.
        """
        x = torch.clamp(x.to(self.dtype), min=0.0)

        original_shape = x.shape
        y = self._lfilter(x.reshape(-1, original_shape[-1]), self.b.to(x.device), self.a.to(x.device))
        return y.reshape(original_shape)

    @staticmethod
    def _lfilter(x: torch.Tensor, b: torch.Tensor, a: torch.Tensor) -> torch.Tensor:
        r"""
        Direct Form II Transposed filtering of ``N`` signals in parallel.

        .. math::
            y[n] &= b[0] x[n] + s_0[n-1] \\
            s_i[n] &= b[i+1] x[n] - a[i+1] y[n] + s_{i+1}[n-1]

        Coefficients are expected normalized (``a[0] == 1``). The state is rebuilt
        at every sample instead of written in place, so gradients flow through.
        """
        n_state = max(len(b), len(a)) - 1
        if n_state == 0:
            return b[0] * x

        b = torch.cat([b, b.new_zeros(n_state + 1 - len(b))])
        a = torch.cat([a, a.new_zeros(n_state + 1 - len(a))])

        N, T = x.shape
        y = torch.zeros_like(x)
        state = [x.new_zeros(N) for _ in range(n_state)]

        for t in range(T):
            x_t = x[:, t]
            y_t = b[0] * x_t + state[0]
            y[:, t] = y_t
            state = [b[i + 1] * x_t - a[i + 1] * y_t + (state[i + 1] if i + 1 < n_state else 0.0)
                     for i in range(n_state)]

        return y

    def extra_repr(self) -> str:
        """
        Extra representation string for module printing.

        Returns
        -------
        str
            String containing key module parameters.
        """
        return f"method={self.method}, fs={self.fs}, cutoff={self.cutoff} Hz, order={self.order}"
