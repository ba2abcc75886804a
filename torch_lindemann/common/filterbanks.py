"""
Auditory Filterbanks
====================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the gammatone filterbank used as the peripheral stage of
the Lindemann (1986) binaural model, together with the ERB-scale conversions
needed to place its channels.

The implementations follow standard psychoacoustic models, primarily based on the
Auditory Modeling Toolbox (AMT) for MATLAB/Octave.

References
----------
.. [1] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acustica*, vol. 6,
       p. 19, 2022, doi: 10.1051/aacus/2022011.

.. [2] V. Hohmann, "Frequency analysis and synthesis using a Gammatone filterbank,"
       *Acta Acustica united with Acustica*, vol. 88, no. 3, pp. 433-442, 2002.
"""

import math
from typing import Optional, Tuple

import numpy as np
import torch
import torch.nn as nn

# ------------------------------------------------- Utilities ------------------------------------------------

def audfiltbw(fc: torch.Tensor) -> torch.Tensor:
    r"""
    Equivalent rectangular bandwidth (Hz) of the auditory filter at ``fc``.

    .. math::
       \text{BW}(f_c) = 24.7 + \frac{f_c}{9.265}

    References
    ----------
    .. [1] B. R. Glasberg and B. C. J. Moore, "Derivation of auditory filter shapes
           from notched-noise data," *Hearing Research*, vol. 47, no. 1-2,
           pp. 103-138, 1990.
    """
    return 24.7 + fc / 9.265


def fc2erb(fc: torch.Tensor) -> torch.Tensor:
    r"""
    Convert frequency (Hz) to the ERB-rate scale (natural logarithm form).

    .. math::
       E = 9.2645 \cdot \ln(1 + 0.00437 \, f)
    """
    return 9.2645 * torch.log(1.0 + fc * 0.00437)


def erb2fc(erb: torch.Tensor) -> torch.Tensor:
    """Inverse of :func:`fc2erb`."""
    return (1.0 / 0.00437) * (torch.exp(erb / 9.2645) - 1.0)


def erbspacebw(flow: float,
               fhigh: float,
               bwmul: float = 1.0,
               device: Optional[torch.device] = None,
               dtype: torch.dtype = torch.float32) -> torch.Tensor:
    r"""
    ERB-spaced center frequencies between ``flow`` and ``fhigh``.

    Frequencies are equidistant on the ERB-rate scale, ``bwmul`` ERBs apart. When
    ``flow == fhigh`` a single channel at that frequency is returned, which is
    the default single-band configuration of the Lindemann model.

    Parameters
    ----------
    flow : float
        Lowest center frequency in Hz.

    fhigh : float
        Highest center frequency in Hz, ``fhigh >= flow``.

    bwmul : float, optional
        Spacing in ERB units. Default: 1.0.

    device : torch.device, optional
        Device of the returned tensor. Default: CPU.

    dtype : torch.dtype, optional
        Data type of the returned tensor. Default: ``torch.float32``.

    Returns
    -------
    torch.Tensor
        Center frequencies in Hz, monotonically increasing.

    Examples
    --------
    >>> fc = erbspacebw(100.0, 8000.0)
    >>> print(len(fc))
    30
    """
    if flow <= 0 or fhigh < flow:
        raise ValueError(f"0 < flow <= fhigh is required, got flow={flow}, fhigh={fhigh}")
    if bwmul <= 0:
        raise ValueError(f"bwmul has to be positive, got {bwmul}")
    if device is None:
        device = torch.device('cpu')

    erb_low = fc2erb(torch.tensor(flow, dtype=torch.float64))
    erb_high = fc2erb(torch.tensor(fhigh, dtype=torch.float64))

    n_filters = int(torch.floor((erb_high - erb_low) / bwmul).item()) + 1
    erb_vals = torch.linspace(erb_low.item(), erb_high.item(), n_filters, dtype=torch.float64)

    return erb2fc(erb_vals).to(dtype=dtype, device=device)

# ------------------------------------------------ Filterbanks ------------------------------------------------

class GammatoneFilterbank(nn.Module):
    r"""
    Bank of gammatone auditory filters using the all-pole approximation.

    Each channel approximates the impulse response

    .. math::
        g(t) = t^{n-1} \cdot e^{-2\pi\beta t} \cdot \cos(2\pi f_c t)

    as a cascade of :math:`n` identical first-order complex resonators with pole

    .. math::
        p = e^{-\phi - j\theta}, \qquad \theta = 2\pi f_c / f_s, \quad \phi = 2\pi \beta / f_s

    and gain :math:`(1 - e^{-\phi})^n`, normalizing the response to 0 dB at the
    center frequency. The cascade is evaluated by FFT convolution with the
    truncated impulse response :math:`p^k` of each stage, so no loop over time
    samples is needed and the filterbank stays differentiable.

    Parameters
    ----------
    fc : torch.Tensor or tuple of float
        Center frequencies in Hz, either explicit (shape ``(F,)``) or a
        ``(flow, fhigh)`` tuple expanded with :func:`erbspacebw` (1-ERB spacing).

    fs : float
        Sampling rate in Hz.

    n : int, optional
        Filter order. Default: 4.

    betamul : float, optional
        Bandwidth multiplier, :math:`\beta = \text{betamul} \cdot \text{ERB}(f_c)`.
        If ``None``, uses the Patterson et al. (1987) value (1.019 for ``n=4``).
        Default: ``None``.

    dtype : torch.dtype, optional
        Data type of the real-valued output. Default: ``torch.float32``.

    Attributes
    ----------
    fc : torch.Tensor
        Center frequencies in Hz, shape ``(F,)``.

    num_channels : int
        Number of frequency channels :math:`F`.

    poles : torch.Tensor
        Complex pole of every channel, shape ``(F,)``.

    gains : torch.Tensor
        Complex gain of every channel, shape ``(F,)``.

    Shape
    -----
    - Input: :math:`(B, T)` or :math:`(T,)`
    - Output: :math:`(B, F, T)` or :math:`(F, T)`

    Examples
    --------
    >>> import torch
    >>> fb = GammatoneFilterbank(fc=(300.0, 1000.0), fs=16000)
    >>> y = fb(torch.randn(2, 1600))
    >>> print(y.shape)
    torch.Size([2, 8, 1600])

    References
    ----------
    .. [1] R. D. Patterson, I. Nimmo-Smith, J. Holdsworth, and P. Rice, "An
           efficient auditory filterbank based on the gammatone function,"
           APU report 2341, 1987.

    .. [2] V. Hohmann, "Frequency analysis and synthesis using a Gammatone
           filterbank," *Acta Acustica united with Acustica*, vol. 88,
           pp. 433-442, 2002.
    """

    def __init__(self,
                 fc: torch.Tensor | Tuple[float, float],
                 fs: float,
                 n: int = 4,
                 betamul: Optional[float] = None,
                 dtype: torch.dtype = torch.float32):
        super().__init__()

        if fs <= 0:
            raise ValueError(f"fs has to be positive, got {fs}")

        self.fs = fs
        self.n = n
        self.dtype = dtype

        if isinstance(fc, tuple):
            flow, fhigh = fc
            fc_tensor = erbspacebw(flow, fhigh, bwmul=1.0, dtype=dtype)
        else:
            fc_tensor = torch.as_tensor(fc, dtype=dtype).reshape(-1).cpu()

        if fc_tensor.numel() == 0:
            raise ValueError("GammatoneFilterbank needs at least one center frequency")
        if (fc_tensor <= 0).any() or (fc_tensor >= fs / 2).any():
            raise ValueError(f"center frequencies must lie in (0, fs/2) = (0, {fs / 2}) Hz, "
                             f"got [{fc_tensor.min().item()}, {fc_tensor.max().item()}]")

        self.register_buffer('fc', fc_tensor)
        self.num_channels = len(self.fc)

        if betamul is None:
            betamul = (math.factorial(n - 1) ** 2) / (math.pi * math.factorial(2 * n - 2) * (2 ** (-(2 * n - 2))))
        self.betamul = betamul

        beta = betamul * audfiltbw(self.fc.to(torch.float64))

        theta = 2.0 * np.pi * self.fc.to(torch.float64).numpy() / fs
        phi = 2.0 * np.pi * beta.numpy() / fs
        poles = np.exp(-phi - 1j * theta)
        gains = ((1.0 - np.exp(-phi)) ** n).astype(np.complex128)

        self.register_buffer('poles', torch.tensor(poles, dtype=torch.complex64))
        self.register_buffer('gains', torch.tensor(gains, dtype=torch.complex64))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        r"""
        Apply the filterbank to the input signal.

        Parameters
        ----------
        x : torch.Tensor
            Input signal, shape :math:`(B, T)` or :math:`(T,)`.

        Returns
        -------
        torch.Tensor
            Real-valued output, shape :math:`(B, F, T)` or :math:`(F, T)`. The real
            part is doubled to compensate for the one-sided complex filters.
        """
        if x.dtype != self.dtype:
            x = x.to(self.dtype)

        if x.ndim == 1:
            x = x.unsqueeze(0)
            squeeze_output = True
        else:
            squeeze_output = False

        siglen = x.shape[-1]
        poles = self.poles.to(x.device)

        # Impulse response of one stage, truncated after ~10 time constants
        max_pole_mag = poles.abs().max().item()
        if 0 < max_pole_mag < 1:
            ir_length = int(-10.0 / math.log(max_pole_mag))
        else:
            ir_length = siglen
        ir_length = max(1, min(ir_length, siglen * 2, 10000))

        k = torch.arange(ir_length, dtype=torch.float32, device=x.device)
        ir = torch.pow(poles.unsqueeze(1), k.unsqueeze(0))  # [F, ir_length]

        fft_len = 2 ** math.ceil(math.log2(siglen + ir_length - 1))
        IR_fft = torch.fft.fft(ir, n=fft_len, dim=1).unsqueeze(0)  # [1, F, fft_len]

        y = x.to(torch.complex64).unsqueeze(1).expand(-1, self.num_channels, -1).contiguous()  # [B, F, T]
        for _ in range(self.n):
            Y_fft = torch.fft.fft(y, n=fft_len, dim=2) * IR_fft
            y = torch.fft.ifft(Y_fft, n=fft_len, dim=2)[:, :, :siglen]

        output = 2.0 * (self.gains.to(x.device).view(1, -1, 1) * y).real.to(self.dtype)

        if squeeze_output:
            output = output.squeeze(0)

        return output

    def extra_repr(self) -> str:
        """
        Extra representation string for module printing.

        Returns
        -------
        str
            String containing key module parameters.
        """
        return (f"fs={self.fs}, num_channels={self.num_channels}, "
                f"fc_range=[{self.fc.min().item():.1f}, {self.fc.max().item():.1f}] Hz, n={self.n}")
