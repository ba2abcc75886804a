"""
Binaural Delay-Line Cross-Correlation
=====================================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the running interaural cross-correlation of Lindemann (1986),
i.e. a Jeffress-type coincidence delay line extended with contralateral inhibition
and monaural sensitivity. Two band-limited ear signals travel in opposite directions
along a shared delay line; at every position they suppress each other in proportion
to the opposing signal strength, and their product is integrated over time with an
exponential memory.

The result is a binaural activity map: for every integration window, every interaural
delay position and every frequency channel, one correlation value. Its centroid along
the delay axis is the classic lateralization estimate of the model.

The processing follows the ``bincorr`` stage of the Auditory Modeling Toolbox (AMT)
for MATLAB/Octave. Frequency channels and batch items are processed in parallel; the
time axis is processed sample by sample because every inhibition update depends on
the state left by the previous sample.

References
----------

.. [1] W. Lindemann, "Extension of a binaural cross-correlation model by
       contralateral inhibition. I. Simulation of lateralization for stationary
       signals," *J. Acoust. Soc. Am.*, vol. 80, no. 6, pp. 1608-1622, 1986.

.. [2] W. Lindemann, "Extension of a binaural cross-correlation model by
       contralateral inhibition. II. The law of the first wave front,"
       *J. Acoust. Soc. Am.*, vol. 80, no. 6, pp. 1623-1630, 1986.

.. [3] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acustica*, vol. 6,
       p. 19, 2022, doi: 10.1051/aacus/2022011.
"""

import math
import numbers
import warnings
from typing import Optional

import torch
import torch.nn as nn

# -------------------------------------------------- Utilities ----------------------------------------------------

class InvalidParameter(ValueError):
    """Input outside the validity range of the binaural correlator."""


def _round_half_up(value: float) -> int:
    # Half-way cases round away from zero, as in the AMT
    return int(math.floor(value + 0.5))


def _as_real(name: str, value) -> float:
    if isinstance(value, torch.Tensor) and value.numel() == 1:
        value = value.item()
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidParameter(f"{name} has to be a real scalar, got {type(value).__name__}")
    value = float(value)
    if math.isnan(value):
        raise InvalidParameter(f"{name} must not be NaN")
    return value


def delay_axis(fs: float, unit: str = 'samples') -> torch.Tensor:
    r"""
    Interaural delay associated with each position of the delay line.

    The line has :math:`2M + 1` positions with :math:`M = \text{round}(f_s / 2000)`.
    Since the two ear signals move in opposite directions, one position step
    corresponds to an interaural delay of :math:`2 / f_s` seconds and the whole
    axis spans about :math:`\pm 1` ms.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    unit : {'samples', 'ms'}, optional
        ``'samples'`` returns the integer positions :math:`-M, \ldots, M`;
        ``'ms'`` returns the corresponding interaural delay in milliseconds.
        Default: ``'samples'``.

    Returns
    -------
    torch.Tensor
        Delay axis, shape ``(2M + 1,)``.
    """
    fs = _as_real('fs', fs)
    if fs <= 0 or math.isinf(fs):
        raise InvalidParameter(f"fs has to be a positive scalar, got {fs}")
    M = _round_half_up(fs / 2000.0)
    positions = torch.arange(-M, M + 1)
    if unit == 'samples':
        return positions
    elif unit == 'ms':
        return positions.to(torch.float64) * 2000.0 / fs
    raise ValueError(f"unit must be 'samples' or 'ms', got '{unit}'")


def frame_axis(num_frames: int,
               fs: float,
               T_int: float,
               N_1: int,
               signal_length: Optional[int] = None) -> torch.Tensor:
    """
    End time (in seconds) of every integration window of the correlator output.

    For an infinite integration window the single frame ends with the signal, so
    ``signal_length`` has to be given.
    """
    if math.isinf(T_int):
        if signal_length is None:
            raise ValueError("signal_length is required for an infinite integration window")
        return torch.full((num_frames,), signal_length / fs, dtype=torch.float64)
    T = _round_half_up(T_int / 1000.0 * fs)
    ends = N_1 + T * torch.arange(1, num_frames + 1, dtype=torch.float64)
    return ends / fs


def lateralization_centroid(crosscorr: torch.Tensor) -> torch.Tensor:
    r"""
    Centroid of the binaural activity along the delay axis.

    The correlation is first averaged over frequency channels; for every frame the
    centroid of the delay axis (normalized to :math:`[-1, 1]`) is then computed:

    .. math::
        c(t) = \frac{\sum_m d_m \, \overline{cc}(t, m)}{\sum_m \overline{cc}(t, m)}

    Positive values mean activity at positive delay positions, which is what a
    delayed left-ear signal produces. Frames without activity (e.g. trailing
    unfilled frames) return 0.

    Parameters
    ----------
    crosscorr : torch.Tensor
        Correlator output, shape :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)`.

    Returns
    -------
    torch.Tensor
        Centroids, shape :math:`(N,)` or :math:`(B, N)`.
    """
    profile = crosscorr.mean(dim=-1)
    length = profile.shape[-1]
    if length == 1:
        return torch.zeros_like(profile[..., 0])
    d = torch.linspace(-1.0, 1.0, length, dtype=profile.dtype, device=profile.device)
    num = (profile * d).sum(dim=-1)
    den = profile.sum(dim=-1)
    active = den != 0
    safe_den = torch.where(active, den, torch.ones_like(den))
    return torch.where(active, num / safe_den, torch.zeros_like(num))

# ------------------------------------------------- Delay Line ----------------------------------------------------

class DelayLine:
    r"""
    One direction of the binaural delay line.

    Holds the activation of every delay position for every batch item and frequency
    channel, shape :math:`(B, L, F)`. A ``'tail'`` line is fed at its last position
    and travels toward position 0 (left ear); a ``'head'`` line is fed at position 0
    and travels toward the last position (right ear).

    Parameters
    ----------
    batch_size, length, num_channels : int
        State dimensions :math:`B`, :math:`L = 2M + 1` and :math:`F`.

    feed_end : {'head', 'tail'}
        Position at which new samples enter the line.

    inhibition : float
        Stationary inhibition factor :math:`c_s`.

    profile : torch.Tensor
        Static monaural sensitivity of each position, shape :math:`(L, 1)`.
    """

    def __init__(self,
                 batch_size: int,
                 length: int,
                 num_channels: int,
                 feed_end: str,
                 inhibition: float,
                 profile: torch.Tensor):
        if feed_end not in ('head', 'tail'):
            raise ValueError(f"feed_end must be 'head' or 'tail', got '{feed_end}'")
        self.feed_end = feed_end
        self.inhibition = inhibition
        self.profile = profile
        self.values = torch.zeros(batch_size, length, num_channels,
                                  dtype=profile.dtype, device=profile.device)

    def shift_and_inject(self, new_sample: torch.Tensor, inhibition_snapshot: torch.Tensor) -> torch.Tensor:
        r"""
        Advance the line by one sample.

        The oldest value leaves the line, every remaining value moves one position
        and is scaled by :math:`1 - c_s \cdot o` where :math:`o` is the opposite
        line's value at the position it leaves, and ``new_sample`` enters at the
        feeding end:

        .. math::
            l(m, n+1) = l(m+1, n) \, [1 - c_s \, r(m+1, n)]

        The next state is built out of place, so ``inhibition_snapshot`` may be the
        opposite line's ``values`` taken before either line is updated.

        Parameters
        ----------
        new_sample : torch.Tensor
            Incoming ear signal, shape :math:`(B, F)`.

        inhibition_snapshot : torch.Tensor
            Pre-update state of the opposite line, shape :math:`(B, L, F)`.

        Returns
        -------
        torch.Tensor
            Updated state, shape :math:`(B, L, F)`.
        """
        if self.feed_end == 'tail':
            kept = self.values[:, 1:] * (1.0 - self.inhibition * inhibition_snapshot[:, 1:])
            self.values = torch.cat((kept, new_sample.unsqueeze(1)), dim=1)
        else:
            kept = self.values[:, :-1] * (1.0 - self.inhibition * inhibition_snapshot[:, :-1])
            self.values = torch.cat((new_sample.unsqueeze(1), kept), dim=1)
        return self.values

    def weighted(self) -> torch.Tensor:
        """Activation after monaural sensitivity: ``v * (1 - w) + w``."""
        return self.values * (1.0 - self.profile) + self.profile


class IntegrationWindow:
    """
    Cursor over the active integration window ``(start, end]`` (1-based samples).

    ``decay`` is the time constant (in samples) of the exponential leak applied to
    the products accumulated inside the window.
    """

    def __init__(self, start: int, end: int, step: int, decay: float):
        self.start = start
        self.end = end
        self.step = step
        self.decay = decay

    def contains(self, n: int) -> bool:
        return self.start < n <= self.end

    def leak(self, n: int) -> float:
        return math.exp(-(self.end - n) / self.decay)

    def advance(self):
        self.start = self.end
        self.end = self.end + self.step


def _bincorr_core(x: torch.Tensor,
                  left_profile: torch.Tensor,
                  right_profile: torch.Tensor,
                  c_s: float,
                  window: IntegrationWindow,
                  num_frames: int) -> torch.Tensor:
    r"""
    Sample-by-sample delay-line correlation.

    Parameters
    ----------
    x : torch.Tensor
        Normalized input, shape :math:`(B, T, F, 2)`.

    left_profile, right_profile : torch.Tensor
        Monaural sensitivities, shape :math:`(L, 1)`.

    c_s : float
        Inhibition factor.

    window : IntegrationWindow
        First integration window; advanced in place at every emitted frame.

    num_frames : int
        Preallocated number of output frames.

    Returns
    -------
    torch.Tensor
        Correlation, shape :math:`(B, N, L, F)`.
    """
    batch_size, siglen, num_channels, _ = x.shape
    length = left_profile.shape[0]

    left = DelayLine(batch_size, length, num_channels, 'tail', c_s, left_profile)
    right = DelayLine(batch_size, length, num_channels, 'head', c_s, right_profile)

    crosscorr = torch.zeros(batch_size, num_frames, length, num_channels, dtype=x.dtype, device=x.device)
    cc = torch.zeros(batch_size, length, num_channels, dtype=x.dtype, device=x.device)
    frame_idx = 0

    for n in range(1, siglen + 1):
        # Both directions are inhibited by the state before this sample
        left_prev = left.values
        right_prev = right.values
        left.shift_and_inject(x[:, n - 1, :, 0], right_prev)
        right.shift_and_inject(x[:, n - 1, :, 1], left_prev)

        if window.contains(n):
            cc = cc + right.weighted() * left.weighted() * window.leak(n)

        if n == window.end:
            assert frame_idx < num_frames, "correlation frames exceed the preallocated output"
            crosscorr[:, frame_idx] = cc
            cc = torch.zeros_like(cc)
            frame_idx += 1
            window.advance()

    return crosscorr

# ---------------------------------------------------- Main -------------------------------------------------------

class BinauralCorrelation(nn.Module):
    r"""
    Running interaural cross-correlation with contralateral inhibition.

    Implements the binaural processor of Lindemann (1986): a delay line on which the
    left and right ear signals travel in opposite directions, inhibit each other,
    and are multiplied position by position. The products are integrated over
    consecutive windows with an exponential memory, yielding a binaural activity
    map over (time window, interaural delay, frequency).

    Algorithm Overview
    ------------------
    The input is first normalized to :math:`[0, 1]` by its maximum. Then, for every
    time sample :math:`n` and delay position :math:`m`:

    1. **Shift and inhibit** (Lindemann 1986a, eq. 13), both directions from the
       state before the update:

       .. math::
           l(m, n+1) &= l(m+1, n) \, [1 - c_s \, r(m+1, n)] \\
           r(m, n+1) &= r(m-1, n) \, [1 - c_s \, l(m-1, n)]

       with the new left sample entering at :math:`m = +M` and the new right
       sample at :math:`m = -M`.

    2. **Monaural sensitivity** (eq. 6a, 6b and 9):

       .. math::
           L(m) = l(m) [1 - w_l(m)] + w_l(m), \qquad
           R(m) = r(m) [1 - w_r(m)] + w_r(m)

       where each profile equals :math:`w_f` at the line's input end and decays as
       :math:`w_f \, e^{-d / M_f}` with the distance :math:`d` from it.

    3. **Running cross-correlation** inside the active window
       :math:`(N_1, N_2]`, :math:`N_2 = N_1 + T`:

       .. math::
           cc(m) \mathrel{+}= R(m) \, L(m) \, e^{-(N_2 - n) / T}

    4. **Frame emission**: at :math:`n = N_2` the accumulator is stored as the
       next output frame, reset, and the window advances by :math:`T` samples.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    c_s : float, optional
        Stationary inhibition factor, :math:`0 \le c_s \le 1` (0 disables
        inhibition). Default: 0.3.

    w_f : float, optional
        Monaural sensitivity at the input end of the delay line,
        :math:`0 \le w_f < 1`. Default: 0.035.

    M_f : float, optional
        Decay constant (in delay positions) of the monaural sensitivity along the
        delay line, :math:`M_f > 0`. Default: 6.0.

    T_int : float, optional
        Integration window in ms. Also the hop between output frames. Use
        ``math.inf`` to integrate over the whole signal and get a single frame.
        Default: 5.0.

    N_1 : int, optional
        Sample (1-based) after which the first integration window starts, used to
        skip onset effects. Default: 1.

    dtype : torch.dtype, optional
        Data type for computations. Default: ``torch.float32``.

    Attributes
    ----------
    M : int
        Half-width of the delay line, :math:`\text{round}(f_s / 2000)`.

    delay_line_length : int
        Number of delay positions, :math:`2M + 1`.

    window_samples : int or None
        Integration window in samples, ``None`` for an infinite window.

    left_profile, right_profile : torch.Tensor
        Monaural sensitivities of the left- and right-ear lines, shape :math:`(2M+1, 1)`.

    Shape
    -----
    - Input: :math:`(T, F, 2)` or :math:`(B, T, F, 2)`; the last axis holds the
      left (0) and right (1) ear.
    - Output: :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)` with
      :math:`N = \lceil T / T_{\text{int}} \rceil - 1` preallocated frames. Only
      :math:`\lfloor (T - N_1) / T_{\text{int}} \rfloor` frames are filled; the
      remaining ones stay zero.

    Raises
    ------
    InvalidParameter
        On construction for out-of-range parameters, and at the start of
        ``forward`` for a malformed signal or one too short for a full window.

    Notes
    -----
    The input is expected to be non-negative (e.g. half-wave rectified IHC
    envelopes, see :class:`IHCEnvelope`). Negative values are accepted with a
    warning, since the inhibition term is only meaningful for :math:`0 \le l, r \le 1`.

    ILD trading factors (Gaik 1993) are not applied.

    See Also
    --------
    bincorr : Functional interface.
    lateralization_centroid : Lateralization read-out of the output.
    Lindemann1986 : Complete model including the peripheral stages.

    Examples
    --------
    >>> import torch
    >>> from torch_lindemann.common.binaural import BinauralCorrelation
    >>> corr = BinauralCorrelation(fs=16000, c_s=0.3, T_int=10)
    >>> x = torch.rand(1600, 4, 2)  # 100 ms, 4 channels, 2 ears
    >>> cc = corr(x)
    >>> print(cc.shape)
    torch.Size([9, 17, 4])
    """

    def __init__(self,
                 fs: float,
                 c_s: float = 0.3,
                 w_f: float = 0.035,
                 M_f: float = 6.0,
                 T_int: float = 5.0,
                 N_1: int = 1,
                 dtype: torch.dtype = torch.float32):
        super().__init__()

        fs = _as_real('fs', fs)
        if fs <= 0 or math.isinf(fs):
            raise InvalidParameter(f"fs has to be a positive scalar, got {fs}")
        c_s = _as_real('c_s', c_s)
        if not 0.0 <= c_s <= 1.0:
            raise InvalidParameter(f"0 <= c_s <= 1 is required, got {c_s}")
        w_f = _as_real('w_f', w_f)
        if not 0.0 <= w_f < 1.0:
            raise InvalidParameter(f"0 <= w_f < 1 is required, got {w_f}")
        M_f = _as_real('M_f', M_f)
        if M_f <= 0:
            raise InvalidParameter(f"M_f has to be a positive scalar, got {M_f}")
        T_int = _as_real('T_int', T_int)
        if T_int <= 0:
            raise InvalidParameter(f"T_int has to be a positive scalar, got {T_int}")
        N_1 = _as_real('N_1', N_1)
        if N_1 < 1 or not N_1.is_integer():
            raise InvalidParameter(f"N_1 has to be a positive integer, got {N_1}")

        self.fs = fs
        self.c_s = c_s
        self.w_f = w_f
        self.M_f = M_f
        self.T_int = T_int
        self.N_1 = int(N_1)
        self.dtype = dtype

        if math.isinf(T_int):
            self.window_samples = None
        else:
            self.window_samples = _round_half_up(T_int / 1000.0 * fs)
            if self.window_samples < 1:
                raise InvalidParameter(f"T_int={T_int} ms is shorter than one sample at fs={fs} Hz")

        # Maximum interaural delay of 1 ms; the delay line runs at half the
        # sampling interval, so M positions cover M/fs seconds per direction
        self.M = _round_half_up(fs / 2000.0)
        self.delay_line_length = 2 * self.M + 1
        if self.M == 0:
            warnings.warn(f"fs={fs} Hz collapses the delay line to a single position")

        distance = torch.arange(self.delay_line_length, dtype=dtype)
        right_profile = w_f * torch.exp(-distance / M_f)
        left_profile = torch.flip(right_profile, dims=[0])
        self.register_buffer('left_profile', left_profile.unsqueeze(1))
        self.register_buffer('right_profile', right_profile.unsqueeze(1))

    def _validate_signal(self, x) -> torch.Tensor:
        if not isinstance(x, torch.Tensor):
            try:
                x = torch.as_tensor(x)
            except (TypeError, ValueError, RuntimeError) as e:
                raise InvalidParameter(f"signal has to be numeric: {e}") from e
        if x.dtype == torch.bool or x.is_complex():
            raise InvalidParameter(f"signal has to be real-valued, got {x.dtype}")
        if x.ndim not in (3, 4) or x.shape[-1] != 2:
            raise InvalidParameter(f"signal has to be a two channel signal of shape (T, F, 2) "
                                   f"or (B, T, F, 2), got {tuple(x.shape)}")
        if x.shape[-2] < 1 or x.shape[-3] < 1:
            raise InvalidParameter(f"signal needs at least one sample and one frequency channel, "
                                   f"got {tuple(x.shape)}")
        x = x.to(self.dtype)
        if not torch.isfinite(x).all():
            raise InvalidParameter("signal contains non-finite values")
        return x

    def _first_window(self, siglen: int) -> IntegrationWindow:
        if self.window_samples is None:
            if siglen <= self.N_1:
                raise InvalidParameter(f"siglen has to be longer than N_1={self.N_1} for T_int=inf, "
                                       f"got {siglen}")
            span = siglen - 1
            return IntegrationWindow(self.N_1, siglen, span, float(span))
        T = self.window_samples
        if siglen <= self.N_1 + T:
            raise InvalidParameter(f"siglen has to be longer than N_1+T_int={self.N_1 + T}, got {siglen}")
        return IntegrationWindow(self.N_1, self.N_1 + T, T, float(T))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        r"""
        Compute the running cross-correlation of a banded binaural signal.

        Parameters
        ----------
        x : torch.Tensor
            Banded binaural signal, shape :math:`(T, F, 2)` or :math:`(B, T, F, 2)`.
            Array-likes are converted with ``torch.as_tensor``.

        Returns
        -------
        torch.Tensor
            Correlation, shape :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)`.

        Raises
        ------
        InvalidParameter
            If the signal is malformed or too short for one integration window.
        """
        x = self._validate_signal(x)
        if x.ndim == 3:
            x = x.unsqueeze(0)
            squeeze_output = True
        else:
            squeeze_output = False

        siglen = x.shape[1]
        window = self._first_window(siglen)
        num_frames = math.ceil(siglen / window.step) - 1

        if (x < 0).any():
            warnings.warn("signal has negative values; the inhibition model expects "
                          "non-negative (rectified) input")

        # Ensure 0 <= x <= 1 per batch item (Lindemann 1986a, eq. 4). The peak is
        # offset in double precision so that low-level float32 input is not damped.
        peak = x.amax(dim=(1, 2, 3), keepdim=True).cpu().to(torch.float64)
        scale = 1.0 / (peak + torch.finfo(torch.float64).eps)
        x = x * scale.to(device=x.device, dtype=x.dtype)

        output = _bincorr_core(x,
                               self.left_profile.to(x.device),
                               self.right_profile.to(x.device),
                               self.c_s,
                               window,
                               num_frames)

        if squeeze_output:
            output = output.squeeze(0)

        return output

    def delay_axis(self, unit: str = 'samples') -> torch.Tensor:
        """Delay axis of the output, see :func:`delay_axis`."""
        return delay_axis(self.fs, unit=unit)

    def frame_axis(self, num_frames: int, signal_length: Optional[int] = None) -> torch.Tensor:
        """End time (s) of each output frame, see :func:`frame_axis`."""
        return frame_axis(num_frames, self.fs, self.T_int, self.N_1, signal_length=signal_length)

    def extra_repr(self) -> str:
        """
        Extra representation string for module printing.

        Returns
        -------
        str
            String containing key module parameters.
        """
        return (f"fs={self.fs}, c_s={self.c_s}, w_f={self.w_f}, M_f={self.M_f}, "
                f"T_int={self.T_int} ms, N_1={self.N_1}, delay_line_length={self.delay_line_length}")


def bincorr(insig: torch.Tensor,
            fs: float,
            c_s: float,
            w_f: float,
            M_f: float,
            T_int: float,
            N_1: int) -> torch.Tensor:
    """
    Cross-correlation between the two ears of a banded binaural signal.

    Functional form of :class:`BinauralCorrelation`; builds the correlator and
    applies it once. The computation runs in the dtype of ``insig`` when it is
    floating point, else in ``float32``.

    Parameters
    ----------
    insig : torch.Tensor
        Signal of shape :math:`(T, F, 2)` or :math:`(B, T, F, 2)`.

    fs, c_s, w_f, M_f, T_int, N_1
        See :class:`BinauralCorrelation`.

    Returns
    -------
    torch.Tensor
        Correlation, shape :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)`.
    """
    dtype = insig.dtype if isinstance(insig, torch.Tensor) and insig.is_floating_point() else torch.float32
    corr = BinauralCorrelation(fs=fs, c_s=c_s, w_f=w_f, M_f=M_f, T_int=T_int, N_1=N_1, dtype=dtype)
    return corr(insig)
