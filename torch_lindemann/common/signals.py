"""
Binaural Test Signals
=====================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Stimulus generators for lateralization experiments with the Lindemann model:
sinusoids carrying a controlled interaural time difference (ITD) and interaural
level difference (ILD).

References
----------
.. [1] B. C. J. Moore, *An Introduction to the Psychology of Hearing*, 5th ed.
       Academic Press, 2003.
"""

import math

import torch


def gaindb(signal: torch.Tensor, db: float) -> torch.Tensor:
    """
    Apply a gain in dB: ``signal * 10 ** (db / 20)``.

    Parameters
    ----------
    signal : torch.Tensor
        Input signal of any shape.

    db : float
        Gain in dB. Positive values amplify, negative values attenuate.

    Returns
    -------
    torch.Tensor
        Scaled signal, same shape as input.
    """
    return signal * (10.0 ** (db / 20.0))


def itdildsin(fc: float,
              itd: float,
              ild: float,
              fs: float,
              duration: float = 1.0,
              dtype: torch.dtype = torch.float32) -> torch.Tensor:
    r"""
    Sinusoid with an interaural time and level difference.

    A sine of frequency ``fc`` is generated for both ears. The lagging ear is
    delayed by :math:`\lceil f_s |\text{itd}| / 1000 \rceil` samples (zeros are
    shifted in at the start); the ILD is applied to the right ear. The result is
    scaled to a maximum absolute value just below 1.

    Parameters
    ----------
    fc : float
        Frequency of the sinusoid in Hz, ``fc >= 0``.

    itd : float
        Interaural time difference in ms. Positive values delay the left ear
        (the sound is lateralized to the right), negative values the right ear.

    ild : float
        Level of the right ear relative to the left one, in dB.

    fs : float
        Sampling rate in Hz.

    duration : float, optional
        Signal duration in seconds. Default: 1.0.

    dtype : torch.dtype, optional
        Data type of the output. Default: ``torch.float32``.

    Returns
    -------
    torch.Tensor
        Binaural signal, shape ``(T, 2)``; column 0 is the left ear, column 1 the
        right ear.

    Examples
    --------
    >>> sig = itdildsin(500.0, 0.5, 0.0, 16000, duration=0.1)
    >>> print(sig.shape)
    torch.Size([1600, 2])
    >>> print(bool((sig[:8, 0] == 0).all()))
    True
    """
    if fc < 0:
        raise ValueError(f"fc must be a non-negative scalar, got {fc}")
    if fs <= 0:
        raise ValueError(f"fs must be a positive scalar, got {fs}")
    if duration <= 0:
        raise ValueError(f"duration must be a positive scalar, got {duration}")

    siglen = int(round(fs * duration))
    t = torch.arange(1, siglen + 1, dtype=torch.float64) / fs
    tone = torch.sin(2.0 * math.pi * fc * t)

    itdsamples = min(math.ceil(fs * abs(itd) / 1000.0), siglen)
    delayed = torch.cat([torch.zeros(itdsamples, dtype=torch.float64), tone[:siglen - itdsamples]])

    if itd < 0:
        left, right = tone, delayed
    else:
        left, right = delayed, tone
    right = gaindb(right, ild)

    outsig = torch.stack([left, right], dim=1)
    outsig = outsig / (outsig.abs().max() + torch.finfo(torch.float64).eps)

    return outsig.to(dtype)
