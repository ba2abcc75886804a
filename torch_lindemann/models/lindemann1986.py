"""
Lindemann1986 Binaural Lateralization Model
===========================================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the complete Lindemann (1986) binaural model: a gammatone
filterbank and an inner hair cell envelope stage for each ear, followed by the
running interaural cross-correlation with contralateral inhibition. The output is
the binaural activity map (time window x interaural delay x frequency), from which
the lateralization of a sound can be read via its centroid along the delay axis.

The implementation is ported from the MATLAB Auditory Modeling Toolbox (AMT)
and extended with PyTorch for batching and GPU acceleration.

References
----------
.. [1] W. Lindemann, "Extension of a binaural cross-correlation model by
       contralateral inhibition. I. Simulation of lateralization for stationary
       signals," *J. Acoust. Soc. Am.*, vol. 80, no. 6, pp. 1608-1622, 1986.

.. [2] W. Lindemann, "Extension of a binaural cross-correlation model by
       contralateral inhibition. II. The law of the first wave front,"
       *J. Acoust. Soc. Am.*, vol. 80, no. 6, pp. 1623-1630, 1986.

.. [3] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acust.*, vol. 6,
       p. 19, 2022.
"""

from typing import Dict, Any

import torch
import torch.nn as nn

from torch_lindemann.common.filterbanks import GammatoneFilterbank
from torch_lindemann.common.ihc import IHCEnvelope
from torch_lindemann.common.binaural import BinauralCorrelation


class Lindemann1986(nn.Module):
    r"""
    Lindemann (1986) binaural model with peripheral filtering.

    Algorithm Overview
    ------------------
    **Stage 1: Gammatone Filterbank**

    Each ear signal is decomposed into :math:`F` ERB-spaced channels between
    ``flow`` and ``fhigh``. The default ``flow = fhigh = 500`` Hz gives the single
    500 Hz band used in the original lateralization simulations.

    **Stage 2: Inner Hair Cell Envelope**

    Half-wave rectification and an 800 Hz first-order low-pass (``lindemann``
    preset of :class:`IHCEnvelope`).

    **Stage 3: Binaural Cross-Correlation**

    Delay line with contralateral inhibition :math:`c_s`, monaural sensitivity
    (:math:`w_f`, :math:`M_f`) and running integration over :math:`T_{\text{int}}`
    ms windows starting after sample :math:`N_1`, see
    :class:`BinauralCorrelation`.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    flow : float, optional
        Lowest filterbank center frequency in Hz. Default: 500.

    fhigh : float, optional
        Highest filterbank center frequency in Hz. Default: 500.

    c_s : float, optional
        Stationary inhibition factor. Default: 0.3.

    w_f : float, optional
        Monaural sensitivity at the end of the delay line. Default: 0.035.

    M_f : float, optional
        Decay of the monaural sensitivity along the delay line. Default: 6.

    T_int : float, optional
        Integration time in ms (``math.inf`` for a single frame). Default: 5.

    N_1 : int, optional
        Sample after which the first integration window starts. Default: 1.

    return_stages : bool, optional
        If ``True``, ``forward`` also returns the intermediate outputs.
        Default: ``False``.

    dtype : torch.dtype, optional
        Data type for computations. Default: ``torch.float32``.

    filterbank_kwargs : dict, optional
        Extra arguments for :class:`GammatoneFilterbank`.

    ihc_kwargs : dict, optional
        Extra arguments for :class:`IHCEnvelope`.

    Attributes
    ----------
    fc : torch.Tensor
        Center frequencies of the filterbank, shape ``(F,)``.

    num_channels : int
        Number of frequency channels.

    filterbank : GammatoneFilterbank
        Stage 1.

    ihc : IHCEnvelope
        Stage 2.

    correlation : BinauralCorrelation
        Stage 3.

    Shape
    -----
    - Input: :math:`(T, 2)` or :math:`(B, T, 2)`, left ear in column 0.
    - Output: :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)`.

    Examples
    --------
    >>> import torch
    >>> from torch_lindemann import Lindemann1986, itdildsin
    >>> model = Lindemann1986(fs=16000, T_int=10)
    >>> sig = itdildsin(500.0, 0.3, 0.0, 16000, duration=0.1)
    >>> cc = model(sig)
    >>> print(cc.shape)
    torch.Size([9, 17, 1])

    See Also
    --------
    BinauralCorrelation : Stage 3 on its own.
    lateralization_centroid : Lateralization read-out.
    """

    def __init__(self,
                 fs: float,
                 flow: float = 500.0,
                 fhigh: float = 500.0,
                 c_s: float = 0.3,
                 w_f: float = 0.035,
                 M_f: float = 6.0,
                 T_int: float = 5.0,
                 N_1: int = 1,
                 return_stages: bool = False,
                 dtype: torch.dtype = torch.float32,
                 filterbank_kwargs: Dict[str, Any] = None,
                 ihc_kwargs: Dict[str, Any] = None):
        super().__init__()

        self.fs = fs
        self.flow = flow
        self.fhigh = fhigh
        self.return_stages = return_stages
        self.dtype = dtype

        filterbank_kwargs = filterbank_kwargs or {}
        ihc_kwargs = ihc_kwargs or {}

        # Stage 1: Gammatone filterbank
        filterbank_defaults = {'n': 4}
        filterbank_params = {**filterbank_defaults, **filterbank_kwargs}
        self.filterbank = GammatoneFilterbank(fc=(flow, fhigh), fs=fs, dtype=dtype, **filterbank_params)
        self.fc = self.filterbank.fc
        self.num_channels = self.filterbank.num_channels

        # Stage 2: IHC envelope (800 Hz low-pass)
        ihc_defaults = {'method': 'lindemann'}
        ihc_params = {**ihc_defaults, **ihc_kwargs}
        self.ihc = IHCEnvelope(fs=fs, dtype=dtype, **ihc_params)

        # Stage 3: Delay line with contralateral inhibition
        self.correlation = BinauralCorrelation(fs=fs, c_s=c_s, w_f=w_f, M_f=M_f,
                                               T_int=T_int, N_1=N_1, dtype=dtype)

    def forward(self, x: torch.Tensor) -> torch.Tensor | tuple[torch.Tensor, Dict[str, Any]]:
        """
        Process a binaural signal through the Lindemann model.

        Parameters
        ----------
        x : torch.Tensor
            Binaural signal, shape :math:`(T, 2)` or :math:`(B, T, 2)`.

        Returns
        -------
        torch.Tensor or tuple
            If return_stages=False:
                Binaural activity map, shape :math:`(N, 2M+1, F)` or :math:`(B, N, 2M+1, F)`.
            If return_stages=True:
                Tuple of (output, stages) where stages holds the ``filterbank`` and
                ``ihc`` outputs, each of shape :math:`(B, 2, F, T)`.
        """
        stages = {} if self.return_stages else None

        if x.ndim not in (2, 3) or x.shape[-1] != 2:
            raise ValueError(f"Expected binaural input of shape (T, 2) or (B, T, 2), got {tuple(x.shape)}")

        original_ndim = x.ndim
        if x.ndim == 2:
            x = x.unsqueeze(0)  # [T, 2] -> [1, T, 2]

        batch_size, siglen, _ = x.shape

        # Stage 1: Gammatone filterbank
        # Input: [B*2, T], Output: [B*2, F, T]
        ears = x.transpose(1, 2).reshape(batch_size * 2, siglen)
        y = self.filterbank(ears)
        if self.return_stages:
            stages['filterbank'] = y.reshape(batch_size, 2, self.num_channels, siglen).clone()

        # Stage 2: IHC envelope extraction
        y = self.ihc(y)
        if self.return_stages:
            stages['ihc'] = y.reshape(batch_size, 2, self.num_channels, siglen).clone()

        # Stage 3: Binaural cross-correlation
        # [B*2, F, T] -> [B, T, F, 2]
        y = y.reshape(batch_size, 2, self.num_channels, siglen).permute(0, 3, 2, 1)
        output = self.correlation(y)

        if original_ndim == 2:
            output = output.squeeze(0)

        if self.return_stages:
            return output, stages
        else:
            return output

    def delay_axis(self, unit: str = 'samples') -> torch.Tensor:
        """Delay axis of the binaural activity map."""
        return self.correlation.delay_axis(unit=unit)

    def extra_repr(self) -> str:
        """
        Extra representation for printing.

        Returns
        -------
        str
            String representation of module parameters.
        """
        return (f"fs={self.fs}, flow={self.flow}, fhigh={self.fhigh}, "
                f"num_channels={self.num_channels}")
