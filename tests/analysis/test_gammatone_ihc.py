"""
Peripheral Stages - Gammatone Filterbank and IHC Envelope Test Suite

Contents:
1. test_erb_scale: ERB conversions and ERB-spaced center frequencies
2. test_gammatone_tone_response: 0 dB gain at the center frequency, attenuation off-band
3. test_gammatone_invalid: parameter validation
4. test_ihc_against_scipy: DF2T recursion matches scipy.signal.lfilter
5. test_ihc_rectification: DC gain and half-wave rectification
6. test_frequency_response_visualization: magnitude responses of both stages

Figures generated:
- peripheral_frequency_response.png: gammatone magnitude responses and IHC low-pass
"""

import math
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pytest
import torch
from scipy.signal import lfilter, freqz

from torch_lindemann.common import (
    GammatoneFilterbank,
    IHCEnvelope,
    audfiltbw,
    erb2fc,
    erbspacebw,
    fc2erb,
)


def test_erb_scale():
    """Test ERB conversions and ERB-spaced center frequencies."""
    print("\n" + "="*80)
    print("TEST 1: ERB SCALE")
    print("="*80)

    f = torch.tensor([100.0, 500.0, 1000.0, 4000.0], dtype=torch.float64)
    roundtrip = erb2fc(fc2erb(f))
    print(f"\nERB-rate: {fc2erb(f).tolist()}")
    print(f"Roundtrip error: {(roundtrip - f).abs().max():.3e}")
    assert torch.allclose(roundtrip, f, rtol=1e-12)
    assert audfiltbw(torch.tensor(1000.0)).item() == pytest.approx(24.7 + 1000.0 / 9.265)

    fc = erbspacebw(100.0, 8000.0)
    print(f"Channels 100-8000 Hz: {len(fc)}")
    assert len(fc) == 30
    assert fc[0].item() == pytest.approx(100.0, rel=1e-5)
    assert (torch.diff(fc) > 0).all()

    single = erbspacebw(500.0, 500.0, dtype=torch.float64)
    assert single.shape == (1,)
    assert single.item() == pytest.approx(500.0)

    for flow, fhigh, bwmul in [(0.0, 100.0, 1.0), (500.0, 400.0, 1.0), (100.0, 200.0, 0.0)]:
        with pytest.raises(ValueError):
            erbspacebw(flow, fhigh, bwmul=bwmul)

    print(f"\n✓ ERB checks passed")


def test_gammatone_tone_response():
    """Test 0 dB gain at the center frequency and off-band attenuation."""
    print("\n" + "="*80)
    print("TEST 2: GAMMATONE TONE RESPONSE")
    print("="*80)

    fs = 16000
    fb = GammatoneFilterbank(fc=torch.tensor([1000.0]), fs=fs)
    t = torch.arange(int(0.2 * fs), dtype=torch.float32) / fs

    on_band = fb(torch.sin(2 * math.pi * 1000.0 * t))
    off_band = fb(torch.sin(2 * math.pi * 4000.0 * t))

    steady = slice(len(t) // 2, None)
    gain_on = on_band[0, steady].abs().max().item()
    gain_off = off_band[0, steady].abs().max().item()
    print(f"\nSteady-state amplitude @ 1000 Hz: {gain_on:.4f}")
    print(f"Steady-state amplitude @ 4000 Hz: {gain_off:.2e}")

    assert on_band.shape == (1, len(t))
    assert gain_on == pytest.approx(1.0, abs=0.05)
    assert gain_off < 1e-2

    print(f"\n✓ Tone response checks passed")


def test_gammatone_invalid():
    """Test parameter validation of the filterbank."""
    with pytest.raises(ValueError):
        GammatoneFilterbank(fc=(500.0, 500.0), fs=0)
    with pytest.raises(ValueError):
        GammatoneFilterbank(fc=torch.tensor([]), fs=16000)
    with pytest.raises(ValueError):
        GammatoneFilterbank(fc=(1000.0, 500.0), fs=16000)

    # Channels at or above Nyquist would alias
    for fc in ([8000.0], [1000.0, 9000.0], [-100.0]):
        with pytest.raises(ValueError, match="fs/2"):
            GammatoneFilterbank(fc=torch.tensor(fc), fs=16000)
    with pytest.raises(ValueError, match="fs/2"):
        GammatoneFilterbank(fc=(4500.0, 6000.0), fs=8000)
    assert GammatoneFilterbank(fc=torch.tensor([3999.0]), fs=8000).num_channels == 1


def test_ihc_against_scipy():
    """Test that the DF2T recursion matches scipy.signal.lfilter."""
    print("\n" + "="*80)
    print("TEST 4: IHC FILTER VS SCIPY")
    print("="*80)

    fs = 16000
    x = torch.rand(3, 500, dtype=torch.float64)

    for order in (1, 2):
        ihc = IHCEnvelope(fs=fs, order=order, dtype=torch.float64)
        y = ihc(x)
        y_ref = lfilter(ihc.b.numpy(), ihc.a.numpy(), x.numpy(), axis=-1)
        err = np.abs(y.numpy() - y_ref).max()
        print(f"\nOrder {order}: b={ihc.b.tolist()}, a={ihc.a.tolist()}")
        print(f"  Max error vs scipy: {err:.3e}")
        assert err < 1e-12

    print(f"\n✓ Filter checks passed")


def test_ihc_rectification():
    """Test DC gain and half-wave rectification."""
    print("\n" + "="*80)
    print("TEST 5: IHC RECTIFICATION")
    print("="*80)

    ihc = IHCEnvelope(fs=16000, dtype=torch.float64)
    x = torch.cat([torch.full((1, 400), 0.5), torch.full((1, 400), -0.5)]).to(torch.float64)
    y = ihc(x)

    print(f"\nFinal value, positive DC: {y[0, -1]:.6f}")
    print(f"Final value, negative DC: {y[1, -1]:.6f}")
    assert y[0, -1].item() == pytest.approx(0.5, abs=1e-6)
    assert (y[1] == 0).all()
    assert ihc.cutoff == 800.0

    with pytest.raises(ValueError):
        IHCEnvelope(fs=16000, method='meddis')
    with pytest.raises(ValueError):
        IHCEnvelope(fs=1000, cutoff=800.0)

    print(f"\n✓ Rectification checks passed")


def test_frequency_response_visualization():
    """Plot gammatone magnitude responses and the IHC low-pass."""
    print("\n" + "="*80)
    print("TEST 6: FREQUENCY RESPONSE VISUALIZATION")
    print("="*80)

    fs = 16000
    n_fft = 8192
    fb = GammatoneFilterbank(fc=(200.0, 2000.0), fs=fs)
    impulse = torch.zeros(n_fft)
    impulse[0] = 1.0
    ir = fb(impulse)
    freqs = np.fft.rfftfreq(n_fft, d=1 / fs)
    H = np.abs(np.fft.rfft(ir.numpy(), axis=-1))

    ihc = IHCEnvelope(fs=fs, dtype=torch.float64)
    w, h_ihc = freqz(ihc.b.numpy(), ihc.a.numpy(), worN=2048, fs=fs)

    fig, axes = plt.subplots(1, 2, figsize=(13, 5))

    ax = axes[0]
    for k in range(fb.num_channels):
        ax.semilogx(freqs[1:], 20 * np.log10(H[k, 1:] + 1e-12), linewidth=1.0)
    ax.set_xlim(50, 8000)
    ax.set_ylim(-60, 5)
    ax.set_xlabel('Frequency [Hz]')
    ax.set_ylabel('Magnitude [dB]')
    ax.set_title(f'Gammatone filterbank ({fb.num_channels} channels)')
    ax.grid(True, which='both', alpha=0.3)

    ax = axes[1]
    ax.semilogx(w[1:], 20 * np.log10(np.abs(h_ihc[1:])), 'k-', linewidth=1.5)
    ax.axvline(ihc.cutoff, color='r', linestyle='--', label=f'{ihc.cutoff:.0f} Hz')
    ax.set_xlabel('Frequency [Hz]')
    ax.set_ylabel('Magnitude [dB]')
    ax.set_title('IHC low-pass (lindemann)')
    ax.grid(True, which='both', alpha=0.3)
    ax.legend()

    plt.tight_layout()

    TEST_FIGURES_DIR = Path(__file__).parent.parent.parent / 'test_figures'
    TEST_FIGURES_DIR.mkdir(exist_ok=True)
    output_path = TEST_FIGURES_DIR / 'peripheral_frequency_response.png'
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"\nFigure saved: {output_path}")

    # Every channel peaks close to its center frequency at about 0 dB
    peaks = freqs[H.argmax(axis=-1)]
    for fc_k, peak_k, gain_k in zip(fb.fc.tolist(), peaks, H.max(axis=-1)):
        print(f"  fc={fc_k:7.1f} Hz -> peak {peak_k:7.1f} Hz, {20 * np.log10(gain_k):+.2f} dB")
        assert abs(peak_k - fc_k) < 0.1 * fc_k
        assert abs(20 * np.log10(gain_k)) < 1.0

    # -3 dB at the cutoff
    cutoff_db = 20 * np.log10(np.abs(h_ihc[np.argmin(np.abs(w - ihc.cutoff))]))
    assert cutoff_db == pytest.approx(-3.0, abs=0.2)

    print(f"\n✓ Visualization completed")
