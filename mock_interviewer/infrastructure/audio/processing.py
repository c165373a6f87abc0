"""
Basic audio processing functions including format conversions and normalization.
"""
import io
import wave
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from ...config import TARGET_RMS


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    return x - np.mean(x)


def resample(mono: np.ndarray, sr_from: int, sr_to: int) -> np.ndarray:
    """Resample mono audio between arbitrary integer rates."""
    if sr_from == sr_to:
        return mono.astype(np.float32)
    g = gcd(sr_from, sr_to)
    return resample_poly(mono, up=sr_to // g, down=sr_from // g).astype(np.float32)


def normalize_audio(audio: np.ndarray, target_rms: float = TARGET_RMS) -> np.ndarray:
    """Normalize audio to target RMS level."""
    rms = float(np.sqrt(np.mean(audio**2)) + 1e-9)
    gain = min(20.0, target_rms / rms) if rms > 0 else 1.0
    return audio * gain


def to_pcm16(audio: np.ndarray) -> np.ndarray:
    """Float audio in [-1, 1] to int16 samples."""
    return np.clip(audio * 32767, -32768, 32767).astype(np.int16)


def encode_wav(pcm16: np.ndarray, sr: int, channels: int = 1) -> bytes:
    """Wrap PCM16 samples in an in-memory WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(pcm16.tobytes())
    return buf.getvalue()


def decode_wav(wav_bytes: bytes):
    """Return (float32 samples, sample rate) from a 16-bit WAV container."""
    with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
        channels = wf.getnchannels()
        sr = wf.getframerate()
    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    if channels > 1:
        samples = samples.reshape(-1, channels)
    return samples, sr


def prepare_for_stt(chunks, sr_capture: int, sr_target: int,
                    target_rms: float = TARGET_RMS) -> np.ndarray:
    """
    Assemble captured float32 chunks into normalized 16-bit mono at the STT rate.
    Returns an empty array when nothing was captured.
    """
    if not chunks:
        return np.zeros(0, dtype=np.int16)
    data = np.concatenate(chunks, axis=0)
    if data.size == 0:
        return np.zeros(0, dtype=np.int16)
    mono = remove_dc(stereo_to_mono(data))
    mono = resample(mono, sr_capture, sr_target)
    mono = normalize_audio(mono, target_rms)
    return to_pcm16(mono)
