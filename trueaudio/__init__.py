"""
TrueAudio - spectral quality analysis

Estimates the true recording bandwidth of decoded audio and flags
high-frequency content that looks artificially reconstructed, such as
lossy files re-encoded to a lossless container.
"""

__version__ = "2.0.0"
__author__ = "TrueAudio Team"
