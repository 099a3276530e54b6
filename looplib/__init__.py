"""
looplib: sample-domain tools for seamless loops and slowed-down speech.

Modules:
  - buffer: SampleBuffer plus range extraction, mixing, truncation
  - fade_curves: Fade curve families (linear, log, exp, custom bezier)
  - loop_tracks: Overlap / tail loop track builders
  - resample: Linear-interpolation and silence-aware resampling
  - convergence: Duration auto-correction search for the silence resampler
  - tempo: Autocorrelation BPM estimate
  - io_utils: Loading audio, WAV encoding and saving
"""

__version__ = "0.1.0"
__author__ = "Audio DSP Tool"
