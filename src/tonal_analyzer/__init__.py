"""Tonal Analyzer - real-time key, chord, tension and cadence analysis of MIDI."""

__version__ = "0.1.0"
