"""Core data types shared by every pipeline stage."""

from blisper.core.ir import SampleBuffer, Segment, TranscriptionResult

__all__ = ["SampleBuffer", "Segment", "TranscriptionResult"]
