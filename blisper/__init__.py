"""blisper: transcribe audio files into subtitles with whisper.cpp.

WHY: whisper.cpp is fast and runs offline, but using it from a script is
awkward: the model files are large downloads, the engine only accepts
16 kHz mono float samples, and the native library writes diagnostics to
stderr with no way to turn them off. This package wraps all of that
behind a single command.

HOW: Four-stage pipeline. Fetch the model (models.py), normalize the
audio (audio.py), drive the engine (driver.py), and write the result
through a pluggable formatter (formatters/). Each stage is independently
testable.

RULES:
- All formatters consume the same TranscriptionResult
- The native engine is only ever touched through the Engine protocol
- Anything that writes to stdout/stderr unconditionally is wrapped in a
  StreamCapture session, never modified
"""

__version__ = "0.1.0"
