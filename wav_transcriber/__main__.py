"""Package entry point for ``python -m wav_transcriber``."""

from wav_transcriber.cli import main

if __name__ == "__main__":
    main()
