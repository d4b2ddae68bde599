"""
TrueAudio - Main Entry Point

Example usage:
    python main.py path/to/track.flac
    python main.py --config config/config.yaml --output results.json music/
"""

import sys

from trueaudio.cli import main

if __name__ == "__main__":
    sys.exit(main())
