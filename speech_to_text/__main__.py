"""Package entry point for ``python -m speech_to_text``."""

from speech_to_text.cli import main

if __name__ == "__main__":
    main()
