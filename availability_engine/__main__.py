"""
Convenience entry point for running the engine directly.

Usage: python -m availability_engine [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
