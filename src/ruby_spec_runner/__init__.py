"""ruby-spec-runner: locate Ruby tests and synthesize the commands that run them."""

__version__ = "0.1.0"
