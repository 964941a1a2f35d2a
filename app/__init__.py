"""Configuration and command-line entry points for the tool-call decoder."""
