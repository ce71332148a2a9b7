# ABOUTME: Alaya, a personal book-notes catalog with a web UI and a scanning CLI.
# ABOUTME: Holds the package version shared by the CLI and the HTTP User-Agent.

__version__ = "0.1.0"
