"""
mindlink — a persistent command-line AI partner.
Streams completions from an OpenAI-style endpoint and remembers every
exchange in a local SQLite log that is fed back as context.
"""

__version__ = "0.3.0"
