"""Live parsing of load-test simulation logs into metric events."""

from g2i_parser.api import ParserSettings, RunOutcome, run_main

__all__ = ["ParserSettings", "RunOutcome", "run_main"]
