"""Call hand-off coordination between buffer agents and licensed agents."""

__version__ = "0.1.0"
