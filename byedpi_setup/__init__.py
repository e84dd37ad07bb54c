"""Trial ByeDPI proxy settings against live domains and pick the best one."""

__version__ = "0.1.0"
