"""fleetdiag: multi-host agent diagnostics orchestrator.

Runs a fixed catalog of agent commands against every device in a list,
collects the generated log archives and writes one consolidated log.
"""

__version__ = "0.1.0"
