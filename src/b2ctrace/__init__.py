"""
b2ctrace: Execution-trace reconstruction for stateless identity orchestration.

Turns fragmented Journey Recorder telemetry into an ordered step list and an
ownership tree that can be inspected after the fact.
"""

__version__ = "0.1.0"
