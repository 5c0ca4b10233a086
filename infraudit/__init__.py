"""
InfraAudit Drift Engine
-----------------------
Detects and classifies configuration drift in cloud infrastructure.
"""

__version__ = "0.1.0"
