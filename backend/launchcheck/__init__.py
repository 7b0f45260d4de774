"""Launch Checklist Engine - product listing audit and remediation backend."""

__version__ = "1.0.0"
