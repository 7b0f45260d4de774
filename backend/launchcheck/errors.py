"""
Launch Checklist Engine - Exception Types

Errors local to one rule or one batch item are absorbed and reported as
messages. These exceptions cover the cases that cross a module boundary.
"""


class LaunchCheckError(Exception):
    """Base class for all engine errors."""


class RuleConfigError(LaunchCheckError):
    """A checklist item carries configuration its rule cannot use."""

    def __init__(self, rule_key: str, message: str):
        self.rule_key = rule_key
        super().__init__(f"{rule_key}: {message}")


class BatchValidationError(LaunchCheckError):
    """A bulk request was rejected before any item was processed."""


class CatalogError(LaunchCheckError):
    """Transport-level failure talking to the catalog."""


class GenerationError(LaunchCheckError):
    """The content-generation provider failed or returned nothing usable."""


class GenerationTimeout(GenerationError):
    """An asynchronous generation job did not finish within its poll budget."""

    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Generation job {job_id} still pending after {attempts} polls")
