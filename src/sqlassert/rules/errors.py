"""Exceptions raised while building or evaluating rules.

Validation problems are never raised; they are returned as data by
``sqlassert.rules.validation``. The errors below are fatal to the single rule
being built or evaluated and propagate to the caller.

None of these subclass ``ValueError``: raised from inside a pydantic
validator they surface as-is rather than being folded into a
``ValidationError``.
"""


class RuleError(Exception):
    """Base class for rule construction and evaluation errors."""


class ConversionError(RuleError):
    """A literal cannot be represented in the declared numeric domain."""


class ConfigurationError(ConversionError):
    """A rule's declared value domain is incompatible with its operation."""


class FormatError(RuleError):
    """A textual cell or literal matches none of the accepted formats."""


class EmptyResult(RuleError):
    """A queried cell was NULL or missing where a value was expected."""

    def __init__(self, message: str = "The result set is empty."):
        super().__init__(message)


class DatasourceNotFound(RuleError):
    """A rule references a datasource name absent from the provided map."""

    def __init__(self, datasource_name: str):
        self.datasource_name = datasource_name
        super().__init__(
            f"A datasource implementation named '{datasource_name}' was not provided."
        )
