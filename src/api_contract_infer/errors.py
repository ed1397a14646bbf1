"""Error taxonomy for the inference pipeline.

Each class maps to one degradation category. None of them is fatal to a run:
the unit boundaries catch them, record a warning and fall back.
"""


class ContractInferenceError(Exception):
    """Base class for every error raised by the pipeline."""


class SourceNotFoundError(ContractInferenceError):
    """A configured directory or source file does not exist."""


class MalformedDeclarationError(ContractInferenceError):
    """Unterminated delimiter group or an unparseable declaration."""


class UnresolvableReferenceError(ContractInferenceError):
    """A validator or declared-type reference could not be resolved."""


class SchemaConversionError(UnresolvableReferenceError):
    """A validation-library schema could not be converted."""
