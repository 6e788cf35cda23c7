"""Error types shared across evidence preparation steps.

Each maps to one failure class: configuration, input validation and
collaborator contract. Failing external commands surface as
subprocess.CalledProcessError from svprep.provenance.do.
"""


class ConfigurationError(Exception):
    """Run configuration cannot be satisfied, such as evidence without a sample name.
    """
    pass


class InputValidationError(ValueError):
    """Missing or invalid input: bad file signature, malformed depth specification.
    """
    pass


class CollaboratorError(RuntimeError):
    """An external collaborator returned malformed or missing results.
    """
    pass
