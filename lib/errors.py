# lib/errors.py
"""
Exceptions shared by the readers, services and routes.

Validation problems subclass ValueError and lookups subclass LookupError, so
the routes can map them onto 400 and 404 responses.
"""


class InvalidIdentifierError(ValueError):
    """A protein, PDB or chain identifier that does not have the expected shape."""


class RangeParseError(ValueError):
    """A residue range string that cannot be parsed."""


class DomainSummaryParseError(ValueError):
    """A domain summary XML document that is not well formed."""


class SessionStateError(ValueError):
    """A curation session that cannot perform the requested transition."""


class NotFoundError(LookupError):
    pass


class StructureNotFoundError(NotFoundError):
    def __init__(self, pdb_id: str, errors=None):
        self.pdb_id = pdb_id
        self.errors = errors or []
        detail = "; ".join(self.errors) if self.errors else "no source returned data"
        super().__init__(f"Structure {pdb_id} not available: {detail}")
