"""Exceptions raised by the billing and rendering core."""


class InvalidDocumentError(ValueError):
    """Document is structurally invalid and cannot be rendered.

    Retrying with the same input will fail the same way.
    """
