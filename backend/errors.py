class ExportError(ValueError):
    """Fatal export failure: bad input, unknown survey or unsupported format option."""
