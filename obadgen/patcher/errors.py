"""Errors raised while baking badge data into images."""


class PatchError(Exception):
    """Base class of all errors raised by the patchers."""


class VerifyAlreadySet(PatchError):
    """The image already carries a badge marker with a different payload."""

    def __init__(self, present: str, proposed: str):
        super().__init__("'verify' is already set to a different value.")
        self.present = present
        self.proposed = proposed


class ImageFormatError(PatchError):
    """The image could not be decoded, or the rewritten image could not be encoded."""


class UnsupportedImageType(PatchError, ValueError):
    """The file extension does not name a format that can carry a badge."""

    def __init__(self, path):
        super().__init__(f"Unsupported image type (expected .png or .svg): {path}")
        self.path = path
