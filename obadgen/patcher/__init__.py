"""
Rewrites ("bakes" in Open Badge terms) image files, adding Open Badge meta-data.

Both supported formats implement the same two functions::

    rewrite(input_path, output_path, verify, fail_if_verify_present=False)
    extract(input_path) -> Optional[str]

The functions of this package pick the implementation from the file extension.
"""
import os
from enum import Enum
from typing import Optional

from obadgen.patcher import png, svg
from obadgen.patcher.errors import ImageFormatError, PatchError, UnsupportedImageType, VerifyAlreadySet

__all__ = [
    "ImageType",
    "ImageFormatError",
    "PatchError",
    "UnsupportedImageType",
    "VerifyAlreadySet",
    "extract",
    "rewrite",
]


class ImageType(Enum):
    SVG = "svg"
    PNG = "png"

    @classmethod
    def from_path(cls, path) -> "ImageType":
        """
        Classifies a file by its extension (case-insensitive).

        Raises:
            UnsupportedImageType: If the extension is missing or neither ``png`` nor ``svg``.
        """
        ext = os.path.splitext(os.fspath(path))[1].lower()
        try:
            return cls(ext[1:])
        except ValueError:
            raise UnsupportedImageType(path) from None

    @property
    def patcher(self):
        return png if self is ImageType.PNG else svg


def rewrite(input_path, output_path, verify: str, fail_if_verify_present: bool = False) -> None:
    """
    Bakes ``verify`` into the image at ``input_path``, writing the result to ``output_path``.

    The image type is derived from ``input_path`` before any file is opened.
    See ``png.rewrite`` and ``svg.rewrite`` for the details.
    """
    image_type = ImageType.from_path(input_path)
    image_type.patcher.rewrite(input_path, output_path, verify, fail_if_verify_present)


def extract(input_path) -> Optional[str]:
    """Returns the payload baked into the image at ``input_path``, or None."""
    return ImageType.from_path(input_path).patcher.extract(input_path)
