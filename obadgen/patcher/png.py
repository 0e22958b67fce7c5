"""
Bakes Open Badge verification data into PNG images.

The image is streamed chunk by chunk. Every chunk of the source is written to
the destination unchanged and in its original order, with the exception of
``iTXt`` chunks carrying the ``openbadges`` keyword: at most one of those
survives, and it is placed right before the pixel data.

See https://www.imsglobal.org/sites/default/files/Badges/OBv2p0Final/baking/index.html#pngs
"""
import itertools
import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import png

from obadgen.constants import OPENBADGES_KEYWORD
from obadgen.patcher.errors import ImageFormatError, VerifyAlreadySet

logger = logging.getLogger(__name__)

Chunk = Tuple[bytes, bytes]

BADGE_KEYWORD = OPENBADGES_KEYWORD.encode("latin-1")
# The first chunk of any of these types starts the pixel data
IMAGE_DATA_CHUNKS = frozenset({b"IDAT", b"fcTL", b"fdAT"})


@dataclass(frozen=True)
class PngHeader:
    """The fields of an IHDR chunk."""
    width: int
    height: int
    bit_depth: int
    color_type: int
    compression: int
    filter_method: int
    interlace: int

    @classmethod
    def from_chunk(cls, data: bytes) -> "PngHeader":
        if len(data) != 13:
            raise ImageFormatError(f"IHDR chunk has {len(data)} bytes, expected 13")
        header = cls(*struct.unpack(">IIBBBBB", data))
        if header.width == 0 or header.height == 0:
            raise ImageFormatError(f"Invalid image dimensions {header.width}x{header.height}")
        return header


def is_badge_chunk(chunk_type: bytes, data: bytes) -> bool:
    return chunk_type == b"iTXt" and data.split(b"\x00", 1)[0] == BADGE_KEYWORD


def decode_itxt(data: bytes) -> Tuple[str, str]:
    """
    Decodes the payload of an iTXt chunk.

    Args:
        data (bytes): Chunk data, without length, type and CRC.

    Returns:
        Tuple[str, str]: The keyword and the (decompressed) UTF-8 text.

    Raises:
        ImageFormatError: If the chunk is malformed.
    """
    try:
        keyword, rest = data.split(b"\x00", 1)
        compressed, method = rest[0], rest[1]
        _language, _translated_keyword, text = rest[2:].split(b"\x00", 2)
        if compressed:
            if method != 0:
                raise ValueError(f"unknown compression method {method}")
            text = zlib.decompress(text)
        return keyword.decode("latin-1"), text.decode("utf-8")
    except (ValueError, IndexError, zlib.error) as e:
        raise ImageFormatError(f"Malformed iTXt chunk: {e}") from e


def encode_itxt(keyword: str, text: str) -> bytes:
    # uncompressed, empty language tag and translated keyword
    return keyword.encode("latin-1") + b"\x00\x00\x00\x00\x00" + text.encode("utf-8")


def _read_chunks(reader: png.Reader) -> Iterator[Chunk]:
    try:
        for chunk_type, data in reader.chunks():
            yield bytes(chunk_type), bytes(data)
    except (png.Error, ValueError, EOFError) as e:
        raise ImageFormatError(f"Failed to decode PNG: {e}") from e


def _read_header_section(chunks: Iterator[Chunk]) -> Tuple[List[Chunk], Chunk]:
    """Collects the chunks preceding the pixel data, returning them and the first pixel data chunk."""
    header_section = []
    for chunk_type, data in chunks:
        if not header_section:
            if chunk_type != b"IHDR":
                raise ImageFormatError(f"First chunk is {chunk_type!r}, expected b'IHDR'")
            header = PngHeader.from_chunk(data)
            logger.debug("Image header: %s", header)
        elif chunk_type == b"IEND":
            raise ImageFormatError("PNG has no image data")
        elif chunk_type in IMAGE_DATA_CHUNKS:
            return header_section, (chunk_type, data)
        elif chunk_type == b"acTL" and len(data) == 8:
            num_frames, num_plays = struct.unpack(">II", data)
            logger.debug("Animated PNG with %d frames, played %d times", num_frames, num_plays)
        header_section.append((chunk_type, data))
    raise ImageFormatError("PNG ended before any image data")


def _patch_header_section(chunks: Iterable[Chunk], verify: str,
                          fail_if_verify_present: bool) -> List[Chunk]:
    """
    Filters the header section and appends the badge chunk when needed.

    Everything is forwarded unchanged except for badge iTXt chunks,
    which are kept if they already carry ``verify``, rejected if they carry
    something else and ``fail_if_verify_present`` is set, and dropped otherwise.
    """
    patched = []
    verify_already_as_proposed = False
    for chunk_type, data in chunks:
        if is_badge_chunk(chunk_type, data):
            _, present = decode_itxt(data)
            if present != verify:
                if fail_if_verify_present:
                    raise VerifyAlreadySet(present=present, proposed=verify)
                logger.info("openbadges iTXt chunk is set to another value -> overwriting!")
                continue
            if verify_already_as_proposed:
                logger.info("Dropping duplicate openbadges iTXt chunk")
                continue
            logger.info("openbadges iTXt chunk is already set to the desired value!")
            verify_already_as_proposed = True
        patched.append((chunk_type, data))

    if not verify_already_as_proposed:
        logger.info("openbadges iTXt chunk not yet present -> adding it!")
        patched.append((b"iTXt", encode_itxt(OPENBADGES_KEYWORD, verify)))
    return patched


def _image_data(chunks: Iterator[Chunk], verify: str, fail_if_verify_present: bool) -> Iterator[Chunk]:
    for chunk_type, data in chunks:
        if is_badge_chunk(chunk_type, data):
            _, present = decode_itxt(data)
            if present != verify and fail_if_verify_present:
                raise VerifyAlreadySet(present=present, proposed=verify)
            logger.info("Dropping openbadges iTXt chunk found after the image data")
            continue
        yield chunk_type, data


def rewrite(input_path, output_path, verify: str, fail_if_verify_present: bool = False) -> None:
    """
    Bakes ``verify`` into a PNG image.

    Args:
        input_path: Path of the PNG to read.
        output_path: Path of the PNG to write; created or truncated.
        verify (str): The payload, a hosted assertion URL or a (signed) assertion.
        fail_if_verify_present (bool): Refuse to replace a badge chunk holding a different payload.

    Raises:
        VerifyAlreadySet: If ``fail_if_verify_present`` is set and the image carries another payload.
            The destination is not touched if the conflicting chunk precedes the pixel data.
        ImageFormatError: If the source is not a well formed PNG.
        OSError: If reading or writing fails.
    """
    logger.debug("Opening input file '%s' ...", input_path)
    with open(input_path, "rb") as source:
        chunks = _read_chunks(png.Reader(file=source))
        header_section, first_data_chunk = _read_header_section(chunks)
        header_section = _patch_header_section(header_section, verify, fail_if_verify_present)

        logger.debug("Opening output file '%s' ...", output_path)
        with open(output_path, "wb") as target:
            logger.debug("Writing header section and image data ...")
            png.write_chunks(target, itertools.chain(
                header_section,
                [first_data_chunk],
                _image_data(chunks, verify, fail_if_verify_present),
            ))


def extract(input_path) -> Optional[str]:
    """
    Returns the payload baked into a PNG image, or None if there is none.

    The first ``openbadges`` iTXt chunk wins, wherever it is; ``openbadges``
    tEXt and zTXt chunks are not badge markers and are ignored.

    Raises:
        ImageFormatError: If the image is not a well formed PNG or the marker cannot be decoded.
        OSError: If reading fails.
    """
    with open(input_path, "rb") as source:
        for chunk_type, data in _read_chunks(png.Reader(file=source)):
            if is_badge_chunk(chunk_type, data):
                _, verify = decode_itxt(data)
                return verify
    return None
