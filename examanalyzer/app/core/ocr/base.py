import base64
import re
from typing import List


class OCRError(RuntimeError):
    """Remote OCR request failed."""


class OCREngine:
    """
    Base class for all OCR engines.
    Any OCR engine must implement get_text(), taking rendered page images
    (base64 data URLs, one per page) and returning the recognised text.
    """

    def get_text(self, images: List[str]) -> str:
        raise NotImplementedError("OCR engine must implement get_text()")

    def read_page(self, image: str) -> str:
        """OCR a single image, e.g. one photographed handwritten answer."""
        return self.get_text([image])


_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def decode_image(image: str) -> bytes:
    """Decode one page payload, with or without the data URL prefix."""
    return base64.b64decode(_DATA_URL_PREFIX.sub("", image))
