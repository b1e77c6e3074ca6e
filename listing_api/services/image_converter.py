# listing_api/services/image_converter.py
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from PIL import Image
from starlette.concurrency import run_in_threadpool

from listing_api.config import Settings
from listing_api.constants import THUMB_PREFIX

logger = logging.getLogger(__name__)


class ImageConversionError(Exception):
    pass


class ImageConverter(ABC):
    """(input_path, size) -> output_path, longest side bounded by size"""

    name = "abstract"

    async def convert(self, input_path: str, size: int, output_path: Optional[str] = None) -> str:
        if output_path is None:
            directory, base = os.path.split(input_path)
            output_path = os.path.join(directory, f"{THUMB_PREFIX}{size}_{base}")
        await self._resize(input_path, size, output_path)
        return output_path

    @abstractmethod
    async def _resize(self, input_path: str, size: int, output_path: str):
        pass


class PillowImageConverter(ImageConverter):
    name = "pillow"

    async def _resize(self, input_path: str, size: int, output_path: str):
        await run_in_threadpool(self._convert, input_path, size, output_path)

    @staticmethod
    def _convert(input_path: str, size: int, output_path: str):
        try:
            with Image.open(input_path) as img:
                fmt = img.format
                img.thumbnail((size, size))
                if fmt == "JPEG" and img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                img.save(output_path, format=fmt)
        except (OSError, ValueError) as e:
            raise ImageConversionError(f"Pillow could not resize {input_path} to {size}: {e}") from e


class ImageMagickConverter(ImageConverter):
    name = "imagemagick"

    def __init__(self, binary: str = "convert"):
        self.binary = binary

    async def _resize(self, input_path: str, size: int, output_path: str):
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary, input_path, "-thumbnail", f"{size}x{size}>", output_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ImageConversionError(f"Cannot run {self.binary}: {e}") from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise ImageConversionError(
                f"{self.binary} exited with {process.returncode}: {stderr.decode(errors='replace').strip()}"
            )
        if not os.path.exists(output_path):
            raise ImageConversionError(f"{self.binary} produced no output for {input_path}")


def build_converter(settings: Settings) -> ImageConverter:
    if settings.IMAGE_CONVERTER == "imagemagick":
        return ImageMagickConverter(settings.IMAGEMAGICK_BINARY)
    return PillowImageConverter()
