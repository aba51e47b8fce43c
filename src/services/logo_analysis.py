"""Automated logo checks: resolution, format, transparency and contrast, plus a dominant-colour palette."""

import logging
from dataclasses import dataclass, field
from io import BytesIO

import requests
from PIL import Image, UnidentifiedImageError

from core.errors import UpstreamError
from models.logo_review import LogoCheck

logger = logging.getLogger(__name__)

PREFERRED_FORMATS = {"PNG", "WEBP"}
ACCEPTED_FORMATS = PREFERRED_FORMATS | {"JPEG", "GIF"}
SVG_CONTENT_TYPE = "image/svg+xml"
# Difference between the lightest and darkest luminance values
MIN_LUMINANCE_RANGE = 96
PALETTE_SIZE = 5


@dataclass
class LogoAnalysis:
    checks: list[LogoCheck]
    palette: list[str] = field(default_factory=list)


class LogoAnalyzer:
    def __init__(self, timeout: float = 10.0, max_bytes: int = 5 * 1024 * 1024,
                 min_dimension: int = 500, max_pixels: int = 25_000_000,
                 session: requests.Session | None = None):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.min_dimension = min_dimension
        self.max_pixels = max_pixels
        self.session = session or requests.Session()

    def run_checks(self, url: str) -> list[LogoCheck]:
        return self.analyze(url).checks

    def analyze(self, url: str) -> LogoAnalysis:
        content, content_type = self._download(url)

        if content_type == SVG_CONTENT_TYPE or url.lower().endswith(".svg"):
            return LogoAnalysis(checks=[
                LogoCheck(name="Format", passed=True, message="SVG vector logo"),
                LogoCheck(name="Resolution", passed=True, message="Vector images scale to any size"),
                LogoCheck(name="Transparency", passed=True, message="Vector images have no background"),
                LogoCheck(name="Contrast", passed=True, message="Not measured for vector images"),
            ])

        try:
            image = Image.open(BytesIO(content))
            width, height = image.size
            # Checked from the header, before any pixel data is decoded
            if width * height > self.max_pixels:
                logger.info(f"Logo at {url} is {width}x{height}px, over the {self.max_pixels} pixel limit")
                return LogoAnalysis(checks=[
                    LogoCheck(name="Resolution", passed=False,
                              message=f"{width}x{height}px is too large to process"),
                ])
            image.load()
        except Image.DecompressionBombError as e:
            logger.info(f"Logo at {url} rejected as a decompression bomb: {e}")
            return LogoAnalysis(checks=[
                LogoCheck(name="Resolution", passed=False, message="Image dimensions are too large to process"),
            ])
        except (UnidentifiedImageError, OSError) as e:
            logger.info(f"Logo at {url} is not a readable image: {e}")
            return LogoAnalysis(checks=[
                LogoCheck(name="Format", passed=False, message="File is not a readable image"),
            ])

        return LogoAnalysis(
            checks=[
                self.check_format(image),
                self.check_resolution(image),
                self.check_transparency(image),
                self.check_contrast(image),
            ],
            palette=self.palette(image),
        )

    def _download(self, url: str) -> tuple[bytes, str]:
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()
                content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
                chunks = []
                size = 0
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise UpstreamError(f"Logo exceeds the {self.max_bytes // (1024 * 1024)}MB limit")
                    chunks.append(chunk)
        except requests.RequestException as e:
            logger.error(f"Failed to download logo {url}: {e}")
            raise UpstreamError("Could not download the logo for analysis")
        return b"".join(chunks), content_type

    def check_format(self, image: Image.Image) -> LogoCheck:
        fmt = (image.format or "").upper()
        if fmt in PREFERRED_FORMATS:
            return LogoCheck(name="Format", passed=True, message=f"{fmt} format is suitable for printing")
        if fmt in ACCEPTED_FORMATS:
            return LogoCheck(name="Format", passed=True, message=f"{fmt} accepted; PNG or SVG preferred")
        return LogoCheck(name="Format", passed=False, message=f"Unsupported format {fmt or 'unknown'}")

    def check_resolution(self, image: Image.Image) -> LogoCheck:
        width, height = image.size
        if min(width, height) >= self.min_dimension:
            return LogoCheck(name="Resolution", passed=True, message=f"{width}x{height}px")
        return LogoCheck(
            name="Resolution",
            passed=False,
            message=f"{width}x{height}px is below the minimum of {self.min_dimension}px",
        )

    def check_transparency(self, image: Image.Image) -> LogoCheck:
        has_alpha = image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
        if has_alpha:
            return LogoCheck(name="Transparency", passed=True, message="Logo has a transparent background")
        return LogoCheck(name="Transparency", passed=False, message="Logo has no transparent background")

    def check_contrast(self, image: Image.Image) -> LogoCheck:
        low, high = image.convert("L").getextrema()
        if high - low >= MIN_LUMINANCE_RANGE:
            return LogoCheck(name="Contrast", passed=True, message="Sufficient contrast")
        return LogoCheck(name="Contrast", passed=False, message="Low contrast, the logo may not be legible on a tote")

    def palette(self, image: Image.Image, size: int = PALETTE_SIZE) -> list[str]:
        """Dominant colours as hex strings, most frequent first."""
        rgb = _flatten(image)
        rgb.thumbnail((128, 128))
        quantized = rgb.quantize(colors=size)
        colours = quantized.getpalette()
        counts = sorted(quantized.getcolors() or [], reverse=True)
        return [
            "#{:02x}{:02x}{:02x}".format(*colours[index * 3:index * 3 + 3])
            for _, index in counts[:size]
        ]


def _flatten(image: Image.Image) -> Image.Image:
    """RGB copy with transparent areas composited onto white."""
    if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")
