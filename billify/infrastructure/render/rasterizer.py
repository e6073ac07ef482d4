# billify/infrastructure/render/rasterizer.py
import io
import logging

from PIL import Image
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from billify.config.settings import settings
from billify.domain.errors import RemoteServiceError

logger = logging.getLogger(__name__)

# A4 width at 96 DPI
VIEWPORT_WIDTH = 794
VIEWPORT_HEIGHT = 1123
DEVICE_SCALE_FACTOR = 2


class PlaywrightRasterizer:
    """Renders an HTML string into one tall bitmap with a headless browser."""

    def __init__(self, browser: str = settings.PLAYWRIGHT_BROWSER,
                 timeout_seconds: int = settings.RASTER_TIMEOUT_SECONDS,
                 scale: int = DEVICE_SCALE_FACTOR):
        self.browser = browser
        self.timeout_ms = timeout_seconds * 1000
        self.scale = scale

    async def rasterize(self, html: str) -> Image.Image:
        try:
            async with async_playwright() as p:
                launcher = getattr(p, self.browser)
                browser = await launcher.launch()
                try:
                    page = await browser.new_page(
                        viewport={"width": VIEWPORT_WIDTH, "height": VIEWPORT_HEIGHT},
                        device_scale_factor=self.scale,
                    )
                    # Wait for logos and web fonts before capturing
                    await page.set_content(html, wait_until="networkidle", timeout=self.timeout_ms)
                    png = await page.screenshot(full_page=True, type="png", timeout=self.timeout_ms)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            logger.error(f"Rasterization failed: {e}")
            raise RemoteServiceError("Failed to render invoice HTML") from e

        image = Image.open(io.BytesIO(png))
        image.load()
        logger.info(f"Rasterized invoice to {image.width}x{image.height}px")
        return image.convert("RGB")
