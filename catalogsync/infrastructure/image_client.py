"""Image generation HTTP client.

Calls the external image generation service for product imagery. The
service is treated as slow and unreliable; the image job queue bounds
each call with its own timeout and retry budget.
"""

from typing import Any

import httpx
import structlog

from catalogsync.catalog.transformer import placeholder_images
from catalogsync.domain.exceptions import ImageGenerationError
from catalogsync.domain.models import ImageSet, InternalProduct

logger = structlog.get_logger()

GENERATE_PATH = "/api/mcp/generate-product-images"
IMAGE_TYPES = ("primary", "technical", "application")


def build_image_request(product: InternalProduct) -> dict[str, Any]:
    """Build the generation request body for a product."""
    return {
        "product": {
            "name": product.name,
            "partNumber": product.sku,
            "category": product.category,
            "brand": product.brand or "Professional Grade",
            "description": product.description or product.name,
        },
        "imageTypes": list(IMAGE_TYPES),
        "promptCategory": "product_image_primary",
        "provider": "openai",
    }


def _image_url(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("url") or "")
    return str(value or "")


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


class HttpImageGenerator:
    """HTTP client for the image generation service.

    Example usage:
        generator = HttpImageGenerator("http://images:8080", timeout=60.0)
        image_set = await generator.generate_images(product)
        await generator.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize image client.

        Args:
            base_url: Image service base URL.
            timeout: Request timeout in seconds.
            transport: Optional transport override (tests use MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        """Request imagery for a product.

        Args:
            product: Internal product to illustrate.

        Returns:
            ImageSet with the generated URLs.

        Raises:
            ImageGenerationError: On transport errors, non-2xx responses or
                an unsuccessful result payload.
        """
        try:
            client = await self._get_client()
            response = await client.post(GENERATE_PATH, json=build_image_request(product))
        except httpx.RequestError as e:
            logger.error(
                "Image service request failed",
                product_id=product.id,
                error=str(e),
            )
            raise ImageGenerationError(product.id, f"Request failed: {str(e)}") from e

        if response.status_code >= 400:
            raise ImageGenerationError(
                product.id,
                f"Image service error: {response.status_code} - {response.text}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ImageGenerationError(product.id, "Image service returned invalid JSON") from e

        if not isinstance(data, dict):
            raise ImageGenerationError(product.id, "Image service returned a non-object body")

        if not data.get("success"):
            raise ImageGenerationError(
                product.id, str(data.get("error") or "Image generation failed")
            )

        images = data.get("images")
        if not isinstance(images, dict):
            images = {}
        primary = _image_url(images.get("primary"))
        if not primary:
            raise ImageGenerationError(product.id, "Image service returned no primary image")

        gallery = [_image_url(value) for value in _as_list(images.get("gallery"))]
        return ImageSet(
            primary=primary,
            technical=_image_url(images.get("technical")),
            application=_image_url(images.get("application")),
            gallery=tuple(url for url in gallery if url),
            provider=data.get("provider") or "unknown",
        )


class PlaceholderImageGenerator:
    """Offline generator used when no image service is configured."""

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        images = placeholder_images(product)
        return ImageSet(
            primary=images.primary,
            technical=images.technical,
            application=images.application,
            provider="placeholder",
        )
