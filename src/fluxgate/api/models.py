"""Pydantic request and response models for the Fluxgate API.

Models
------
GenerationRequest
    Payload for ``POST /{slug}/image/generate``.  Only ``prompt`` is
    required; every other field falls back to a configured default.
GenerationResult
    Body of every ``POST`` response, success or failure.
HealthResponse
    Body of the ``GET`` liveness check.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from fluxgate.core.config import GatewayConfig


class GenerationRequest(BaseModel):
    """Request body for an image generation.

    Fields are typed ``Any``: values are forwarded to the remote model
    exactly as the caller sent them, with no coercion or range checking.
    Absent or ``null`` fields stay ``None`` here and :meth:`effective_params`
    substitutes the configured defaults.

    Attributes:
        prompt: Text describing the desired image.  Must be non-empty.
        seed: Seed for the model's randomness.
        randomize_seed: Ask the remote model to pick its own seed.
        width: Image width in pixels.
        height: Image height in pixels.
        num_inference_steps: Number of diffusion steps.
    """

    prompt: Any = Field(
        default=None,
        description="Free-text description of the image to generate.",
    )
    seed: Any = Field(default=None, description="Generation seed.")
    randomize_seed: Any = Field(
        default=None,
        description="Let the remote model choose a random seed.",
    )
    width: Any = Field(default=None, description="Image width in pixels.")
    height: Any = Field(default=None, description="Image height in pixels.")
    num_inference_steps: Any = Field(
        default=None,
        description="Number of diffusion inference steps.",
    )

    def effective_params(self, config: GatewayConfig) -> dict[str, Any]:
        """Return the keyword arguments sent to the remote endpoint."""
        return {
            "prompt": self.prompt,
            "seed": _default(self.seed, config.default_seed),
            "randomize_seed": _default(self.randomize_seed, config.default_randomize_seed),
            "width": _default(self.width, config.default_width),
            "height": _default(self.height, config.default_height),
            "num_inference_steps": _default(
                self.num_inference_steps, config.default_num_inference_steps
            ),
        }


class GenerationResult(BaseModel):
    """Response body for an image generation.

    Attributes:
        status: ``True`` on success.
        path: Path of the generated file on the remote host.
        url: Public URL of the generated file.
        meta: Remote file metadata merged with the effective ``seed``,
            ``width``, ``height`` and ``steps``.
        error: Human-readable failure message.
    """

    status: bool
    path: str | None = None
    url: str | None = None
    meta: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def failure(cls, message: str) -> GenerationResult:
        return cls(status=False, error=message)

    @classmethod
    def from_prediction(
        cls,
        image_data: Any,
        seed: Any,
        params: Mapping[str, Any],
    ) -> GenerationResult:
        """Build a success response from a remote prediction.

        Args:
            image_data: The remote ``FileData`` mapping, or a plain file path
                from clients that download outputs.
            seed: Seed the remote model actually used.
            params: Effective parameters the prediction was made with.

        Returns:
            A success result whose ``meta`` holds the remote metadata with
            the local ``width``/``height``/``steps`` and the returned seed
            layered on top.
        """
        if isinstance(image_data, str):
            image_data = {"path": image_data}
        elif not isinstance(image_data, Mapping):
            # Some clients return FileData objects rather than dicts.
            image_data = {
                "path": getattr(image_data, "path", None),
                "url": getattr(image_data, "url", None),
                "meta": getattr(image_data, "meta", None),
            }

        meta = dict(image_data.get("meta") or {})
        meta.update(
            seed=seed,
            width=params["width"],
            height=params["height"],
            steps=params["num_inference_steps"],
        )
        return cls(
            status=True,
            path=image_data.get("path"),
            url=image_data.get("url"),
            meta=meta,
        )

    def to_body(self) -> dict[str, Any]:
        """Serialise for the wire, omitting unset optional fields."""
        return {key: value for key, value in self.model_dump().items() if value is not None}


class HealthResponse(BaseModel):
    """Response body for the liveness check."""

    status: bool = True
    message: str = "Server is up and running"


def _default(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value
