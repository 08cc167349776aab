"""
Watermark Engine
================
Runs a WatermarkRequest through rasterizing, compositing and embedding,
and reveals hidden payloads from finished images.

Workflow of compose():
1. Validate the request
2. Rasterize every visible layer into a stamp (z-order)
3. Blend each stamp onto a private copy of the background (single or tiled)
4. Embed the source of every encrypted layer, one after another on the
   same bit walk
5. Return the copy

compose() fails closed: any error propagates and no image is returned.
reveal() fails open: it returns whatever payloads decoded before the first
unreadable one.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from ..config import EngineConfig
from ..errors import NoPayloadFoundError
from .compositor import blend, blend_tiled
from .geometry import resolve_placement, tile_placements, tile_spacing
from .models import (
    EmbeddedPayload, LayerSpec, PayloadKind, TextWatermarkSpec,
    WatermarkRequest, validate_request
)
from .pixels import PixelBuffer
from .rasterizer import GlyphRenderer, LayerRasterizer
from .stego import BitWalk, LsbCodec

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """States a compose() call moves through."""
    IDLE = "idle"
    VALIDATING = "validating"
    RASTERIZING = "rasterizing"
    COMPOSITING = "compositing"
    EMBEDDING = "embedding"
    DONE = "done"
    FAILED = "failed"


ProgressCallback = Callable[[EngineState], None]


class _ComposeRun:
    """State of a single compose() call, kept off the engine instance."""

    def __init__(self, progress: Optional[ProgressCallback]):
        self.state = EngineState.IDLE
        self._progress = progress

    def advance(self, state: EngineState):
        logger.debug("compose: %s -> %s", self.state.value, state.value)
        self.state = state
        if self._progress is not None:
            self._progress(state)


def _payload_of(layer: LayerSpec):
    if isinstance(layer, TextWatermarkSpec):
        return layer.text.encode("utf-8"), PayloadKind.TEXT
    return layer.source_pixels.to_bytes(), PayloadKind.IMAGE


class WatermarkEngine:
    """
    Composites watermark layers and hides/reveals encrypted payloads.

    The engine keeps no per-call state, so one instance may serve several
    threads as long as they never share a PixelBuffer.
    """

    def __init__(
            self,
            config: Optional[EngineConfig] = None,
            glyph_renderer: Optional[GlyphRenderer] = None
    ):
        """
        Initialize the WatermarkEngine.

        Args:
            config: Engine tunables. Defaults to EngineConfig().
            glyph_renderer: Text rasterization service. Without one the
                            engine still reveals payloads and composes image
                            layers; see silentmark.adapters.create_engine()
                            for an engine with Pillow fonts.
        """
        self.config = config or EngineConfig()
        self._rasterizer = LayerRasterizer(glyph_renderer, self.config.glyph_font_size)
        self._codec = LsbCodec()

    def compose(
            self,
            request: WatermarkRequest,
            progress: Optional[ProgressCallback] = None
    ) -> PixelBuffer:
        """
        Render all layers of ``request`` and hide its encrypted payloads.

        Args:
            request: The layers and background to compose.
            progress: Optional callback receiving every EngineState entered.

        Returns:
            A new buffer; the request's background is left untouched.

        Raises:
            ValidationError: If the request is malformed.
            CapacityError: If an image is too large or a payload does not fit.
            ResourceError: If text cannot be drawn (no or failing renderer).
        """
        run = _ComposeRun(progress)
        try:
            run.advance(EngineState.VALIDATING)
            validate_request(request, self.config.max_pixels)

            run.advance(EngineState.RASTERIZING)
            stamps = self._rasterize_layers(request)

            run.advance(EngineState.COMPOSITING)
            canvas = request.background.copy()
            for layer, stamp in stamps:
                self._composite(canvas, layer, stamp, request)

            run.advance(EngineState.EMBEDDING)
            self._embed_layers(canvas, request)

            run.advance(EngineState.DONE)
            return canvas

        except Exception:
            logger.debug("compose failed while %s", run.state.value)
            run.advance(EngineState.FAILED)
            raise

    def _reference_length(self, request: WatermarkRequest) -> int:
        width, height = request.background.size
        # Tiled stamps are capped by the shorter side so rows never overlap
        return min(width, height) if request.tile_mode else max(width, height)

    def _rasterize_layers(self, request: WatermarkRequest):
        reference_length = self._reference_length(request)
        stamps = []
        for layer in request.layers():
            if not layer.visible:
                if not layer.encrypted:
                    logger.debug("Skipping invisible, unencrypted %s", type(layer).__name__)
                continue
            stamps.append((layer, self._rasterizer.rasterize(layer, reference_length)))

        logger.debug("Rasterized %d stamp(s)", len(stamps))
        return stamps

    def _composite(
            self,
            canvas: PixelBuffer,
            layer: LayerSpec,
            stamp: PixelBuffer,
            request: WatermarkRequest
    ) -> None:
        if request.tile_mode:
            spacing = tile_spacing(
                stamp.size,
                self.config.tile_spacing_h_ratio,
                self.config.tile_spacing_v_ratio
            )
            count = blend_tiled(canvas, stamp, tile_placements(canvas.size, stamp.size, spacing))
            logger.debug("Tiled %s %d times", type(layer).__name__, count)
        else:
            placement = resolve_placement(
                canvas.size, layer.position, stamp.size, clamp=request.clamp_to_bounds
            )
            blend(canvas, stamp, placement.origin)

    def _embed_layers(self, canvas: PixelBuffer, request: WatermarkRequest) -> None:
        encrypted = [layer for layer in request.layers() if layer.encrypted]
        if not encrypted:
            return

        walk = BitWalk(canvas)
        for layer in encrypted:
            payload, kind = _payload_of(layer)
            self._codec.embed(canvas, payload, kind, walk)

        logger.debug(
            "Embedded %d payload(s), %d of %d bits used",
            len(encrypted), walk.position, walk.capacity
        )

    def reveal(self, buffer: PixelBuffer) -> List[EmbeddedPayload]:
        """
        Recover every payload hidden in ``buffer``, in embedding order.

        Stops at the first unreadable frame and returns what was decoded
        before it, so a damaged image yields a partial (possibly empty) list.
        """
        walk = BitWalk(buffer)
        payloads: List[EmbeddedPayload] = []

        while walk.remaining >= LsbCodec.OVERHEAD_SIZE:
            try:
                payloads.append(self._codec.extract(buffer, walk=walk))
            except NoPayloadFoundError as e:
                logger.debug("reveal stopped after %d payload(s): %s", len(payloads), e)
                break

        logger.info("Revealed %d payload(s)", len(payloads))
        return payloads

    def capacity(self, buffer: PixelBuffer) -> int:
        """Bits available for hidden payloads in ``buffer``."""
        return self._codec.capacity(buffer)


# Convenience functions
def compose(
        request: WatermarkRequest,
        config: Optional[EngineConfig] = None,
        glyph_renderer: Optional[GlyphRenderer] = None
) -> PixelBuffer:
    """Compose a request with a throwaway engine."""
    return WatermarkEngine(config, glyph_renderer).compose(request)


def reveal(buffer: PixelBuffer) -> List[EmbeddedPayload]:
    """Reveal payloads with a throwaway engine."""
    return WatermarkEngine().reveal(buffer)
