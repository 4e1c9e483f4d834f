"""
Generation-pass orchestration.

A generation pass turns one image set into one animated mosaic::

    images -> mask -> layout -> thumbnails -> timeline -> reveal -> settle
                                                                    |
                                            interaction <-----------+

``MosaicEngine`` runs at most one pass at a time.  Starting a new pass
cancels the previous one first, and every callback a pass schedules lives
in that pass's ``CallbackGroup`` so cancellation and teardown are a single
``close``.  Collaborators learn what happens through events delivered to
subscribed listeners.
"""

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from PIL import Image

from mosaicwall.animator import FrameHook, RevealAnimation
from mosaicwall.config import MosaicConfig, validate_config
from mosaicwall.exceptions import ExportError
from mosaicwall.export import encode_base64, encode_png, save_png, settled_metadata, to_data_url
from mosaicwall.interaction import InteractionController
from mosaicwall.layout import LayoutResult, generate_layout
from mosaicwall.loader import ImageLoader
from mosaicwall.mask import GlyphMask, build_glyph_mask
from mosaicwall.renderer import FrameRenderer
from mosaicwall.scheduler import CallbackGroup, Scheduler
from mosaicwall.session import GestureGate
from mosaicwall.thumbnails import ThumbnailCache
from mosaicwall.timeline import Timeline
from mosaicwall.types import (
    CueEvent,
    GenerationStatus,
    LoadedImage,
    Phase,
    Rect,
    SourceImage,
    StatusEvent,
    TilePlacement,
)

logger = logging.getLogger(__name__)

Listener = Callable[[object], None]

REVEAL_COMPLETE_CUE = "reveal-complete"


@dataclass
class GenerationPass:
    """Everything one pass owns; released together."""
    id: int
    group: CallbackGroup
    images: list[LoadedImage]
    mask: GlyphMask
    layout: LayoutResult
    cache: ThumbnailCache
    timeline: Timeline
    renderer: FrameRenderer
    animation: RevealAnimation
    rng: random.Random
    status: GenerationStatus = GenerationStatus.RUNNING
    interaction: InteractionController | None = None
    gesture_gate: GestureGate | None = None
    cue: Callable[[], None] | None = None

    @property
    def placements(self) -> list[TilePlacement]:
        return self.layout.placements

    @property
    def phase(self) -> Phase:
        return self.animation.phase

    def release(self) -> None:
        if self.interaction is not None:
            self.interaction.stop()
        if self.gesture_gate is not None and self.cue is not None:
            self.gesture_gate.cancel_pending(self.cue)
            self.cue = None
        self.group.close()
        self.cache.clear()


class MosaicEngine:
    """Runs generation passes for one display surface.

    Parameters
    ----------
    scheduler:
        Frame/timer source shared by every pass.
    size:
        Surface size in pixels.
    display_rect:
        Where the surface sits on screen, for pointer mapping.  Defaults to
        the surface itself at the origin.
    viewport:
        Screen size used to center spotlights.  Defaults to the surface size.
    """

    def __init__(self, scheduler: Scheduler, config: MosaicConfig = MosaicConfig(),
                 size: tuple[int, int] = (1920, 1080),
                 display_rect: Optional[Rect] = None,
                 viewport: Optional[tuple[float, float]] = None,
                 gesture_gate: Optional[GestureGate] = None,
                 on_frame: Optional[FrameHook] = None) -> None:
        validate_config(config)
        self.scheduler = scheduler
        self.config = config
        self.size = size
        self.display_rect = display_rect or Rect(0, 0, size[0], size[1])
        self.viewport = viewport or (float(size[0]), float(size[1]))
        self.gesture_gate = gesture_gate
        self.on_frame = on_frame

        self.status = GenerationStatus.NO_INPUT
        self.current: GenerationPass | None = None
        self._listeners: list[Listener] = []
        self._pass_ids = itertools.count(1)

    # -- Events ------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for every event; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: object) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _set_status(self, status: GenerationStatus, detail: str = "") -> None:
        self.status = status
        if self.current is not None:
            self.current.status = status
        logger.debug("Status %s %s", status.value, detail)
        self._emit(StatusEvent(status, detail))

    # -- Passes ------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        if self.current is None:
            return Phase.IDLE
        return self.current.phase

    def load_and_generate(self, sources: Sequence[SourceImage],
                          loader: Optional[ImageLoader] = None) -> GenerationPass | None:
        """Fetch *sources* in parallel, then start a pass with the survivors."""
        self.cancel()
        if self.size[0] <= 0 or self.size[1] <= 0:
            return self.generate([])
        if loader is not None:
            images = loader.load_all(sources)
        else:
            with ImageLoader() as owned:
                images = owned.load_all(sources)
        return self.generate(images)

    def generate(self, images: Sequence[LoadedImage]) -> GenerationPass | None:
        """Start a new pass, cancelling any previous one.

        Returns None (status NO_INPUT) when there is nothing to draw.
        """
        self.cancel()
        self.current = None
        width, height = self.size
        if width <= 0 or height <= 0:
            self._set_status(GenerationStatus.NO_INPUT, f"surface is {width}x{height}")
            return None
        if not images:
            self._set_status(GenerationStatus.NO_INPUT, "no images loaded")
            return None

        pass_id = next(self._pass_ids)
        config = self.config
        rng = random.Random(config.seed)
        try:
            mask = build_glyph_mask(width, height, config.mask)
            layout = generate_layout(images, mask, config.layout, rng)
            cache = ThumbnailCache.build(layout.pool, layout.base_size, config.style)
            timeline = Timeline(config.timing)
            states = timeline.prepare(layout.placements, rng)
            renderer = FrameRenderer(mask, layout, cache, timeline, states,
                                     config.style, config.mask.font_path)
        except Exception as exc:
            logger.error("Pass %d could not be prepared: %s", pass_id, exc)
            self._set_status(GenerationStatus.FAILED, str(exc))
            raise

        group = CallbackGroup(self.scheduler)
        animation = RevealAnimation(
            group, renderer,
            on_frame=self.on_frame,
            on_settled=lambda image: self._on_settled(gen, image),
            on_failed=lambda exc: self._on_failed(gen, exc),
        )
        gen = GenerationPass(
            id=pass_id, group=group, images=list(images), mask=mask, layout=layout,
            cache=cache, timeline=timeline, renderer=renderer, animation=animation,
            rng=rng,
        )
        self.current = gen
        logger.info("Pass %d: %d tiles from %d images, reveal %.0f ms",
                    pass_id, len(layout.tiles), len(images), timeline.total_duration)
        self._set_status(GenerationStatus.RUNNING, f"pass {pass_id}")
        gen.animation.start()
        return gen

    def _on_settled(self, gen: GenerationPass, image: Image.Image) -> None:
        if gen is not self.current:
            return
        self._set_status(GenerationStatus.COMPLETE,
                         f"{len(gen.layout.tiles)} tiles, fill {gen.layout.fill_ratio:.2f}")
        gen.interaction = InteractionController(
            gen.group, gen.placements, self.size, self.display_rect, self.viewport,
            self.config.interaction, rng=gen.rng, emit=self._emit,
        )
        gen.interaction.start()
        if self.gesture_gate is not None:
            gen.gesture_gate = self.gesture_gate
            gen.cue = lambda: self._emit(CueEvent(REVEAL_COMPLETE_CUE))
            self.gesture_gate.run_when_ready(gen.cue)

    def _on_failed(self, gen: GenerationPass, exc: BaseException) -> None:
        gen.release()
        if gen is self.current:
            self._set_status(GenerationStatus.FAILED, str(exc))

    def cancel(self) -> None:
        """Stop the current pass and release everything it owns."""
        gen = self.current
        if gen is None:
            return
        was_running = gen.status is GenerationStatus.RUNNING
        gen.animation.cancel()
        gen.release()
        if was_running:
            self._set_status(GenerationStatus.CANCELLED, f"pass {gen.id}")
        logger.debug("Pass %d released", gen.id)

    def teardown(self) -> None:
        """Cancel and forget the current pass."""
        self.cancel()
        self.current = None

    # -- Pointer -----------------------------------------------------------

    def pointer_move(self, client_x: float, client_y: float) -> TilePlacement | None:
        if self.current is None or self.current.interaction is None:
            return None
        return self.current.interaction.pointer_move(client_x, client_y)

    def pointer_leave(self) -> None:
        if self.current is not None and self.current.interaction is not None:
            self.current.interaction.pointer_leave()

    def notify_gesture(self) -> None:
        if self.gesture_gate is not None:
            self.gesture_gate.notify_gesture()

    # -- Export ------------------------------------------------------------

    def _settled_pass(self) -> GenerationPass:
        gen = self.current
        if gen is None or gen.animation.settled is None:
            raise ExportError("The mosaic has not settled yet.")
        return gen

    @property
    def settled_image(self) -> Image.Image:
        return self._settled_pass().animation.settled

    def export_metadata(self) -> dict[str, str]:
        gen = self._settled_pass()
        return settled_metadata(self.config.style.title, len(gen.placements),
                                self.config.seed)

    def export_png(self) -> bytes:
        return encode_png(self.settled_image, self.export_metadata())

    def export_base64(self) -> str:
        return encode_base64(self.settled_image, self.export_metadata())

    def export_data_url(self) -> str:
        return to_data_url(self.settled_image)

    def save(self, path: Path | str | None = None) -> Path:
        return save_png(self.settled_image, path, self.export_metadata())
