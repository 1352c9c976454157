"""
controller.py - Viewport lifecycle: acquire -> filter -> render.

The controller owns the viewport's single RenderContext.  Each file
selection throws the current context away, builds a new one, and runs
one acquisition -> filtering -> rendering cycle against it:

    UNMOUNTED -> IDLE -> ACQUIRING -> FILTERING -> RENDERING -> IDLE

Decoding is the only suspension point.  A decode that is still in
flight is not cancelled when a newer selection (or unmount) replaces
the context.  Instead every context carries a generation number; the
generation is captured when decoding starts and checked when it
resolves, and a result for an old generation is discarded without
touching the viewport.

Filtering and rendering are synchronous and run to completion once the
decoded image is available.
"""

import enum
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

import numpy as np

from edgeview.acquisition import DecodeResult, DecoderConfig, PathLike, decode_files
from edgeview.convolution import Grid
from edgeview.errors import DecodeFailure
from edgeview.kernels import validate_kernel
from edgeview.slices import filter_image
from edgeview.volume import VolumetricImage
from edgeview.windowing import display_window

if TYPE_CHECKING:
    from edgeview.render import RenderContext

logger = logging.getLogger(__name__)

ContextFactory = Callable[[], "RenderContext"]
Decoder = Callable[[Sequence[PathLike], DecoderConfig], Awaitable[DecodeResult]]


class ViewportState(enum.Enum):
    UNMOUNTED = "unmounted"
    IDLE = "idle"
    ACQUIRING = "acquiring"
    FILTERING = "filtering"
    RENDERING = "rendering"


class ViewportController:
    """
    Orchestrates file selection, decoding, filtering and rendering.

    Parameters
    ----------
    context_factory : callable
        Returns a new RenderContext attached to the viewport container.
    decoder_config : DecoderConfig
        Passed unchanged to *decode* for every selection.
    kernel : array-like
        Kernel applied to the displayed slice.
    slice_index : int
        Slice that is filtered and displayed.
    window_preset : str, optional
        Named display window; by default the window is fitted to the
        filtered slice.
    decode : coroutine function
        Acquisition entry point, ``decode(paths, decoder_config)``.
    """

    def __init__(
        self,
        context_factory: ContextFactory,
        decoder_config: DecoderConfig,
        kernel: Grid,
        slice_index: int = 0,
        window_preset: Optional[str] = None,
        decode: Decoder = decode_files,
    ):
        self._context_factory = context_factory
        self._decoder_config = decoder_config
        self._decode = decode
        self.kernel: np.ndarray = validate_kernel(kernel)
        self.slice_index = slice_index
        self.window_preset = window_preset

        self.state = ViewportState.UNMOUNTED
        self.generation = 0
        self.context: Optional["RenderContext"] = None
        self.files: Optional[list[PathLike]] = None
        self.image: Optional[VolumetricImage] = None
        self.last_error: Optional[DecodeFailure] = None
        self.on_state_changed: Optional[Callable[[ViewportState], None]] = None

    # -- lifecycle -------------------------------------------------------------

    def _set_state(self, state: ViewportState) -> None:
        if state is self.state:
            return
        logger.debug("Viewport %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state_changed is not None:
            self.on_state_changed(state)

    def _teardown(self) -> None:
        context, self.context = self.context, None
        if context is not None:
            context.dispose()

    def _replace_context(self) -> int:
        self._teardown()
        self.generation += 1
        self.context = self._context_factory()
        return self.generation

    def is_current(self, generation: int) -> bool:
        """True while *generation* still owns a live render context."""
        return (
            generation == self.generation
            and self.context is not None
            and self.context.alive
        )

    def mount(self) -> None:
        """Create the first render context.  No-op if already mounted."""
        if self.state is not ViewportState.UNMOUNTED:
            return
        self._replace_context()
        self._set_state(ViewportState.IDLE)

    def unmount(self) -> None:
        """Dispose the render context; pending decodes become no-ops."""
        self._teardown()
        self.generation += 1
        self.files = None
        self.image = None
        self._set_state(ViewportState.UNMOUNTED)

    # -- selection -------------------------------------------------------------

    async def select_files(self, paths: Optional[Sequence[PathLike]]) -> Optional[VolumetricImage]:
        """
        Replace the selection and run a full acquire -> filter -> render cycle.

        Returns
        -------
        VolumetricImage or None
            The filtered image now on screen, or None when nothing was
            selected, decoding failed, or the result was superseded.

        Raises
        ------
        OutOfBounds
            If the configured slice is not present in the decoded image.
        """
        if self.state is ViewportState.UNMOUNTED:
            raise RuntimeError("Viewport is not mounted.")

        self.files = list(paths) if paths else None
        self.image = None
        self.last_error = None
        generation = self._replace_context()

        if not self.files:
            self._set_state(ViewportState.IDLE)
            return None

        logger.info("Loading %d file(s) (generation %d).", len(self.files), generation)
        self._set_state(ViewportState.ACQUIRING)
        try:
            result = await self._decode(self.files, self._decoder_config)
        except DecodeFailure as exc:
            logger.error("Decode failed: %s", exc)
            if self.is_current(generation):
                self.last_error = exc
                self._set_state(ViewportState.IDLE)
            return None
        except BaseException:
            if self.is_current(generation):
                self._set_state(ViewportState.IDLE)
            raise

        result.worker.terminate()

        if not self.is_current(generation):
            logger.warning(
                "Discarding decoded image for generation %d; viewport is at generation %d.",
                generation, self.generation,
            )
            return None

        try:
            self._set_state(ViewportState.FILTERING)
            filter_image(result.image, self.kernel, slice_index=self.slice_index)

            self._set_state(ViewportState.RENDERING)
            window = display_window(
                result.image,
                preset=self.window_preset,
                slice_index=self.slice_index,
                use_header=False,
            )
            self.context.attach_image(result.image, self.slice_index, window=window)
        finally:
            self._set_state(ViewportState.IDLE)

        self.image = result.image
        return result.image
