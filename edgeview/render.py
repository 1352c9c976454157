"""
render.py - VTK render pipeline for one viewport.

A RenderContext owns every VTK object needed to show one slice of a
VolumetricImage: render window, renderer, camera, interactor, image
mapper and image actor.  The view is static.  The camera uses parallel
projection and the interactor style has no pan, zoom or rotate
manipulators.

Contexts are not reused.  A new file selection disposes the current
context and builds a fresh one.  dispose() releases everything the
context allocated and may be called more than once; if construction
fails part way, whatever was already created is disposed before the
error propagates.
"""

import logging
from typing import Any, Optional

import numpy as np

import vtkmodules.vtkInteractionStyle  # noqa: F401 (registers interactor styles)
import vtkmodules.vtkRenderingOpenGL2  # noqa: F401 (registers the OpenGL backend)
from vtkmodules.util.numpy_support import numpy_to_vtk
from vtkmodules.vtkCommonDataModel import vtkImageData
from vtkmodules.vtkInteractionStyle import vtkInteractorStyleUser
from vtkmodules.vtkRenderingCore import (
    vtkCamera,
    vtkImageSlice,
    vtkImageSliceMapper,
    vtkRenderer,
    vtkRenderWindow,
    vtkRenderWindowInteractor,
)

from edgeview.errors import OutOfBounds
from edgeview.volume import VolumetricImage

logger = logging.getLogger(__name__)


def to_vtk_image(image: VolumetricImage) -> vtkImageData:
    """
    Copy *image* into a new vtkImageData.

    The flat buffer is already x-fastest, slice-by-slice, which is the
    point ordering vtkImageData expects, so no transpose is needed.
    """
    vtk_image = vtkImageData()
    vtk_image.SetDimensions(image.width, image.height, image.depth)
    vtk_image.SetSpacing(*image.spacing)
    vtk_image.SetOrigin(*image.origin)
    array = numpy_to_vtk(np.ascontiguousarray(image.scalars), deep=True)
    array.SetName("scalars")
    vtk_image.GetPointData().SetScalars(array)
    return vtk_image


def _embed_widget(container: Any):
    """Create a QVTKRenderWindowInteractor inside the Qt *container*."""
    import vtkmodules.qt
    vtkmodules.qt.PyQtImpl = "PySide6"
    from vtkmodules.qt.QVTKRenderWindowInteractor import QVTKRenderWindowInteractor

    widget = QVTKRenderWindowInteractor(container)
    layout = container.layout()
    if layout is not None:
        layout.addWidget(widget)
    return widget


class RenderContext:
    """All live VTK objects for one viewport."""

    def __init__(
        self,
        container: Any = None,
        background: tuple[float, float, float] = (0.0, 0.0, 0.0),
        offscreen: bool = False,
    ):
        self.widget = None
        self.render_window: Optional[vtkRenderWindow] = None
        self.renderer: Optional[vtkRenderer] = None
        self.interactor: Optional[vtkRenderWindowInteractor] = None
        self.interactor_style: Optional[vtkInteractorStyleUser] = None
        self.image_data: Optional[vtkImageData] = None
        self.mapper: Optional[vtkImageSliceMapper] = None
        self.actor: Optional[vtkImageSlice] = None
        self.slice_index: Optional[int] = None

        try:
            self._build(container, background, offscreen)
        except BaseException:
            self.dispose()
            raise

    def _build(self, container, background, offscreen) -> None:
        self.renderer = vtkRenderer()
        self.renderer.SetBackground(*background)

        if container is not None:
            self.widget = _embed_widget(container)
            self.render_window = self.widget.GetRenderWindow()
            self.interactor = self.render_window.GetInteractor()
        else:
            self.render_window = vtkRenderWindow()
            self.render_window.SetOffScreenRendering(1 if offscreen else 0)
            self.interactor = vtkRenderWindowInteractor()
            self.interactor.SetRenderWindow(self.render_window)
        self.render_window.AddRenderer(self.renderer)

        # vtkInteractorStyleUser binds no camera manipulation to the mouse.
        self.interactor_style = vtkInteractorStyleUser()
        self.interactor.SetInteractorStyle(self.interactor_style)

        self.camera.ParallelProjectionOn()

        if self.widget is not None:
            self.widget.Initialize()
        logger.debug("Render context created (embedded=%s).", self.widget is not None)

    # -- state ---------------------------------------------------------------

    @property
    def alive(self) -> bool:
        return self.renderer is not None

    @property
    def camera(self) -> vtkCamera:
        return self.renderer.GetActiveCamera()

    def _require_alive(self) -> None:
        if not self.alive:
            raise RuntimeError("Render context has already been disposed.")

    # -- pipeline ------------------------------------------------------------

    def attach_image(
        self,
        image: VolumetricImage,
        slice_index: int = 0,
        window: Optional[tuple[float, float]] = None,
        render: bool = True,
    ) -> None:
        """
        Show slice *slice_index* of *image*.

        Parameters
        ----------
        image : VolumetricImage
            Image to display.  Its buffer is copied; later changes to the
            image do not reach the viewport.
        slice_index : int
            Z slice handed to the image mapper.
        window : (centre, width), optional
            Colour level / window for the image actor.
        render : bool
            Issue a render pass once the camera has been reset.
        """
        self._require_alive()
        if not 0 <= slice_index < image.depth:
            raise OutOfBounds(
                f"Slice {slice_index} is outside an image with {image.depth} slice(s)."
            )
        self._detach_image()

        self.image_data = to_vtk_image(image)

        self.mapper = vtkImageSliceMapper()
        self.mapper.SetInputData(self.image_data)
        self.mapper.SliceAtFocalPointOff()
        self.mapper.SliceFacesCameraOff()
        self.mapper.SetOrientationToZ()
        self.mapper.SetSliceNumber(slice_index)
        self.slice_index = slice_index

        self.actor = vtkImageSlice()
        self.actor.SetMapper(self.mapper)
        if window is not None:
            center, width = window
            prop = self.actor.GetProperty()
            prop.SetColorLevel(center)
            prop.SetColorWindow(width)

        self.renderer.AddViewProp(self.actor)
        self.renderer.ResetCamera()
        self.renderer.ResetCameraClippingRange()
        if render:
            self.render()

    def render(self) -> None:
        self._require_alive()
        self.render_window.Render()

    def _detach_image(self) -> None:
        if self.actor is not None:
            if self.renderer is not None:
                self.renderer.RemoveViewProp(self.actor)
            if self.render_window is not None:
                self.actor.ReleaseGraphicsResources(self.render_window)
        self.actor = None
        self.mapper = None
        self.image_data = None
        self.slice_index = None

    # -- teardown ------------------------------------------------------------

    def dispose(self) -> None:
        """Release every VTK object this context created.  Idempotent."""
        if self.renderer is None and self.render_window is None and self.widget is None:
            return

        self._detach_image()

        if self.render_window is not None:
            if self.renderer is not None:
                self.render_window.RemoveRenderer(self.renderer)
            self.render_window.Finalize()

        if self.widget is not None:
            self.widget.Finalize()
            self.widget.setParent(None)
            self.widget.deleteLater()
        elif self.interactor is not None:
            self.interactor.SetRenderWindow(None)

        self.interactor_style = None
        self.interactor = None
        self.renderer = None
        self.render_window = None
        self.widget = None
        logger.debug("Render context disposed.")

    def __enter__(self) -> "RenderContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()
