"""
app.py - PySide6 window hosting the viewport.

The window has one file picker (multi-select, so a DICOM series can be
chosen in one go), a status line, and the container the render widget
is embedded in.  Choosing files schedules ViewportController.select_files
on the asyncio loop that PySide6.QtAsyncio runs on top of the Qt event
loop, so decoding never blocks the UI.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

import PySide6.QtAsyncio as QtAsyncio
from PySide6.QtCore import QTimer, Slot
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QFrame, QHBoxLayout, QLabel, QMainWindow,
    QPushButton, QVBoxLayout, QWidget,
)

from edgeview.config import (
    CONFIG, background_from, decoder_config_from, kernel_from, slice_index_from,
    window_preset_from,
)
from edgeview.controller import ViewportController, ViewportState
from edgeview.render import RenderContext

logger = logging.getLogger(__name__)

WINDOW_TITLE = "DICOM Edge Viewer"

_STATE_TEXT = {
    ViewportState.UNMOUNTED: "",
    ViewportState.IDLE: "Ready.",
    ViewportState.ACQUIRING: "Decoding...",
    ViewportState.FILTERING: "Filtering...",
    ViewportState.RENDERING: "Rendering...",
}


class ViewerWindow(QMainWindow):
    def __init__(self, controller_kwargs: dict[str, Any], background=(0.0, 0.0, 0.0), start_dir: str = ""):
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.resize(900, 800)
        self._start_dir = start_dir
        self._tasks: set[asyncio.Future] = set()

        central = QWidget(self)
        v = QVBoxLayout(central)

        row = QHBoxLayout()
        row.addWidget(QLabel("Select DICOM file series or DICOM file:", central))
        self.open_button = QPushButton("Browse...", central)
        self.open_button.clicked.connect(self.choose_files)
        row.addWidget(self.open_button)
        row.addStretch(1)
        v.addLayout(row)

        self.status = QLabel("", central)
        v.addWidget(self.status)

        # Render widgets are created and destroyed inside this frame.
        self.viewport = QFrame(central)
        self.viewport.setLayout(QVBoxLayout())
        self.viewport.layout().setContentsMargins(0, 0, 0, 0)
        v.addWidget(self.viewport, 1)

        self.setCentralWidget(central)

        self.controller = ViewportController(
            context_factory=lambda: RenderContext(container=self.viewport, background=background),
            **controller_kwargs,
        )
        self.controller.on_state_changed = self._show_state
        self.controller.mount()

    def _show_state(self, state: ViewportState) -> None:
        self.status.setText(_STATE_TEXT[state])

    @Slot()
    def choose_files(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(
            self, "Select DICOM file(s)", self._start_dir, "DICOM (*.dcm *.DCM);;All files (*)"
        )
        if paths:
            self.load(paths)

    def load(self, paths: Sequence[str]) -> None:
        """Schedule a full load cycle for *paths* on the running event loop."""
        task = asyncio.ensure_future(self.controller.select_files(list(paths)))
        self._tasks.add(task)
        task.add_done_callback(self._load_finished)

    def _load_finished(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Loading failed: %s", exc)
            self.status.setText(f"Error: {exc}")
        elif self.controller.last_error is not None:
            self.status.setText(f"Could not open the selection: {self.controller.last_error}")

    def closeEvent(self, event) -> None:
        self.controller.unmount()
        super().closeEvent(event)


def run_viewer(
    initial_paths: Optional[Sequence[str]] = None,
    config: Optional[dict[str, Any]] = None,
    kernel_preset: Optional[str] = None,
    slice_index: Optional[int] = None,
) -> None:
    """Open the viewer window and run until it is closed."""
    config = config or CONFIG
    decoder_config = decoder_config_from(config)
    controller_kwargs = {
        "decoder_config": decoder_config,
        "kernel": kernel_from(config, preset=kernel_preset),
        "slice_index": slice_index if slice_index is not None else slice_index_from(config),
        "window_preset": window_preset_from(config),
    }

    app = QApplication.instance() or QApplication([])
    window = ViewerWindow(
        controller_kwargs,
        background=background_from(config),
        start_dir=decoder_config.data_root,
    )
    window.show()

    if initial_paths:
        QTimer.singleShot(0, lambda: window.load(initial_paths))

    logger.info("Viewer started.")
    QtAsyncio.run(handle_sigint=True)
    app.quit()
