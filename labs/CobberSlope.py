# CobberSlope.py
# An application for exploring gradient descent on the one-parameter model y = a*x.
# Refactored for the CobberLearn launcher.

import math
import sys

from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QFrame,
    QPushButton, QFormLayout, QLineEdit, QSlider, QTableWidget, QTableWidgetItem,
    QHeaderView, QMessageBox, QStatusBar
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QFont, QColor
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from labs.CobberLog import get_logger
from labs.CobberSlopeConfig import DEFAULT_MANUAL_SLOPE, SLIDER_RANGE
from labs.CobberSlopeRun import RunPhase, StepController
from labs.CobberSlopeTimer import QtStepScheduler

logger = get_logger(__name__)

SLIDER_MIN, SLIDER_MAX, SLIDER_STEP = SLIDER_RANGE


class MplCanvas(FigureCanvas):
    """A custom matplotlib canvas."""

    def __init__(self, parent=None, width=5, height=4, dpi=100):
        self.fig = Figure(figsize=(width, height), dpi=dpi)
        self.axes = self.fig.add_subplot(111)
        super(MplCanvas, self).__init__(self.fig)
        self.setParent(parent)

    def resizeEvent(self, event):
        super(MplCanvas, self).resizeEvent(event)
        try:
            self.fig.tight_layout()
        except ValueError:
            pass


class CobberSlopeApp(QMainWindow):
    def __init__(self, controller: StepController = None):
        super().__init__()

        # --- BRANDING ---
        self.cobber_maroon = QColor(108, 29, 69)
        self.cobber_gold = QColor(234, 170, 0)
        self.lato_font = QFont("Lato")

        self.setWindowTitle("CobberSlope")
        self.setGeometry(100, 100, 1550, 800)
        self.setFont(self.lato_font)

        self.scheduler = QtStepScheduler(self)
        if controller is None:
            controller = StepController(scheduler=self.scheduler)
            controller.set_slope(DEFAULT_MANUAL_SLOPE)
        elif controller.scheduler is None:
            controller.scheduler = self.scheduler
        self.controller = controller

        main_layout = QHBoxLayout()
        main_layout.addWidget(self.create_controls_panel(), 2)
        main_layout.addWidget(self.create_charts_panel(), 6)
        main_layout.addWidget(self.create_breakdown_panel(), 4)

        central_widget = QWidget()
        central_widget.setLayout(main_layout)
        self.setCentralWidget(central_widget)
        self.setStatusBar(QStatusBar())

        self.populate_data_table()
        self.controller.subscribe(self.on_controller_changed)
        self.refresh()

    # --- Layout ---

    def create_controls_panel(self):
        panel = QFrame()
        panel.setFrameShape(QFrame.Shape.StyledPanel)
        layout = QVBoxLayout(panel)

        layout.addWidget(QLabel("<b>1. Data Points (x, y)</b>"))
        self.data_table = QTableWidget(0, 2)
        self.data_table.setHorizontalHeaderLabels(["x", "y"])
        self.data_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.data_table.itemChanged.connect(self.on_data_item_changed)
        layout.addWidget(self.data_table)
        self.reset_all_button = QPushButton("Reset All")
        self.reset_all_button.clicked.connect(self.reset_all)
        layout.addWidget(self.reset_all_button)

        layout.addWidget(QLabel("<b>2. Gradient Descent Settings</b>"))
        hp = self.controller.hyperparameters
        self.initial_slope_input = QLineEdit(str(hp.initial_slope))
        self.learning_rate_input = QLineEdit(str(hp.learning_rate))
        self.initial_slope_input.editingFinished.connect(self.on_hyperparameters_edited)
        self.learning_rate_input.editingFinished.connect(self.on_hyperparameters_edited)
        form_layout = QFormLayout()
        form_layout.addRow("Initial a₀:", self.initial_slope_input)
        form_layout.addRow("Learning rate η:", self.learning_rate_input)
        layout.addLayout(form_layout)

        self.reset_button = QPushButton("Reset Simulation")
        self.step_button = QPushButton("Step")
        self.run_button = QPushButton("Auto Run")
        self.reset_button.clicked.connect(lambda: self.controller.reset())
        self.step_button.clicked.connect(lambda: self.controller.step())
        self.run_button.clicked.connect(lambda: self.controller.toggle_run())
        for button in (self.reset_button, self.step_button, self.run_button):
            layout.addWidget(button)

        layout.addWidget(QLabel("<b>3. Adjust the slope by hand</b>"))
        self.slope_slider = QSlider(Qt.Orientation.Horizontal)
        self.slope_slider.setRange(round(SLIDER_MIN / SLIDER_STEP), round(SLIDER_MAX / SLIDER_STEP))
        self.slope_slider.valueChanged.connect(self.on_slider_moved)
        self.slope_label = QLabel()
        self.slope_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.slope_slider)
        layout.addWidget(self.slope_label)

        self.mse_label = QLabel()
        self.gradient_label = QLabel()
        self.mse_label.setStyleSheet("font-size: 16px; font-weight: bold; color: #ef4444;")
        self.gradient_label.setStyleSheet("font-size: 16px; font-weight: bold; color: #7e22ce;")
        layout.addWidget(self.mse_label)
        layout.addWidget(self.gradient_label)
        layout.addStretch()
        return panel

    def create_charts_panel(self):
        panel = QFrame()
        panel.setFrameShape(QFrame.Shape.StyledPanel)
        layout = QVBoxLayout(panel)
        top_row = QHBoxLayout()
        self.data_canvas = MplCanvas(self)
        self.mse_canvas = MplCanvas(self)
        top_row.addWidget(self.data_canvas)
        top_row.addWidget(self.mse_canvas)
        layout.addLayout(top_row, 3)
        self.history_canvas = MplCanvas(self, height=2)
        layout.addWidget(self.history_canvas, 2)
        return panel

    def create_breakdown_panel(self):
        panel = QFrame()
        panel.setFrameShape(QFrame.Shape.StyledPanel)
        layout = QVBoxLayout(panel)
        self.breakdown_title = QLabel()
        layout.addWidget(self.breakdown_title)
        layout.addWidget(QLabel("∂E/∂a = 2(ax − y)·x      a_new = a_old − η·∂E/∂a"))
        self.breakdown_table = QTableWidget(0, 4)
        self.breakdown_table.setHorizontalHeaderLabels(["Data", "Prediction ax", "Error ax−y", "2(ax−y)x"])
        self.breakdown_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.breakdown_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        layout.addWidget(self.breakdown_table)
        self.average_gradient_label = QLabel()
        self.next_slope_label = QLabel()
        self.next_slope_label.setStyleSheet("font-size: 14px;")
        layout.addWidget(self.average_gradient_label)
        layout.addWidget(self.next_slope_label)
        return panel

    # --- Event handlers ---

    def populate_data_table(self):
        self.data_table.blockSignals(True)
        self.data_table.setRowCount(len(self.controller.data))
        for row, point in enumerate(self.controller.data):
            for col, value in enumerate((point.x, point.y)):
                # Reuse items: this also runs from inside itemChanged
                item = self.data_table.item(row, col)
                if item is None:
                    self.data_table.setItem(row, col, QTableWidgetItem(f"{value:g}"))
                else:
                    item.setText(f"{value:g}")
        self.data_table.setVerticalHeaderLabels([f"#{i + 1}" for i in range(len(self.controller.data))])
        self.data_table.blockSignals(False)

    def on_data_item_changed(self, item):
        field = "x" if item.column() == 0 else "y"
        try:
            self.controller.edit_point(item.row(), field, item.text())
        except (IndexError, ValueError) as e:
            logger.exception("Data edit rejected")
            QMessageBox.warning(self, "Invalid Input", f"Could not update the data point.\nError: {e}")
        self.populate_data_table()

    def on_hyperparameters_edited(self):
        hp = self.controller.hyperparameters
        initial, rate = self.initial_slope_input.text(), self.learning_rate_input.text()
        if (initial, rate) == (str(hp.initial_slope), str(hp.learning_rate)):
            return
        self.controller.set_hyperparameters(initial_slope=initial, learning_rate=rate)
        self.initial_slope_input.setText(str(hp.initial_slope))
        self.learning_rate_input.setText(str(hp.learning_rate))

    def on_slider_moved(self, value):
        self.controller.set_slope(value * SLIDER_STEP)

    def reset_all(self):
        self.controller.reset_to_defaults()
        self.initial_slope_input.setText(str(self.controller.hyperparameters.initial_slope))
        self.populate_data_table()

    def on_controller_changed(self, controller):
        self.refresh()

    # --- Drawing ---

    def refresh(self):
        c = self.controller
        slope = c.current_slope
        if math.isfinite(slope):
            # A diverging run leaves the slider pinned at its end
            pinned = min(max(slope, SLIDER_MIN), SLIDER_MAX)
            self.slope_slider.blockSignals(True)
            self.slope_slider.setValue(round(pinned / SLIDER_STEP))
            self.slope_slider.blockSignals(False)
        self.slope_label.setText(f"a = {slope:.2f}")
        self.mse_label.setText(f"MSE: {c.current_mse:.2f}")
        self.gradient_label.setText(f"Gradient: {c.current_gradient:.2f}")

        self.run_button.setText("Pause" if c.is_running else "Auto Run")
        self.step_button.setEnabled(not c.is_running and c.phase != RunPhase.TERMINAL)
        self.run_button.setEnabled(c.is_running or c.phase != RunPhase.TERMINAL)
        phase_text = {RunPhase.IDLE: "Ready.", RunPhase.STEPPING: f"Step {c.current_step}.",
                      RunPhase.TERMINAL: f"Finished {c.config.max_iterations} iterations."}
        self.statusBar().showMessage(phase_text[c.phase])

        self.draw_data_plot()
        self.draw_mse_plot()
        self.draw_history_plot()
        self.draw_breakdown()

    def draw_data_plot(self):
        c = self.controller
        ax = self.data_canvas.axes
        ax.clear()
        (x0, y0), (x1, y1) = c.model_line()
        ax.plot([x0, x1], [y0, y1], color='#2563eb', linewidth=3, label=f'y = {c.current_slope:.2f}x', zorder=2)
        for (px, py), (_, pred) in c.residual_segments():
            ax.plot([px, px], [py, pred], color='#ef4444', linestyle='--', linewidth=1.5, alpha=0.6, zorder=1)
        ax.scatter(c.data.xs, c.data.ys, color='#ef4444', zorder=3)
        if x1 > 0: ax.set_xlim(0, x1)
        ax.set_xlabel("x");
        ax.set_ylabel("y");
        ax.set_title("Data and Model y = ax")
        ax.grid(True, linestyle='--', alpha=0.5);
        ax.legend(loc='upper left')
        self.data_canvas.draw()

    def draw_mse_plot(self):
        c = self.controller
        ax = self.mse_canvas.axes
        ax.clear()
        slopes, errors = c.mse_curve()
        ax.plot(slopes, errors, color='#8b5cf6', linewidth=3)
        if math.isfinite(c.current_slope) and math.isfinite(c.current_mse):
            ax.axvline(c.current_slope, color='#ef4444', linestyle='--')
            ax.plot(c.current_slope, c.current_mse, 'o', color='#ef4444', markersize=8)
        ax.set_xlim(slopes[0], slopes[-1])
        ax.set_xlabel("Slope a");
        ax.set_ylabel("MSE");
        ax.set_title("Error Function (MSE)")
        ax.grid(True, linestyle='--', alpha=0.5)
        self.mse_canvas.draw()

    def draw_history_plot(self):
        history = self.controller.history
        ax = self.history_canvas.axes
        ax.clear()
        if len(history):
            ax.plot(history.steps(), history.errors(), color='#ef4444', linewidth=2)
        ax.set_xlabel("Step");
        ax.set_ylabel("MSE");
        ax.set_title("Learning Progress")
        ax.grid(True, linestyle='--', alpha=0.5)
        self.history_canvas.draw()

    def draw_breakdown(self):
        detail = self.controller.detail
        if detail is None:
            self.breakdown_title.setText("<b>Gradient Breakdown</b> (take a step to see the calculation)")
            self.breakdown_table.setRowCount(0)
            self.average_gradient_label.setText("")
            self.next_slope_label.setText("")
            return
        self.breakdown_title.setText(
            f"<b>Gradient Breakdown (Step {self.controller.current_step})</b>, current a = {detail.start_slope:.4f}")
        self.breakdown_table.setRowCount(len(detail.point_gradients))
        for row, pg in enumerate(detail.point_gradients):
            cells = [f"({pg.x:g}, {pg.y:g})", f"{pg.prediction:.2f}", f"{pg.error_term:.2f}", f"{pg.contribution:.2f}"]
            for col, text in enumerate(cells):
                item = QTableWidgetItem(text)
                item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
                self.breakdown_table.setItem(row, col, item)
        self.average_gradient_label.setText(f"<b>Average gradient:</b> {detail.final_gradient:.4f}")
        self.next_slope_label.setText(
            f"Next a = {detail.start_slope:.4f} − {detail.learning_rate:g} × {detail.final_gradient:.2f}"
            f" = <b>{detail.next_slope:.4f}</b>")

    def closeEvent(self, event):
        self.controller.stop()
        self.controller.unsubscribe(self.on_controller_changed)
        super().closeEvent(event)


# --- Standalone Execution Guard ---
if __name__ == "__main__":
    app = QApplication(sys.argv)
    window = CobberSlopeApp()
    window.show()
    sys.exit(app.exec())
