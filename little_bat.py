#!/usr/bin/env python3
"""
=============================================================================
little-bat - Minimal Terminal Battery Display
=============================================================================

Description:
    Shows the current battery charge centered in the terminal, refreshed
    every second. Uses curses for a flicker-free live-updating display and
    psutil for a cross-platform battery reading.

Features:
    - Percent mode: a single "NN%" line
    - Graphic mode: a 10-cell ASCII bar with the percentage below it
    - Optional labels: "Battery" header and charging state line
    - Color coded charge: green above 50%, yellow 20-50%, red below 20%
    - Re-centers immediately when the terminal is resized
    - Shows "N/A" while the battery cannot be read and keeps polling

Data Sources:
    - psutil.sensors_battery()      : Charge percentage and power plug state

Usage:
    little-bat [-g] [-l]
    little-bat -gl

Controls:
    q, Q, Esc : Quit the application
    r, R      : Force immediate battery refresh
    Ctrl+C    : Exit

Exit Codes:
    0 : Normal quit
    1 : Terminal could not be initialized or written to
    2 : Invalid command line

License: MIT
Version: 0.1.0

=============================================================================
"""

import argparse
import curses
import enum
import logging
import logging.handlers
import sys
import time
from dataclasses import dataclass
from typing import List, NamedTuple

import psutil

__version__ = "0.1.0"

log = logging.getLogger(__name__)

POLL_INTERVAL = 1.0     # Seconds between battery reads
BAR_WIDTH = 10          # Cells in the graphic-mode bar
HIGH_THRESHOLD = 50     # Above this the charge is green
LOW_THRESHOLD = 20      # Below this the charge is red

KEY_ESC = 27
QUIT_KEYS = (ord('q'), ord('Q'), KEY_ESC)
REFRESH_KEYS = (ord('r'), ord('R'))

HEADER_TEXT = "Battery"
PLACEHOLDER_TEXT = "N/A"


# =============================================================================
# Errors
# =============================================================================

class LittleBatError(Exception):
    """Base class for all little-bat errors."""


class ReadError(LittleBatError):
    """The battery could not be read (no battery, or the OS query failed).

    Recoverable: the display shows a placeholder and polling continues.
    """


class TerminalInitError(LittleBatError):
    """The terminal could not be put into display mode."""


class TerminalIOError(LittleBatError):
    """Writing to the terminal failed while the display was running."""


# =============================================================================
# Data Model
# =============================================================================

@dataclass(frozen=True)
class BatterySnapshot:
    """
    A single point-in-time battery reading.

    Attributes:
        percentage (int): Charge level, always within 0-100
        charging (bool): True while external power is connected
        state_known (bool): False when the OS could not tell whether
            external power is connected
    """

    percentage: int
    charging: bool
    state_known: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'percentage', max(0, min(100, int(self.percentage))))

    @property
    def status(self):
        """Human readable state ('Full', 'Charging', 'Discharging' or 'Unknown')."""
        if not self.state_known:
            return 'Unknown'
        if self.charging:
            return 'Full' if self.percentage >= 100 else 'Charging'
        return 'Discharging'


@dataclass(frozen=True)
class DisplayConfig:
    """Display options chosen on the command line."""

    graphic: bool = False
    labeled: bool = False


class Line(NamedTuple):
    """One positioned line of output. ``color`` is a palette name."""

    row: int
    col: int
    text: str
    color: str


Drawable = List[Line]


# =============================================================================
# Battery Reader
# =============================================================================

def read_battery():
    """
    Query the operating system for the current battery state.

    Returns:
        BatterySnapshot: Fresh reading of charge and charging state

    Raises:
        ReadError: If no battery is present, the platform is unsupported,
            or the OS query fails.
    """
    if not hasattr(psutil, 'sensors_battery'):
        raise ReadError("battery status is not supported on this platform")

    try:
        batt = psutil.sensors_battery()
    except (psutil.Error, OSError) as exc:
        raise ReadError(f"battery query failed: {exc}") from exc

    if batt is None:
        raise ReadError("no battery is installed")
    if batt.percent is None:
        raise ReadError("battery reported no charge level")

    return BatterySnapshot(
        percentage=round(batt.percent),
        charging=bool(batt.power_plugged),
        state_known=batt.power_plugged is not None,
    )


# =============================================================================
# Renderer
# =============================================================================

def charge_color(pct):
    """
    Pick the display color for a charge percentage.

    Args:
        pct (int): Charge percentage (0-100)

    Returns:
        str: 'green' above 50, 'yellow' from 20 to 50 inclusive, 'red' below 20
    """
    if pct > HIGH_THRESHOLD:
        return 'green'
    if pct >= LOW_THRESHOLD:
        return 'yellow'
    return 'red'


def bar_cells(pct, width=BAR_WIDTH):
    """Number of filled bar cells for ``pct``: floor(pct / 10) of 10."""
    pct = max(0, min(100, pct))
    return min(width, pct * width // 100)


def make_bar(pct, width=BAR_WIDTH, fill='#', empty='-'):
    """
    Create a bracketed ASCII progress bar.

    Args:
        pct (int): Percentage to fill (0-100)
        width (int): Number of cells inside the brackets
        fill (str): Character to use for filled portion
        empty (str): Character to use for empty portion

    Returns:
        str: Progress bar string of ``width + 2`` characters

    Example:
        >>> make_bar(45)
        '[####------]'
    """
    filled = bar_cells(pct, width)
    return '[' + fill * filled + empty * (width - filled) + ']'


def _content(snapshot, config):
    # (text, color) pairs, top to bottom, before positioning
    lines = []
    if config.labeled:
        lines.append((HEADER_TEXT, 'default'))

    if snapshot is None:
        lines.append((PLACEHOLDER_TEXT, 'dim'))
        return lines

    color = charge_color(snapshot.percentage)
    if config.graphic:
        lines.append((make_bar(snapshot.percentage), color))
    lines.append((f"{snapshot.percentage}%", color))

    if config.labeled:
        lines.append((snapshot.status, 'dim'))
    return lines


def render(snapshot, config, size):
    """
    Lay out the battery display centered in a terminal of the given size.

    Args:
        snapshot (BatterySnapshot | None): Current reading, or None when the
            battery could not be read
        config (DisplayConfig): Mode and label flags
        size (tuple[int, int]): Terminal (height, width) as from getmaxyx()

    Returns:
        Drawable: Lines to draw. Text is clipped so it never reaches the last
        column, and rows outside the viewport are dropped.
    """
    height, width = size
    if height <= 0 or width <= 1:
        return []

    content = _content(snapshot, config)
    top = max(0, (height - len(content)) // 2)
    max_len = width - 1

    drawable = []
    for offset, (text, color) in enumerate(content):
        row = top + offset
        if row >= height:
            break
        text = text[:max_len]
        col = max(0, (width - len(text)) // 2)
        drawable.append(Line(row, col, text, color))
    return drawable


# =============================================================================
# Event Loop
# =============================================================================

class MonitorState(enum.Enum):
    """Event loop state. TERMINATED is final."""

    RUNNING = "running"
    TERMINATED = "terminated"


def _plain_palette():
    return {
        'default': curses.A_NORMAL,
        'dim': curses.A_DIM,
        'green': curses.A_BOLD,
        'yellow': curses.A_NORMAL,
        'red': curses.A_REVERSE,
    }


def init_palette():
    """
    Initialize curses colors and map palette names to attributes.

    Must be called after curses has been initialized. Terminals without
    color, or that reject color setup, get plain text attributes instead.

    Returns:
        dict: Palette name -> curses attribute
    """
    palette = _plain_palette()
    if not curses.has_colors():
        return palette

    try:
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_GREEN, -1)   # Green - healthy charge
        curses.init_pair(2, curses.COLOR_YELLOW, -1)  # Yellow - getting low
        curses.init_pair(3, curses.COLOR_RED, -1)     # Red - critical
    except curses.error as exc:
        log.debug("Color setup failed, using plain attributes: %s", exc)
        return palette

    palette.update(
        green=curses.color_pair(1),
        yellow=curses.color_pair(2),
        red=curses.color_pair(3),
    )
    return palette


class BatteryMonitor:
    """
    Drives the display: polls the battery every ``interval`` seconds and
    redraws on each tick, resize or refresh key until a quit key is pressed.

    A single blocking ``getch()`` with a timeout set to the time left until
    the next tick waits on the timer, keyboard and resize events at once.
    """

    def __init__(self, stdscr, config, reader=read_battery, clock=time.monotonic,
                 interval=POLL_INTERVAL, palette=None):
        self.stdscr = stdscr
        self.config = config
        self.reader = reader
        self.clock = clock
        self.interval = interval
        self.palette = palette if palette is not None else init_palette()
        self.state = MonitorState.RUNNING
        self.snapshot = None
        self._available = True
        self._next_tick = 0.0

    @property
    def running(self):
        """bool: True until a quit key has been handled."""
        return self.state is MonitorState.RUNNING

    def poll(self):
        """Read a fresh snapshot, falling back to the placeholder on ReadError."""
        try:
            self.snapshot = self.reader()
        except ReadError as exc:
            self.snapshot = None
            if self._available:
                log.warning("Battery unavailable: %s", exc)
            else:
                log.debug("Battery still unavailable: %s", exc)
            self._available = False
            return

        if not self._available:
            log.info("Battery readable again")
        self._available = True
        log.debug("Read %s", self.snapshot)

    def redraw(self):
        """Render the current snapshot at the current terminal size."""
        try:
            self.stdscr.erase()
            size = self.stdscr.getmaxyx()
            for line in render(self.snapshot, self.config, size):
                attr = self.palette.get(line.color, curses.A_NORMAL)
                self.stdscr.addstr(line.row, line.col, line.text, attr)
            self.stdscr.refresh()
        except curses.error as exc:
            raise TerminalIOError(f"failed to draw to terminal: {exc}") from exc

    def tick(self):
        """Poll, redraw and restart the interval timer from now."""
        self.poll()
        self.redraw()
        self._next_tick = self.clock() + self.interval

    def handle_key(self, key):
        """
        React to a single key code from getch().

        Args:
            key (int): Key code, or -1 when getch() timed out
        """
        if not self.running:
            return

        if key in QUIT_KEYS:
            log.debug("Quit key pressed")
            self.state = MonitorState.TERMINATED
        elif key == curses.KEY_RESIZE:
            self.redraw()
        elif key in REFRESH_KEYS:
            self.tick()

    def run(self):
        """Run until a quit key moves the monitor to TERMINATED."""
        self.tick()

        while self.running:
            remaining = max(0.0, self._next_tick - self.clock())
            self.stdscr.timeout(int(remaining * 1000))
            key = self.stdscr.getch()

            self.handle_key(key)
            if self.running and self.clock() >= self._next_tick:
                self.poll()
                self.redraw()
                self._next_tick += self.interval
                # Skip missed ticks after a stall instead of bursting
                if self._next_tick <= self.clock():
                    self._next_tick = self.clock() + self.interval


def _setup_screen(stdscr):
    """Hide the cursor, shorten the Esc delay and build the palette."""
    try:
        curses.curs_set(0)
    except curses.error:
        log.debug("Terminal cannot hide the cursor")

    if hasattr(curses, 'set_escdelay'):
        # Esc should quit at once instead of waiting for an escape sequence
        curses.set_escdelay(25)

    return init_palette()


def draw_display(stdscr, config):
    """
    Curses entry point passed to curses.wrapper.

    Args:
        stdscr: Curses window object (provided by curses.wrapper)
        config (DisplayConfig): Display options
    """
    palette = _setup_screen(stdscr)
    BatteryMonitor(stdscr, config, palette=palette).run()


# =============================================================================
# Logging
# =============================================================================

LOG_BUFFER_SIZE = 1000

_buffer_handler = None


class DeferredLogHandler(logging.handlers.MemoryHandler):
    """
    MemoryHandler that only writes to its target on an explicit flush().

    When the buffer is full the oldest record is dropped, so a long run of
    warnings never reaches stderr while curses owns the screen.
    """

    def shouldFlush(self, record):
        if len(self.buffer) > self.capacity:
            del self.buffer[0]
        return False


def setup_logging(level=logging.WARNING):
    """
    Buffer log records in memory until the terminal is released.

    Anything written to stderr while curses owns the screen would corrupt the
    display, so records are held by a MemoryHandler and emitted by
    flush_logging() once the original terminal mode is back.

    Args:
        level (int): Minimum level to record

    Returns:
        logging.Logger: The configured root logger
    """
    global _buffer_handler

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S"))

    _buffer_handler = DeferredLogHandler(capacity=LOG_BUFFER_SIZE, target=stream)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [_buffer_handler]
    return root


def flush_logging():
    """Emit buffered log records to stderr."""
    if _buffer_handler is not None:
        _buffer_handler.flush()


# =============================================================================
# Main Entry Point
# =============================================================================

def parse_args(argv=None):
    """
    Parse the command line.

    Args:
        argv (list[str] | None): Arguments, sys.argv[1:] if None

    Returns:
        argparse.Namespace: ``graphic`` and ``label`` flags
    """
    parser = argparse.ArgumentParser(
        prog="little-bat",
        description="A minimal TUI battery status display",
    )
    parser.add_argument("-g", "--graphic", action="store_true",
                        help="Show ASCII battery graphic instead of just percentage")
    parser.add_argument("-l", "--label", action="store_true",
                        help="Show label text (\"Battery\" header, charging status)")
    return parser.parse_args(argv)


def main(argv=None):
    """
    Application entry point.

    Wraps the curses display in proper initialization/cleanup. curses.wrapper
    restores the terminal exactly once on every exit path.

    Args:
        argv (list[str] | None): Command line arguments, sys.argv[1:] if None

    Returns:
        int: Process exit status
    """
    args = parse_args(argv)
    config = DisplayConfig(graphic=args.graphic, labeled=args.label)
    setup_logging()

    try:
        if not sys.stdout.isatty():
            raise TerminalInitError("standard output is not a terminal")
        try:
            curses.wrapper(draw_display, config)
        except curses.error as exc:
            raise TerminalInitError(f"cannot initialize terminal: {exc}") from exc
    except KeyboardInterrupt:
        pass
    except LittleBatError as exc:
        log.error("%s", exc)
        return 1
    finally:
        flush_logging()
    return 0


def run_cli():
    """Console script entry point: exit with main()'s status."""
    sys.exit(main())


if __name__ == "__main__":
    run_cli()
