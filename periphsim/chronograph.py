"""Strip-chart display of per-CPU load figures streamed on standard input.

The producer first sends a header: the window title, the number of graphs
(the ``0x80`` bit asks for an extra graph of the mean of every value), the
interval between two samples in milliseconds, and for each graph the number
of curves it holds and its value range.  One label per displayed graph
follows.  From then on every sample is one byte per curve, a percentage.
"""

from __future__ import annotations

import queue
import struct
import sys
import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from .fb_viewer import _read_exact

__all__ = [
    "GraphSpec",
    "ChronographHeader",
    "ChronographModel",
    "Segment",
    "read_header",
    "read_labels",
    "grid_labels",
    "main",
    "PX_GRID_BORDER",
    "WIDTH_NEW_PART",
    "COLORS",
]

PX_GRID_BORDER = 5
WIDTH_NEW_PART = 10
GRID_COLOR = "#238928"
COLORS = (
    "#FFE700", "#00A2FF", "#00FF82", "#B600FF",
    "#CCE700", "#00A2CC", "#00CC82", "#B600CC",
    "#99E700", "#00A299", "#009982", "#B60099",
    "#66E700", "#00A266", "#006682", "#B60066",
)

_U32 = struct.Struct("=I")
_GRAPH = struct.Struct("=iqq")
_AVERAGE_FLAG = 0x80
_COUNT_MASK = 0x7F
_AREA_SIZE = (540, 111)
_ROW_SPACING = 8
_MARGIN = 10


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


@dataclass(frozen=True)
class GraphSpec:
    """One graph: how many curves it draws and the range its grid shows."""

    count: int
    value_min: int
    value_max: int


@dataclass(frozen=True)
class ChronographHeader:
    """Everything the producer announces before the first sample."""

    title: str
    graphs: tuple[GraphSpec, ...]
    average: bool
    ms_between_values: int

    @property
    def bytes_per_sample(self) -> int:
        return sum(graph.count for graph in self.graphs)

    @property
    def row_count(self) -> int:
        """Number of graphs shown, the mean graph included."""
        return len(self.graphs) + (1 if self.average else 0)

    @property
    def average_range(self) -> tuple[int, int]:
        n = len(self.graphs)
        return (
            _tdiv(sum(g.value_min for g in self.graphs), n),
            _tdiv(sum(g.value_max for g in self.graphs), n),
        )

    def ranges(self) -> list[tuple[int, int]]:
        """Value range of every shown graph, in display order."""
        result = [(g.value_min, g.value_max) for g in self.graphs]
        if self.average:
            result.append(self.average_range)
        return result


@dataclass(frozen=True)
class Segment:
    """One line piece: colour index, value at the previous and current sample."""

    color: int
    previous: int
    current: int


def _read_u32(stream, what: str) -> int:
    try:
        return _U32.unpack(_read_exact(stream, _U32.size))[0]
    except EOFError as exc:
        raise EOFError(f"{what} cannot be read") from exc


def _decode(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def read_header(stream) -> ChronographHeader:
    """Read the title, graph count, interval and graph descriptions."""
    length = _read_u32(stream, "Title")
    try:
        title = _decode(_read_exact(stream, length))
    except EOFError as exc:
        raise EOFError("Title cannot be read") from exc

    flags = _read_u32(stream, "Number of graphics")
    count = flags & _COUNT_MASK
    average = bool(flags & _AVERAGE_FLAG)
    if count == 0:
        raise ValueError("at least one graph is needed")

    ms = _read_u32(stream, "Number of ms between 2 calls")

    graphs = []
    for index in range(count):
        try:
            curves, low, high = _GRAPH.unpack(_read_exact(stream, _GRAPH.size))
        except EOFError as exc:
            raise EOFError(f"Info for graphic {index} cannot be read") from exc
        if curves < 0:
            raise ValueError(f"graphic {index} has a negative curve count")
        graphs.append(GraphSpec(curves, low, high))

    return ChronographHeader(title, tuple(graphs), average, ms)


def read_labels(stream, count: int) -> list[str]:
    """Read ``count`` length-prefixed graph labels."""
    labels = []
    for index in range(count):
        try:
            (length,) = _U32.unpack(_read_exact(stream, _U32.size))
            labels.append(_decode(_read_exact(stream, length)))
        except EOFError as exc:
            raise EOFError(f"Label {index} cannot be read") from exc
    return labels


def grid_labels(value_min: int, value_max: int) -> list[str]:
    """The five grid captions, from the top (maximum) to the bottom (minimum)."""
    span = value_max - value_min
    return [
        str((value_min + _tdiv(span * (4 - i), 4)) & 0xFFFFFFFFFFFFFFFF)
        for i in range(5)
    ]


class ChronographModel:
    """Sample history of every graph, newest column first."""

    def __init__(self, header: ChronographHeader, history: int = 64) -> None:
        self.header = header
        self.count = 0
        self.last = [0] * header.bytes_per_sample
        self.history: deque[tuple[tuple[Segment, ...], ...]] = deque(maxlen=history)

    def push(self, values) -> tuple[tuple[Segment, ...], ...]:
        """Add one sample; return the new line segments of every shown graph."""
        sample = bytes(values)
        if len(sample) != self.header.bytes_per_sample:
            raise ValueError(
                f"a sample holds {self.header.bytes_per_sample} values, got {len(sample)}"
            )
        self.count += 1

        rows = []
        offset = total = last_total = 0
        for graph in self.header.graphs:
            segments = []
            for k in range(graph.count):
                current = sample[offset + k]
                previous = self.last[offset + k]
                segments.append(Segment(k % len(COLORS), previous, current))
                total += current
                last_total += previous
            rows.append(tuple(segments))
            offset += graph.count

        if self.header.average:
            n = len(sample)
            rows.append((Segment(0, last_total // n if n else 0, total // n if n else 0),))

        self.last = list(sample)
        column = tuple(rows)
        self.history.appendleft(column)
        return column

    def time_at(self, x: int, width: int) -> int:
        """Time in milliseconds of the sample drawn at column ``x`` of a graph."""
        steps = max(width - 1 - x, 0) // WIDTH_NEW_PART
        return max(self.count - steps, 0) * self.header.ms_between_values


class _Display:
    """Window showing one labelled strip chart per graph."""

    def __init__(self, pygame, header: ChronographHeader, labels: Sequence[str],
                 model: ChronographModel) -> None:
        self.pg = pygame
        self.header = header
        self.labels = list(labels)
        self.model = model
        self.font = pygame.font.SysFont("helvetica", 14)
        self.title_font = pygame.font.SysFont("helvetica", 14, bold=True)
        self.captions = [grid_labels(lo, hi) for lo, hi in header.ranges()]
        self.grid_width = max(self.font.size(c[0])[0] for c in self.captions) + 2 * PX_GRID_BORDER
        self.label_width = max((self.title_font.size(l)[0] for l in self.labels), default=0)
        rows = header.row_count
        height = rows * 119 + 39 if rows <= 4 else 650
        self.screen = pygame.display.set_mode((self.label_width + 610, height), pygame.RESIZABLE)
        pygame.display.set_caption(header.title)
        self.visible = [True] * rows
        self.hover_label: int | None = None
        self.tooltip: tuple[int, int, tuple[int, int]] | None = None
        self.label_rects: list = []
        self.area_rects: list = []

    def handle(self, event) -> None:
        pg = self.pg
        if event.type == pg.MOUSEBUTTONDOWN and event.button == 1:
            for index, rect in self.label_rects:
                if rect.collidepoint(event.pos):
                    self._toggle(index)
        elif event.type == pg.MOUSEMOTION:
            self.hover_label = next(
                (i for i, r in self.label_rects if r.collidepoint(event.pos)), None)
            self.tooltip = None
            for index, rect in self.area_rects:
                if rect.collidepoint(event.pos):
                    self.tooltip = (index, event.pos[0] - rect.x, event.pos)

    def _toggle(self, index: int) -> None:
        if self.visible[index]:
            if sum(self.visible) > 1:
                self.visible[index] = False
        else:
            self.visible[index] = True

    def draw(self) -> None:
        pg = self.pg
        self.screen.fill((230, 230, 230))
        self.label_rects = []
        self.area_rects = []
        y = _MARGIN
        area_x = _MARGIN + self.label_width + 16
        area = pg.Surface(_AREA_SIZE)
        for index, label in enumerate(self.labels):
            color = (0, 0, 255) if self.hover_label == index else (0, 0, 0)
            text = self.title_font.render(label, True, color)
            label_rect = text.get_rect(topleft=(_MARGIN, y + (_AREA_SIZE[1] - text.get_height()) // 2))
            self.screen.blit(text, label_rect)
            self.label_rects.append((index, label_rect))
            if self.visible[index]:
                self._draw_area(area, index)
                self.screen.blit(area, (area_x, y))
                self.area_rects.append((index, pg.Rect((area_x, y), _AREA_SIZE)))
                y += _AREA_SIZE[1] + _ROW_SPACING
            else:
                y += text.get_height() + _ROW_SPACING
        if self.tooltip is not None:
            index, x, pos = self.tooltip
            tip = self.font.render(f"{self.model.time_at(x, _AREA_SIZE[0])} ms",
                                   True, (0, 0, 0), (255, 255, 220))
            self.screen.blit(tip, (pos[0] + 12, pos[1] + 12))
        pg.display.flip()

    def _draw_area(self, surface, row: int) -> None:
        pg = self.pg
        width, height = surface.get_size()
        border = PX_GRID_BORDER
        grid = pg.Color(GRID_COLOR)
        gw = self.grid_width
        surface.fill((0, 0, 0))
        font_height = self.font.get_height()
        yh = (height - 2 * border) // 4
        yth = (height - 2 * border - 5 * font_height) // 4 + font_height
        yt = border
        for i, caption in enumerate(self.captions[row]):
            text = self.font.render(caption, True, grid)
            surface.blit(text, (gw - text.get_width() - border, yt))
            yt += yth
            line_y = border + i * yh
            pg.draw.line(surface, grid, (gw, line_y), (width - 1 - border, line_y))
        pg.draw.line(surface, grid, (gw, border), (gw, height - 1 - border))
        pg.draw.line(surface, grid, (width - 1 - border, border),
                     (width - 1 - border, height - 1 - border))

        left = gw + 1
        surface.set_clip(pg.Rect(left, 0, width - 1 - border - left, height))
        for k, column in enumerate(self.model.history):
            x1 = width - (border + 2) - k * WIDTH_NEW_PART
            if x1 < left:
                break
            x0 = x1 - WIDTH_NEW_PART
            for segment in column[row]:
                pg.draw.line(surface, pg.Color(COLORS[segment.color]),
                             (x0, border + 100 - segment.previous),
                             (x1, border + 100 - segment.current), 2)
        surface.set_clip(None)


def _read_samples(stream, size: int, samples: queue.SimpleQueue) -> None:
    while True:
        try:
            samples.put(_read_exact(stream, size))
        except EOFError:
            samples.put(None)
            return


def main(argv: Sequence[str] | None = None) -> int:
    """Show the stream arriving on standard input until it closes."""
    stream = sys.stdin.buffer
    try:
        header = read_header(stream)
        labels = read_labels(stream, header.row_count)
    except (EOFError, ValueError) as exc:
        print(f"{exc}!", file=sys.stderr)
        return 1

    import pygame

    pygame.init()
    try:
        model = ChronographModel(header)
        display = _Display(pygame, header, labels, model)
        samples: queue.SimpleQueue = queue.SimpleQueue()
        threading.Thread(
            target=_read_samples, args=(stream, header.bytes_per_sample, samples), daemon=True
        ).start()
        clock = pygame.time.Clock()
        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return 0
                display.handle(event)
            while True:
                try:
                    sample = samples.get_nowait()
                except queue.Empty:
                    break
                if sample is None:
                    print("Pipe closed!")
                    return 0
                model.push(sample)
            display.draw()
            clock.tick(30)
    finally:
        pygame.quit()


if __name__ == "__main__":
    sys.exit(main())