"""Renderer implementations for chord diagrams and fretboard overlays."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Any, Sequence

from chordlab.diagram_models import ChordDiagram, FretboardOverlay, KeyboardKey


class DiagramRenderer(ABC):
    """Abstract diagram renderer."""

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Default filename extension for this renderer."""

    @abstractmethod
    def render(
        self,
        *,
        title: str,
        diagram: ChordDiagram | None = None,
        overlay: FretboardOverlay | None = None,
        keyboard: Sequence[KeyboardKey] | None = None,
    ) -> str:
        """Render whichever views are given into one output string."""


class TextDiagramRenderer(DiagramRenderer):
    """
    Plain-text views for terminals.

    Chord boxes draw strings as columns (lowest string on the left) and frets
    as rows; fretboard overlays draw one row per string with the lowest string
    at the bottom, like tablature.
    """

    _LABEL_WIDTH = 4

    @property
    def default_extension(self) -> str:
        return ".txt"

    def render(
        self,
        *,
        title: str,
        diagram: ChordDiagram | None = None,
        overlay: FretboardOverlay | None = None,
        keyboard: Sequence[KeyboardKey] | None = None,
    ) -> str:
        if diagram is None and overlay is None and keyboard is None:
            raise ValueError("Nothing to render: pass a diagram, overlay or keyboard.")

        sections = [title] if title else []
        if diagram is not None:
            sections.append(self.render_chord_box(diagram))
        if overlay is not None:
            sections.append(self.render_overlay(overlay))
        if keyboard is not None:
            sections.append(self.render_keyboard(keyboard))
        return "\n\n".join(sections) + "\n"

    def render_chord_box(self, diagram: ChordDiagram) -> str:
        pad = " " * self._LABEL_WIDTH
        markers = []
        for position in diagram.positions:
            if position is None:
                markers.append("x")
            elif position == 0:
                markers.append("o")
            else:
                markers.append(" ")
        lines = [pad + " ".join(markers).rstrip()]

        barre = diagram.barre
        for row in range(1, diagram.fret_count + 1):
            label = f"{diagram.base_fret}fr" if row == 1 and diagram.base_fret > 1 else ""
            cells = ["*" if position == row else "|" for position in diagram.positions]
            joins = [" "] * max(0, len(cells) - 1)
            if barre is not None and row == 1:
                for string in range(barre.first_string, barre.last_string + 1):
                    cells[string] = "="
                for string in range(barre.first_string, barre.last_string):
                    joins[string] = "="
            line = cells[0] if cells else ""
            for join, cell in zip(joins, cells[1:]):
                line += join + cell
            lines.append(label.ljust(self._LABEL_WIDTH) + line)
        return "\n".join(lines)

    def render_overlay(self, overlay: FretboardOverlay) -> str:
        header = " " * self._LABEL_WIDTH + "|".join(
            f"{fret:^3}" for fret in range(overlay.fret_count + 1)
        )
        rows = []
        for open_note, marks in zip(overlay.tuning, overlay.strings):
            cells = []
            for mark in marks:
                if not mark.highlighted:
                    cells.append(" - ")
                elif mark.is_tonic:
                    cells.append(f"({mark.name})".center(3) if len(mark.name) == 1 else f"{mark.name}*")
                else:
                    cells.append(f"{mark.name:^3}")
            rows.append(open_note.ljust(self._LABEL_WIDTH) + "|".join(cells))
        return "\n".join([header, *reversed(rows)])

    def render_keyboard(self, keyboard: Sequence[KeyboardKey]) -> str:
        cells = []
        for key in keyboard:
            if key.is_root:
                cells.append(f"({key.name})")
            elif key.highlighted:
                cells.append(f"[{key.name}]")
            else:
                cells.append(key.name)
        return " ".join(cells)


class JsonDiagramRenderer(DiagramRenderer):
    """Compact JSON payload for an external rendering collaborator."""

    @property
    def default_extension(self) -> str:
        return ".json"

    def render(
        self,
        *,
        title: str,
        diagram: ChordDiagram | None = None,
        overlay: FretboardOverlay | None = None,
        keyboard: Sequence[KeyboardKey] | None = None,
    ) -> str:
        payload: dict[str, Any] = {"title": title}
        if diagram is not None:
            payload["diagram"] = asdict(diagram)
        if overlay is not None:
            payload["overlay"] = asdict(overlay)
        if keyboard is not None:
            payload["keyboard"] = [asdict(key) for key in keyboard]
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def build_renderer(output_format: str) -> DiagramRenderer:
    """
    Raises:
        ValueError: For formats other than ``text`` and ``json``.
    """
    normalized = output_format.strip().lower()
    if normalized == "text":
        return TextDiagramRenderer()
    if normalized == "json":
        return JsonDiagramRenderer()
    raise ValueError(f"Unsupported output format '{output_format}'. Use one of: json, text.")
