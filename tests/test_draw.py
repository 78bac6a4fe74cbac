import io

import pytest

from localact.draw import Drawing, Pen, Style


@pytest.fixture
def no_color(monkeypatch):
    monkeypatch.setenv("CLICOLOR", "0")


def test_arrow_without_color(no_color):
    out = io.StringIO()
    arrow = Pen(Style.NO_LINE, 97).draw_arrow()
    arrow.draw(out, arrow.width)
    assert arrow.width == 1
    assert out.getvalue() == "\x1b[0m\u2b07\x1b[0m\n"


def test_arrow_uses_pen_color(monkeypatch):
    monkeypatch.delenv("CLICOLOR", raising=False)
    arrow = Pen(Style.NO_LINE, 96).draw_arrow()
    assert arrow.text.startswith("\x1b[96m")


def test_boxes_have_three_rows_with_labels(no_color):
    out = io.StringIO()
    boxes = Pen(Style.SINGLE_LINE, 96).draw_boxes("build", "test")
    boxes.draw(out, 0)
    lines = out.getvalue().splitlines()
    assert len(lines) == 3
    assert lines[0].count("\u256d") == 2
    assert lines[2].count("\u256f") == 2
    assert "build" in lines[1] and "test" in lines[1]


def test_box_rows_have_equal_length(no_color):
    boxes = Pen(Style.DOUBLE_LINE, 96).draw_boxes("a", "longer-label")
    rows = [row for row in boxes.text.split("\n") if row]
    assert len({len(row) for row in rows}) == 1


def test_box_width_is_additive():
    pen = Pen(Style.SINGLE_LINE, 96)
    combined = pen.draw_boxes("a", "bb").width
    assert combined == pen.draw_boxes("a").width + pen.draw_boxes("bb").width
    assert pen.draw_boxes("ccc").width > pen.draw_boxes("c").width


def test_draw_centres_narrow_drawing(no_color):
    out = io.StringIO()
    Pen(Style.NO_LINE, 97).draw_arrow().draw(out, 5)
    assert out.getvalue().startswith("  \x1b[")


def test_draw_never_pads_when_too_wide():
    wide = Drawing("line\n\nother\n", 10)
    out = io.StringIO()
    wide.draw(out, 2)
    assert out.getvalue() == "line\nother\n"