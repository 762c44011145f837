from livesub.contracts import CaptionEvent
from livesub.ui.overlay_qt import (
    CaptionLine,
    OverlayConfig,
    merge_caption_line,
    normalize_hotkey,
    panel_alpha,
    preset_origin,
    render_lines_to_html,
    step_font_sizes,
)


def test_render_lines_to_html_contains_text() -> None:
    cfg = OverlayConfig(show_source=True)
    html = render_lines_to_html([CaptionLine(source="Hello", target="안녕하세요")], cfg)
    assert "Hello" in html
    assert "안녕하세요" in html


def test_render_lines_hides_source_and_escapes() -> None:
    cfg = OverlayConfig(show_source=False)
    html = render_lines_to_html([CaptionLine(source="Hello", target="<b>안녕</b>", is_final=True)], cfg)
    assert "Hello" not in html
    assert "&lt;b&gt;안녕&lt;/b&gt;" in html


def test_merge_caption_line_replaces_live_line() -> None:
    lines = [CaptionLine(source="Hello", target="")]
    merged = merge_caption_line(lines, CaptionLine(source="Hello there", target="안녕"), max_lines=3)
    assert merged == [CaptionLine(source="Hello there", target="안녕")]


def test_merge_caption_line_appends_after_final_line() -> None:
    done = CaptionLine(source="Hello", target="안녕", is_final=True)
    merged = merge_caption_line([done], CaptionLine(source="Next", target=""), max_lines=3)
    assert merged == [done, CaptionLine(source="Next", target="")]


def test_merge_caption_line_drops_duplicates_and_empty_lines() -> None:
    line = CaptionLine(source="A", target="B", is_final=True)
    assert merge_caption_line([line], line, max_lines=4) == [line]
    assert merge_caption_line([line], CaptionLine(source=" ", target=""), max_lines=4) == [line]


def test_merge_caption_line_keeps_max_lines() -> None:
    lines = [CaptionLine(source=f"s{i}", target=f"t{i}", is_final=True) for i in range(3)]
    merged = merge_caption_line(lines, CaptionLine(source="s3", target=""), max_lines=3)
    assert [ln.source for ln in merged] == ["s1", "s2", "s3"]


def test_caption_line_from_event() -> None:
    event = CaptionEvent(source_text="Hello", target_text="안녕", is_final=True, source="model")
    assert CaptionLine.from_event(event) == CaptionLine(source="Hello", target="안녕", is_final=True)


def test_normalize_hotkey_aliases() -> None:
    assert normalize_hotkey("Escape") == normalize_hotkey("Esc") == "esc"
    assert normalize_hotkey("Plus") == normalize_hotkey("=") == "+"
    assert normalize_hotkey("Minus") == normalize_hotkey("_") == "-"
    assert normalize_hotkey(" H ") == "h"
    assert normalize_hotkey("") == ""


def test_panel_alpha_scales_and_clamps() -> None:
    assert panel_alpha(0) == 0
    assert panel_alpha(66) == 168
    assert panel_alpha(100) == 255
    assert panel_alpha(150) == 255


def test_step_font_sizes_has_floor() -> None:
    cfg = OverlayConfig(font_size_target=16, font_size_source=11)
    step_font_sizes(cfg, 1)
    assert (cfg.font_size_target, cfg.font_size_source) == (18, 12)
    for _ in range(5):
        step_font_sizes(cfg, -1)
    assert (cfg.font_size_target, cfg.font_size_source) == (14, 10)


def test_preset_origin_positions() -> None:
    area = (0, 0, 1920, 1080)
    size = (900, 220)
    assert preset_origin("bottom_center", area, size) == (510, 820)
    assert preset_origin("bottom_left", area, size) == (40, 820)
    assert preset_origin("top_center", area, size) == (510, 40)
    assert preset_origin("custom", area, size) is None
