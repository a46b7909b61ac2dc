import pytest
from PIL import Image

from screen_ocr import ScreenOCR, cli, pipeline
from screen_ocr.libs.onnx_ocr import OCRResult, BoundingBox
from screen_ocr.preview import draw_results, generate_preview


@pytest.fixture
def fake_screen_ocr(monkeypatch, make_pipeline):
    built = []

    def factory(det_model_path=None, rec_model_path=None, char_dict_path=None, config=None):
        ocr = ScreenOCR.from_pipeline(make_pipeline(config=config))
        built.append((det_model_path, rec_model_path, char_dict_path, config))
        return ocr

    monkeypatch.setattr(pipeline, "ScreenOCR", factory)
    return built


@pytest.fixture
def capture(tmp_path, two_line_image):
    path = tmp_path / "capture.png"
    Image.fromarray(two_line_image[:, :, ::-1].copy()).save(path)
    return path


def test_build_config_overrides():
    args = cli.build_parser().parse_args(
        ["x.png", "--limit-side-len", "1280", "--box-thresh", "0.4", "--unclip-ratio", "2.0"]
    )

    config = cli.build_config(args)

    assert config.detector.det_limit_side_len == 1280
    assert config.detector.det_db_box_thresh == 0.4
    assert config.detector.det_db_unclip_ratio == 2.0
    assert config.detector.det_db_thresh == 0.3


def test_build_config_defaults():
    args = cli.build_parser().parse_args(["x.png"])
    assert cli.build_config(args) == cli.OCRConfig()


def test_missing_input_argument(capsys):
    assert cli.main([]) == 1
    assert "input image is required" in capsys.readouterr().err


def test_input_file_not_found(tmp_path, capsys):
    assert cli.main([str(tmp_path / "nope.png")]) == 1
    assert "not found" in capsys.readouterr().err


def test_prints_recognized_text(fake_screen_ocr, capture, capsys):
    assert cli.main([str(capture)]) == 0
    assert capsys.readouterr().out.strip() == "A    B\nC"


def test_writes_output_and_preview(fake_screen_ocr, capture, tmp_path):
    output = tmp_path / "capture.txt"
    preview = tmp_path / "capture_boxes.png"

    assert cli.main([str(capture), "-o", str(output), "--preview", str(preview)]) == 0

    assert output.read_text(encoding="utf-8") == "A    B\nC"
    with Image.open(preview) as annotated:
        assert annotated.size == (400, 200)


def test_model_paths_are_passed_through(fake_screen_ocr, capture):
    cli.main([str(capture), "--det-model", "d.onnx", "--rec-model", "r.onnx", "--dict", "k.txt"])
    det, rec, dictionary, _ = fake_screen_ocr[0]
    assert (det, rec, dictionary) == ("d.onnx", "r.onnx", "k.txt")


def test_errors_return_nonzero(monkeypatch, capture, capsys):
    def broken(**kwargs):
        raise FileNotFoundError("Model file not found: d.onnx")

    monkeypatch.setattr(pipeline, "ScreenOCR", broken)

    assert cli.main([str(capture), "--det-model", "d.onnx"]) == 1
    assert "Model file not found" in capsys.readouterr().err


def test_draw_results_leaves_input_untouched():
    image = Image.new("RGB", (120, 60), color=(255, 255, 255))
    result = OCRResult(text="hello", confidence=0.8, box=BoundingBox(10, 30, 100, 50))

    annotated = draw_results(image, [result])

    assert annotated.size == image.size
    assert annotated.mode == "RGB"
    assert image.getpixel((50, 40)) == (255, 255, 255)
    assert annotated.getpixel((50, 40)) != (255, 255, 255)


def test_generate_preview_saves_file(tmp_path):
    image = Image.new("RGB", (40, 20))
    path = tmp_path / "out.png"
    generate_preview(image, [], str(path))
    assert path.exists()


def test_download_option(monkeypatch, tmp_path, capsys):
    from screen_ocr.models import registry

    monkeypatch.setattr(
        registry, "download_group",
        lambda name: {"detector": tmp_path / "det.onnx"},
    )

    assert cli.main(["--download"]) == 0
    assert "det.onnx" in capsys.readouterr().out


def test_input_image_is_closed(fake_screen_ocr, capture, monkeypatch):
    exits = []
    original_exit = Image.Image.__exit__

    def recording_exit(self, *args):
        exits.append(self)
        return original_exit(self, *args)

    monkeypatch.setattr(Image.Image, "__exit__", recording_exit)

    assert cli.main([str(capture)]) == 0
    assert len(exits) == 1
