import logging

import pandas as pd
import pytest
from PIL import Image

import waveform_builder
from waveform_builder import (
    REPORT_NAME,
    build_waveforms,
    export_report,
    find_wav_files,
    main,
    output_name,
    process_wav_file,
)


@pytest.fixture
def input_dir(tmp_path, write_wav):
    write_wav("audios/tone.wav", [1000, -1000] * 200)
    write_wav("audios/LOUD.WAV", [32767, -32768] * 50)
    write_wav("audios/mono.Wav", [0, 500, -500] * 30, num_channels=1)
    write_wav("audios/broken.wav", [0, 0], chunk_id=b"JUNK")
    write_wav("audios/surround.wav", [0] * 60, num_channels=6)
    (tmp_path / "audios" / "notes.txt").write_text("not audio")
    (tmp_path / "audios" / "nested.wav").mkdir()
    return tmp_path / "audios"


def test_find_wav_files_is_case_insensitive(input_dir):
    names = [path.name for path in find_wav_files(input_dir)]

    assert names == sorted(["LOUD.WAV", "broken.wav", "mono.Wav", "surround.wav", "tone.wav"])


def test_find_wav_files_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_wav_files(tmp_path / "nope")


def test_output_name(tmp_path):
    assert output_name(tmp_path / "song.take1.wav") == "song.take1.png"
    assert output_name(tmp_path / "song.WAV", "right") == "song_right.png"


def test_batch_isolates_failures(input_dir, tmp_path):
    output_dir = tmp_path / "waveforms"

    results, summary = build_waveforms(input_dir, output_dir, width=64, height=32, jobs=2)

    assert summary["processed"] == 5
    assert summary["valid"] == 3
    assert summary["failed"] == 2
    assert summary["elapsed"] >= 0

    written = sorted(path.name for path in output_dir.glob("*.png"))
    assert written == ["LOUD.png", "mono.png", "tone.png"]
    for name in written:
        with Image.open(output_dir / name) as img:
            assert img.size == (64, 32)

    by_name = {record["file"].rsplit("/", 1)[-1]: record for record in results}
    assert "not a valid WAV file" in by_name["broken.wav"]["error"]
    assert "channels" in by_name["surround.wav"]["error"]
    assert by_name["broken.wav"]["outputs"] == []
    assert by_name["tone.wav"]["frame_count"] == 200
    assert by_name["tone.wav"]["sample_rate"] == 44_100


def test_batch_limit(input_dir, tmp_path):
    results, summary = build_waveforms(input_dir, tmp_path / "out", width=8, height=8, limit=2)

    assert summary["processed"] == 2
    assert len(results) == 2


def test_empty_directory(tmp_path):
    (tmp_path / "empty").mkdir()

    results, summary = build_waveforms(tmp_path / "empty", tmp_path / "out")

    assert results == []
    assert summary["processed"] == 0
    assert not (tmp_path / "out").exists()


def test_process_both_channels(write_wav, tmp_path):
    path = write_wav("pair.wav", [32767, 0] * 10)

    record = process_wav_file(path, tmp_path / "out", 10, 10, ("left", "right"))

    assert record["status"] == "ok"
    assert sorted(p.rsplit("/", 1)[-1] for p in record["outputs"]) == ["pair_left.png", "pair_right.png"]


def test_decode_failure_creates_nothing(write_wav, tmp_path):
    path = write_wav("empty.wav", [])
    output_dir = tmp_path / "never"

    record = process_wav_file(path, output_dir, 10, 10)

    assert record["status"] == "failed"
    assert record["error"].startswith("decode:")
    assert not output_dir.exists()


def test_failure_is_logged_with_path(write_wav, tmp_path, caplog):
    path = write_wav("bad.wav", [0, 0], wave_format=b"WAVX")

    with caplog.at_level(logging.WARNING, logger="waveform_builder"):
        process_wav_file(path, tmp_path / "out", 10, 10)

    assert str(path) in caplog.text


def test_export_report(tmp_path):
    results = [
        {"file": "a.wav", "status": "ok", "outputs": ["out/a.png"], "sample_rate": 8000,
         "frame_count": 8000, "duration": 1.0, "error": None},
        {"file": "b.wav", "status": "failed", "outputs": [], "sample_rate": None,
         "frame_count": None, "duration": None, "error": "decode: boom"},
    ]

    report = export_report(results, tmp_path / "out")

    frame = pd.read_csv(report)
    assert report.name == REPORT_NAME
    assert list(frame["status"]) == ["ok", "failed"]
    assert frame.loc[0, "outputs"] == "out/a.png"
    assert not (tmp_path / "out" / (REPORT_NAME + ".tmp")).exists()


def test_main_end_to_end(input_dir, tmp_path):
    output_dir = tmp_path / "images"

    status = main([
        "--input-dir", str(input_dir),
        "--output-dir", str(output_dir),
        "--width", "40",
        "--height", "20",
        "--channel", "right",
        "--jobs", "1",
        "--log-dir", str(tmp_path / "logs"),
    ])

    assert status == 0
    assert (output_dir / "tone.png").exists()
    assert (output_dir / REPORT_NAME).exists()
    assert not (output_dir / "broken.png").exists()


def test_main_missing_input_dir(tmp_path):
    status = main([
        "--input-dir", str(tmp_path / "missing"),
        "--log-dir", str(tmp_path / "logs"),
        "--no-report",
    ])

    assert status == 1


def test_parse_args_defaults():
    args = waveform_builder.parse_args([])

    assert args.width == 1920
    assert args.height == 640
    assert args.channel == "left"
    assert args.input_dir.name == "audios"
    assert args.output_dir.name == "waveforms"


def test_parse_args_rejects_bad_size():
    with pytest.raises(SystemExit):
        waveform_builder.parse_args(["--width", "0"])


@pytest.mark.parametrize("limit", ["0", "-1"])
def test_parse_args_rejects_bad_limit(limit):
    with pytest.raises(SystemExit):
        waveform_builder.parse_args(["--limit", limit])


def test_library_loggers_do_not_propagate(tmp_path):
    waveform_builder.setup_logging(tmp_path / "logs")

    for name in ("wav_reader", "waveform_render"):
        library_logger = logging.getLogger(name)
        assert library_logger.propagate is False
        assert library_logger.handlers
