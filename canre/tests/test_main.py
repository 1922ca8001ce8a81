import json

import can
import cantools
import pytest

from canre.main import main


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    for name in ('CANRE_POLICY', 'CANRE_WORKERS', 'CANRE_LOG_LEVEL', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('HOME', str(tmp_path))


def _write_capture(path, arb_id=0x120):
    with can.CSVWriter(str(path)) as writer:
        for i in range(50):
            writer.on_message_received(can.Message(
                timestamp=i * 0.02, arbitration_id=arb_id, is_extended_id=False,
                data=bytes([i % 2, 0, i, 0, 0, 0, 0, 0])))


def test_analyze_writes_statistics_and_summary(tmp_path, capsys):
    capture = tmp_path / 'drive.csv'
    _write_capture(capture)
    summary = tmp_path / 'summary.json'

    assert main(['analyze', str(capture), '--summary', str(summary)]) == 0
    out = capsys.readouterr().out
    assert 'ID 0x120: 2 signals' in out

    with open(tmp_path / 'drive.stats.json', encoding='utf-8') as f:
        assert json.load(f)[0]['ID'] == '0x120'
    with open(summary, encoding='utf-8') as f:
        assert json.load(f)['signals'] == 2


def test_generate_dbc(tmp_path):
    capture = tmp_path / 'drive.csv'
    _write_capture(capture)
    output = tmp_path / 'drive.dbc'

    assert main(['--policy', 'full', 'generate-dbc', str(capture), str(output)]) == 0
    message = cantools.database.load_file(str(output)).get_message_by_frame_id(0x120)
    assert {s.name for s in message.signals} == {'ID_120_Byte0', 'ID_120_Bytes2_3'}


def test_batch_process(tmp_path):
    folder = tmp_path / 'captures'
    folder.mkdir()
    _write_capture(folder / 'a.csv', 0x100)
    _write_capture(folder / 'b.csv', 0x200)
    (folder / 'readme.txt').write_text('not a capture')

    assert main(['batch-process', str(folder)]) == 0
    assert (folder / 'a.dbc').exists()
    assert (folder / 'b.dbc').exists()


def test_batch_process_continues_past_corrupt_capture(tmp_path, capsys):
    folder = tmp_path / 'captures'
    folder.mkdir()
    _write_capture(folder / 'a.csv', 0x100)
    (folder / 'b.blf').write_bytes(b'\x00\x13not a blf file' * 8)
    _write_capture(folder / 'c.csv', 0x300)

    assert main(['batch-process', str(folder)]) == 1
    assert (folder / 'a.dbc').exists()
    assert (folder / 'c.dbc').exists()
    assert not (folder / 'b.dbc').exists()
    assert 'Error:' in capsys.readouterr().out


def test_unwritable_summary_returns_error(tmp_path, capsys):
    capture = tmp_path / 'drive.csv'
    _write_capture(capture)
    summary = tmp_path / 'missing_dir' / 'summary.json'

    assert main(['analyze', str(capture), '--summary', str(summary)]) == 1
    assert 'Error:' in capsys.readouterr().err


def test_invalid_workers_option_returns_error(tmp_path, capsys):
    capture = tmp_path / 'drive.csv'
    _write_capture(capture)
    assert main(['--workers', '0', 'analyze', str(capture)]) == 1
    assert 'Workers must be an integer' in capsys.readouterr().err


def test_missing_capture_returns_error(tmp_path, capsys):
    assert main(['analyze', str(tmp_path / 'nope.csv')]) == 1
    assert 'File not found' in capsys.readouterr().err
