"""
Tests for the lotoevo command line.
"""
import json

from lotoevo.cli import main


def test_evolve_and_list(tmp_path, draw_records, capsys):
    draws_path = tmp_path / 'draws.json'
    draws_path.write_text(json.dumps(draw_records))
    checkpoint_dir = tmp_path / 'checkpoints'

    code = main([
        '--log-level', 'WARNING',
        'evolve', str(draws_path),
        '--checkpoint-dir', str(checkpoint_dir),
        '--players', '8',
        '--checkpoint-interval', '2',
        '--seed', '1',
    ])

    assert code == 0
    out = capsys.readouterr().out
    assert 'Training completed!' in out
    assert 'checkpoint_000005' in out

    code = main(['checkpoints', '--checkpoint-dir', str(checkpoint_dir)])

    assert code == 0
    listing = capsys.readouterr().out
    assert 'checkpoint_000002' in listing
    assert 'checkpoint_000005  generation=5' in listing


def test_evolve_resume(tmp_path, draw_records, capsys):
    draws_path = tmp_path / 'draws.json'
    draws_path.write_text(json.dumps(draw_records))
    args = [
        'evolve', str(draws_path),
        '--checkpoint-dir', str(tmp_path / 'checkpoints'),
        '--players', '8',
    ]

    assert main(args) == 0
    assert main(args + ['--resume']) == 0

    out = capsys.readouterr().out
    assert 'Resumed from checkpoint_000005' in out
    assert 'Generations: 10' in out


def test_invalid_draws_file(tmp_path, capsys):
    draws_path = tmp_path / 'draws.json'
    draws_path.write_text(json.dumps([{'draw_index': 1, 'numbers': [0]}]))

    assert main(['evolve', str(draws_path), '--checkpoint-dir', str(tmp_path)]) == 1
    assert 'Error:' in capsys.readouterr().err


def test_resume_without_checkpoints(tmp_path, draw_records):
    draws_path = tmp_path / 'draws.json'
    draws_path.write_text(json.dumps(draw_records))

    code = main([
        'evolve', str(draws_path),
        '--checkpoint-dir', str(tmp_path / 'empty'),
        '--resume',
    ])
    assert code == 1


def test_no_checkpoints(tmp_path, capsys):
    assert main(['checkpoints', '--checkpoint-dir', str(tmp_path)]) == 0
    assert 'No checkpoints' in capsys.readouterr().out
