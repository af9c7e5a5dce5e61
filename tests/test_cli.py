from luacparse.__main__ import main
from luacparse.interchange import from_msgpack


def test_cli_prints_tree(tmp_path, capsys, lua51_sample):
    path = tmp_path / "sample.luac"
    path.write_bytes(lua51_sample)
    assert main([str(path)]) == 0
    out = capsys.readouterr().out
    assert "LUA51" in out
    assert "Proto->000 @test.lua" in out
    assert '[0] = "print"' in out
    assert "Decoded bytecode in" in out


def test_cli_luau_and_msgpack(tmp_path, capsys, luau_sample):
    path = tmp_path / "sample.luau.bin"
    path.write_bytes(luau_sample)
    out_path = tmp_path / "sample.msgpack"
    assert main([str(path), "--luau", "--msgpack", str(out_path)]) == 0
    restored = from_msgpack(out_path.read_bytes())
    assert restored.main_chunk.prototypes[0].name == b"inner"
    assert "Proto->001 inner" in capsys.readouterr().out


def test_cli_reports_decode_errors(tmp_path, capsys):
    path = tmp_path / "broken.luac"
    path.write_bytes(b"\x1bLua\x51\x00")
    assert main([str(path)]) == 1
    err = capsys.readouterr().err
    assert "broken.luac" in err
    assert "(header)" in err


def test_cli_debug_flag(tmp_path, monkeypatch, lua51_sample):
    from luacparse import config

    monkeypatch.setattr(config, "DEBUG", False)
    path = tmp_path / "sample.luac"
    path.write_bytes(lua51_sample)
    assert main([str(path), "--debug"]) == 0
    assert config.DEBUG
