import json

from logicscan.core.payloads import PayloadRegistry
from logicscan.main import main


def test_payloads_add_toggle_export(tmp_path, capsys):
    store = str(tmp_path / "p.json")
    assert main(["--payloads", store, "payloads", "add", "ssti", "polyglot", "{{3*3}}",
                 "--description", "tiny"]) == 0
    reg = PayloadRegistry(path=store)
    entry = [e for e in reg.all("ssti") if e.value == "{{3*3}}"][0]
    assert entry.added_by == "user"

    assert main(["--payloads", store, "payloads", "toggle", entry.id]) == 0
    assert not PayloadRegistry(path=store).get(entry.id).enabled

    out = tmp_path / "ssti.json"
    assert main(["--payloads", store, "payloads", "export", str(out), "--module", "ssti"]) == 0
    assert all(r["module"] == "ssti" for r in json.loads(out.read_text(encoding="utf-8")))

    capsys.readouterr()
    assert main(["-v", "--payloads", store, "payloads", "list", "--module", "ssti"]) == 0
    assert "{{3*3}}" in capsys.readouterr().out


def test_payloads_env_var_and_failures(tmp_path, monkeypatch):
    store = tmp_path / "env.json"
    monkeypatch.setenv("LOGICSCAN_PAYLOADS", str(store))
    assert main(["payloads", "remove", "no-such-id"]) == 1
    assert store.exists()
    # empty category is a validation error
    assert main(["payloads", "add", "ssti", " ", "x"]) == 2


def test_extract_rejects_bad_charset(tmp_path):
    code = main(["--payloads", str(tmp_path / "p.json"), "extract",
                 "--url", "http://lab.test/", "--charset", "z-a"])
    assert code == 2


def test_bulk_from_file(tmp_path):
    store = str(tmp_path / "p.json")
    src = tmp_path / "list.txt"
    src.write_text("http://10.1.1.1/\nhttp://10.1.1.2/\n", encoding="utf-8")
    assert main(["--payloads", store, "payloads", "bulk", "ssrf", str(src),
                 "--category", "internal-targets"]) == 0
    reg = PayloadRegistry(path=store)
    assert reg.user_added_count() == 2


def test_import_of_mistyped_file_is_rejected_not_crashed(tmp_path):
    store = str(tmp_path / "p.json")
    src = tmp_path / "bad.json"
    src.write_text(json.dumps([{"module": "ssti", "category": "polyglot",
                                "value": "{{2*2}}", "cve_refs": 5}]), encoding="utf-8")
    assert main(["--payloads", store, "payloads", "import", str(src)]) == 0
    assert PayloadRegistry(path=store).user_added_count() == 0
