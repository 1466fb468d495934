import csv
import io
import json
import threading

import pytest

from logicscan.core.findings import CSV_HEADER, FindingsLedger
from logicscan.core.models import Confidence, Finding, Severity


def mk(name="Template Evaluation (Jinja2)", severity=Severity.HIGH, parameter="name",
       detail="first", url="http://lab.test/greet", module="SSTI", cves=()):
    return Finding(module=module, name=name, severity=severity, confidence=Confidence.CERTAIN,
                   url=url, parameter=parameter, detail=detail, cve_refs=cves)


def test_add_and_query():
    ledger = FindingsLedger()
    assert ledger.add(mk())
    assert ledger.add(mk(module="ORM Leak", name="Filter Accepted via Django ORM",
                         severity=Severity.MEDIUM))
    assert ledger.size() == len(ledger) == 2
    assert [f.module for f in ledger.get_by_module("SSTI")] == ["SSTI"]
    assert ledger.count_by_severity(Severity.HIGH) == 1
    assert ledger.count_by_severity(Severity.LOW) == 0


def test_first_writer_wins_on_same_key():
    ledger = FindingsLedger()
    assert ledger.add(mk(detail="first", severity=Severity.HIGH))
    # same module, url, parameter and name: dropped even though detail and severity differ
    assert not ledger.add(mk(detail="second", severity=Severity.LOW))
    assert ledger.size() == 1
    assert ledger.get_all()[0].detail == "first"


def test_parameter_is_part_of_the_key():
    ledger = FindingsLedger()
    assert ledger.add(mk(parameter="a"))
    assert ledger.add(mk(parameter="b"))


def test_concurrent_adds_keep_one_copy_per_key():
    ledger = FindingsLedger()
    results = []

    def worker():
        results.append(ledger.add(mk()))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert ledger.size() == 1


def test_get_all_is_a_snapshot():
    ledger = FindingsLedger()
    ledger.add(mk())
    snap = ledger.get_all()
    snap.clear()
    assert ledger.size() == 1


def test_listeners_notified_and_errors_isolated(log):
    ledger = FindingsLedger(logger=log)
    calls = []

    def broken():
        raise RuntimeError("boom")

    ledger.add_listener(broken)
    ledger.add_listener(lambda: calls.append(ledger.size()))
    ledger.add(mk())
    ledger.add(mk())   # duplicate: no notification
    ledger.clear()
    assert calls == [1, 0]
    assert any("boom" in m for m in log.messages("error"))


def test_finding_is_immutable_except_false_positive():
    f = mk()
    f.false_positive = True
    assert f.false_positive
    with pytest.raises(AttributeError):
        f.severity = Severity.LOW
    with pytest.raises(AttributeError):
        f.detail = "changed"


def test_csv_export_quotes_fields():
    ledger = FindingsLedger()
    ledger.add(mk(detail='He said "hi", twice', cves=("CVE-2025-1302", "CVE-2024-0001")))
    text = ledger.export_csv()
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == CSV_HEADER
    assert rows[1][1] == "SSTI"
    assert rows[1][2] == "HIGH"
    assert rows[1][6] == 'He said "hi", twice'
    assert rows[1][7] == "CVE-2025-1302, CVE-2024-0001"


def test_json_export():
    ledger = FindingsLedger()
    ledger.add(mk())
    data = json.loads(ledger.export_json())
    assert data[0]["name"] == "Template Evaluation (Jinja2)"
    assert data[0]["severity"] == "HIGH"
    assert data[0]["confidence"] == "CERTAIN"
    assert data[0]["false_positive"] is False
