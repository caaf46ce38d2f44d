import asyncio
import json

import pytest

from billing_core.errors import FetchFailure
from billing_core.sources import FileSource, StaticSource, load_csv, unwrap_envelope


class TestUnwrapEnvelope:
    def test_bare_list(self):
        assert unwrap_envelope([{"a": 1}]) == [{"a": 1}]

    def test_success_envelope(self):
        assert unwrap_envelope({"status": "success", "message": "ok", "data": [{"a": 1}]}) == [{"a": 1}]

    def test_error_envelope(self):
        with pytest.raises(FetchFailure, match="upstream status"):
            unwrap_envelope({"status": "error", "message": "boom"}, "utility-memo")

    def test_not_a_list(self):
        with pytest.raises(FetchFailure):
            unwrap_envelope({"data": {"a": 1}})

    def test_null_data(self):
        assert unwrap_envelope({"status": "success", "data": None}) == []


class TestStaticSource:
    def test_fetch_by_kind_and_group(self):
        src = StaticSource({
            "telco-account": [{"a": 1}],
            ("telco-account", "g2"): {"status": "success", "data": [{"a": 2}]},
        })
        assert asyncio.run(src.fetch("telco-account", {})) == [{"a": 1}]
        assert asyncio.run(src.fetch("telco-account", {"group": "g2"})) == [{"a": 2}]
        assert asyncio.run(src.fetch("telco-account", {"group": "other"})) == [{"a": 1}]
        assert src.calls == [("telco-account", None), ("telco-account", "g2"), ("telco-account", "other")]

    def test_missing(self):
        with pytest.raises(FetchFailure):
            asyncio.run(StaticSource({}).fetch("utility-memo", {}))

    def test_stored_exception_is_raised(self):
        src = StaticSource({"utility-memo": ConnectionError("down")})
        with pytest.raises(ConnectionError):
            asyncio.run(src.fetch("utility-memo", {}))


class TestFileSource:
    def test_json(self, tmp_path):
        (tmp_path / "utility-memo.json").write_text(json.dumps({"status": "success", "data": [{"x": "1"}]}))
        assert asyncio.run(FileSource(tmp_path).fetch("utility-memo", {})) == [{"x": "1"}]

    def test_group_file_preferred(self, tmp_path):
        (tmp_path / "telco-account.json").write_text(json.dumps([{"g": "all"}]))
        (tmp_path / "telco-account.celcom.json").write_text(json.dumps([{"g": "celcom"}]))
        src = FileSource(tmp_path)
        assert src.load("telco-account", "celcom") == [{"g": "celcom"}]
        assert src.load("telco-account", "maxis") == [{"g": "all"}]

    def test_csv(self, tmp_path):
        (tmp_path / "utility-costcenter.csv").write_text(
            "account_no,period,amount\nA1,2025-01, 100 \n007,,5\n", encoding="utf-8")
        rows = FileSource(tmp_path).load("utility-costcenter")
        assert rows == [
            {"account_no": "A1", "period": "2025-01", "amount": "100"},
            {"account_no": "007", "period": None, "amount": "5"},
        ]

    def test_load_csv_keeps_text(self, tmp_path):
        p = tmp_path / "x.csv"
        p.write_text("amount\n0012.50\n", encoding="utf-8")
        assert load_csv(p) == [{"amount": "0012.50"}]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FetchFailure, match="No payload file"):
            FileSource(tmp_path).load("utility-memo")

    def test_bad_json(self, tmp_path):
        (tmp_path / "utility-memo.json").write_text("{not json")
        with pytest.raises(FetchFailure):
            FileSource(tmp_path).load("utility-memo")
