import threading
from pathlib import Path

import pytest
from conftest import SAMPLE_RESULT, FakeLLM

from insightgen import file_storage
from insightgen.analysis_service import (
    ANALYSIS_RESPONSE_SCHEMA,
    FILE_SEPARATOR,
    GENERIC_FAILURE_MESSAGE,
    MAX_DATA_CHARS,
    SubmittedFile,
    build_analysis_prompt,
    combine_contents,
    submit_analysis,
)
from insightgen.entity_store import EntityStore
from insightgen.llm_service import LLMServiceError
from insightgen.models import Analysis

CSV = b"region,revenue\nEU,1200\nUS,900\n"


def _post(client, title="Q4 Sales", data_type="sales", files=None, mode="sync"):
    if files is None:
        files = [("files", ("q4_sales.csv", CSV, "text/csv"))]
    return client.post(
        "/analyses",
        data={"title": title, "data_type": data_type, "mode": mode},
        files=files or None,
    )


def test_sync_submission_completes_and_redirects_to_dashboard(client, llm):
    resp = _post(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "completed"
    assert body["redirect_url"] == f"/dashboard?id={body['id']}"
    assert body["title"] == "Q4 Sales"
    assert body["key_insights"][0]["impact"] == "high"
    assert body["sentiment_score"] == 0.72
    assert len(body["file_urls"]) == 1
    assert body["file_urls"][0].startswith("/files/")
    assert body["file_urls"][0].endswith("/q4_sales.csv")

    assert len(llm.calls) == 1
    assert "EU,1200" in llm.calls[0]["prompt"]
    assert llm.calls[0]["schema"] == ANALYSIS_RESPONSE_SCHEMA


def test_multiple_files_are_joined_with_separator(client, llm):
    files = [
        ("files", ("a.csv", b"first file", "text/csv")),
        ("files", ("notes.txt", b"second file", "text/plain")),
    ]
    resp = _post(client, files=files)
    assert resp.status_code == 201
    assert len(resp.json()["file_urls"]) == 2
    assert f"first file{FILE_SEPARATOR}second file" in llm.calls[0]["prompt"]


def test_empty_title_is_rejected_before_any_upload(client, llm, monkeypatch, db_session):
    uploads = []
    monkeypatch.setattr(file_storage, "upload_file", lambda *a: uploads.append(a))

    resp = _post(client, title="   ")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Please enter a title for your analysis"
    assert uploads == []
    assert llm.calls == []
    assert EntityStore(db_session, Analysis).list() == []


def test_missing_files_are_rejected(client, llm):
    resp = _post(client, files=[])
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Please upload at least one file"
    assert llm.calls == []


def test_unsupported_extension_is_rejected(client):
    resp = _post(client, files=[("files", ("setup.exe", b"MZ", "application/octet-stream"))])
    assert resp.status_code == 400
    assert "Unsupported file type" in resp.json()["detail"]


def test_llm_failure_marks_analysis_failed(client, llm, db_session):
    llm.replies = [LLMServiceError("provider timeout")]
    resp = _post(client)
    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["message"] == GENERIC_FAILURE_MESSAGE

    stored = client.get(f"/analyses/{detail['analysis_id']}").json()
    assert stored["status"] == "failed"
    assert "provider timeout" in stored["failure_reason"]
    assert stored["summary"] is None


def test_invalid_llm_output_fails_the_analysis(client, llm):
    llm.replies = [{"summary": "ok", "key_insights": [{"title": "x", "impact": "critical"}]}]
    resp = _post(client)
    assert resp.status_code == 502
    stored = client.get(f"/analyses/{resp.json()['detail']['analysis_id']}").json()
    assert stored["status"] == "failed"


def test_upload_failure_creates_no_record(client, llm, monkeypatch, db_session):
    def broken_upload(filename, content):
        raise OSError("disk full")

    monkeypatch.setattr(file_storage, "upload_file", broken_upload)
    resp = _post(client)
    assert resp.status_code == 500
    assert resp.json()["detail"]["message"] == GENERIC_FAILURE_MESSAGE
    assert resp.json()["detail"]["analysis_id"] is None
    assert EntityStore(db_session, Analysis).list() == []
    assert llm.calls == []


def test_async_submission_answers_processing_then_completes(client, llm):
    resp = _post(client, mode="async")
    assert resp.status_code == 202
    body = resp.json()
    assert body["status"] == "processing"
    assert body["redirect_url"] == f"/dashboard?id={body['id']}"

    # TestClient runs background tasks before returning
    stored = client.get(f"/analyses/{body['id']}").json()
    assert stored["status"] == "completed"
    assert len(llm.calls) == 1


def test_stored_file_is_served_back(client):
    body = _post(client).json()
    resp = client.get(body["file_urls"][0])
    assert resp.status_code == 200
    assert resp.content == CSV
    assert client.get("/files/nope/missing.csv").status_code == 404


def test_unknown_analysis_is_404_and_bad_id_is_400(client):
    assert client.get("/analyses/00000000-0000-0000-0000-000000000000").status_code == 404
    assert client.get("/analyses/not-a-uuid").status_code == 400


def test_data_block_is_truncated():
    combined = combine_contents(["a" * 30_000, "b" * 30_000])
    assert len(combined) == MAX_DATA_CHARS
    assert combined.startswith("a")
    assert FILE_SEPARATOR in combined

    prompt = build_analysis_prompt("Z" * 60_000)
    assert prompt.count("Z") == MAX_DATA_CHARS


def test_upload_and_read_back_local_file():
    stored = file_storage.upload_file("../../etc/report.txt", b"hello")
    assert stored["file_url"].endswith("/report.txt")
    assert file_storage.read_file_text(stored["file_url"]) == "hello"
    file_id = stored["file_url"].split("/")[2]
    assert file_storage.get_file_path(file_id, "report.txt").read_bytes() == b"hello"
    assert Path(file_storage.UPLOAD_DIR).is_dir()


def test_filenames_with_url_characters_keep_their_extension(client, monkeypatch):
    seen = []
    real_extract = file_storage.extract_text

    def recording_extract(content, filename):
        seen.append(filename)
        return real_extract(content, filename)

    monkeypatch.setattr(file_storage, "extract_text", recording_extract)
    files = [
        ("files", ("q4?.csv", CSV, "text/csv")),
        ("files", ("report #2.csv", CSV, "text/csv")),
    ]
    body = _post(client, files=files).json()

    assert body["status"] == "completed"
    assert sorted(seen) == ["q4?.csv", "report #2.csv"]
    assert body["file_urls"][0].endswith("/q4%3F.csv")
    assert body["file_urls"][1].endswith("/report%20%232.csv")
    for url in body["file_urls"]:
        resp = client.get(url)
        assert resp.status_code == 200
        assert resp.content == CSV


@pytest.mark.asyncio
async def test_submission_runs_database_work_off_the_event_loop(db_session, monkeypatch):
    loop_thread = threading.get_ident()
    threads = []

    def tracked(method):
        def wrapper(self, *args, **kwargs):
            threads.append(threading.get_ident())
            return method(self, *args, **kwargs)
        return wrapper

    for name in ("create", "get", "update"):
        monkeypatch.setattr(EntityStore, name, tracked(getattr(EntityStore, name)))

    analysis = await submit_analysis(
        db_session,
        title="Q4 Sales",
        data_type="sales",
        files=[SubmittedFile("q4_sales.csv", CSV)],
        llm=FakeLLM(SAMPLE_RESULT),
    )

    assert analysis.status == "completed"
    assert threads
    assert loop_thread not in threads
